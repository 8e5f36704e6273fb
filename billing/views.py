# billing/views.py
"""
BILLING API
===========

Fee plans, payments and payment reminders. Students only ever see their own
plans and payments; everything else is admin-only.
"""
import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from core.exceptions import RolePermissionError
from shared.constants import UserRole
from shared.decorators.permissions import PermissionChecker, require_admin
from shared.utils import CacheNamespaces
from users.services import UserService

from .models import FeePlan, Payment
from .serializers import FeePlanSerializer, PaymentSerializer, ReminderSerializer
from .services import FeePlanService, PaymentReminderService, PaymentService, get_plan_or_404

logger = logging.getLogger(__name__)


def _check_owner(user, student_id):
    if not PermissionChecker.can_view_student(user, student_id):
        raise RolePermissionError("You can only view your own billing records.")


# ============ FEE PLANS ============

@api_view(['GET', 'POST'])
def fee_plans_view(request):
    if request.method == 'GET':
        plans = FeePlanService.plans_for(request.user)
        student_id = request.query_params.get('student_id')
        if student_id:
            plans = plans.filter(student_id=student_id)
        return Response({'success': True, 'data': FeePlanSerializer(plans, many=True).data})

    if not PermissionChecker.is_admin(request.user):
        raise RolePermissionError("Only admins can create fee plans.")

    serializer = FeePlanSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data)

    student = UserService.resolve(user_id=data.pop('student_id'), role=UserRole.STUDENT, label='Student')
    plan = FeePlanService.create_plan(student, **data)
    return Response({
        'success': True,
        'data': FeePlanSerializer(plan).data,
        'invalidates': [CacheNamespaces.FEE_PLANS],
    }, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
def fee_plan_detail_view(request, plan_id):
    plan = get_plan_or_404(plan_id)

    if request.method == 'GET':
        _check_owner(request.user, plan.student_id)
        return Response({'success': True, 'data': FeePlanSerializer(plan).data})

    if not PermissionChecker.is_admin(request.user):
        raise RolePermissionError("Only admins can change fee plans.")

    if request.method == 'DELETE':
        FeePlanService.delete_plan(plan)
        return Response({
            'success': True,
            'invalidates': [CacheNamespaces.FEE_PLANS, CacheNamespaces.PAYMENTS],
        })

    serializer = FeePlanSerializer(plan, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    changes = dict(serializer.validated_data)
    changes.pop('student_id', None)

    plan = FeePlanService.update_plan(plan, **changes)
    return Response({
        'success': True,
        'data': FeePlanSerializer(plan).data,
        'invalidates': [CacheNamespaces.FEE_PLANS],
    })


@api_view(['GET'])
def fee_plan_summary_view(request, plan_id):
    plan = get_plan_or_404(plan_id)
    _check_owner(request.user, plan.student_id)

    summary = FeePlanService.get_summary(plan)
    return Response({'success': True, 'data': summary.to_dict()})


# ============ PAYMENTS ============

@api_view(['GET', 'POST'])
def payments_view(request):
    if request.method == 'GET':
        payments = PaymentService.payments_for(request.user)
        for param in ('student_id', 'fee_plan_id'):
            value = request.query_params.get(param)
            if value:
                payments = payments.filter(**{param: value})
        return Response({'success': True, 'data': PaymentSerializer(payments, many=True).data})

    if not PermissionChecker.is_admin(request.user):
        raise RolePermissionError("Only admins can record payments.")

    serializer = PaymentSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    student = UserService.resolve(user_id=data['student_id'], role=UserRole.STUDENT, label='Student')
    plan = get_plan_or_404(data['fee_plan_id'])
    payment = PaymentService.record_payment(
        student,
        plan,
        data['amount_paid'],
        data['payment_mode'],
        paid_at=data.get('paid_at'),
        notes=data.get('notes', ''),
    )
    return Response({
        'success': True,
        'data': PaymentSerializer(payment).data,
        'invalidates': [CacheNamespaces.FEE_PLANS, CacheNamespaces.PAYMENTS],
    }, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@require_admin
def payment_detail_view(request, payment_id):
    payment = get_object_or_404(Payment, pk=payment_id)
    PaymentService.delete_payment(payment)
    return Response({
        'success': True,
        'invalidates': [CacheNamespaces.FEE_PLANS, CacheNamespaces.PAYMENTS],
    })


# ============ REMINDERS ============

@api_view(['GET', 'POST'])
@require_admin
def payment_reminders_view(request):
    """
    GET lists installments due soon or overdue.
    POST queues in-app reminders for them.
    """
    if request.method == 'GET':
        reminders = PaymentReminderService.upcoming_reminders()
        return Response({
            'success': True,
            'data': [
                {
                    **reminder,
                    'due_date': reminder['due_date'].isoformat(),
                    'amount_due': str(reminder['amount_due']),
                }
                for reminder in reminders
            ],
        })

    created = PaymentReminderService.create_reminders()
    return Response({
        'success': True,
        'message': f"Processed {len(created)} payment reminders",
        'data': ReminderSerializer(created, many=True).data,
        'invalidates': [CacheNamespaces.REMINDERS],
    })
