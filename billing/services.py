# billing/services.py
"""
Billing services: fee plans, payments and payment reminders.
"""
import logging
from datetime import timezone as dt_timezone
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.core.cache import cache
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from core.exceptions import NotFoundError, TransportError, ValidationError
from shared.constants import ReminderChannel, ReminderStatus, ReminderType, UserRole
from shared.utils import CacheNamespaces, cache_key, publish
from shared.utils.cache_events import get_generation

from .fee_plans import CENT, calculate_fee_plan_summary, to_money, unsatisfied_due_dates
from .models import FeePlan, Payment, Reminder

logger = logging.getLogger(__name__)


def _validation_error(exc):
    return ValidationError("; ".join(exc.messages), details=getattr(exc, 'message_dict', None))


# ============ FEE PLAN SERVICE ============

class FeePlanService:
    """Create, edit and summarize fee plans."""

    EDITABLE_FIELDS = ('plan_title', 'total_amount', 'due_dates', 'late_fee_policy')

    @staticmethod
    def _warn_on_schedule_mismatch(plan):
        scheduled = plan.scheduled_total
        if scheduled != to_money(plan.total_amount):
            logger.warning(
                f"Fee plan {plan.pk} total {plan.total_amount} differs from its due dates total {scheduled}"
            )

    @staticmethod
    def create_plan(student, plan_title, total_amount, due_dates=None, late_fee_policy=None) -> FeePlan:
        """
        Create a fee plan for a student.

        The plan total is not forced to match the sum of its due dates; a
        mismatch is logged.

        Raises:
            ValidationError: If the schedule or policy is malformed
            TransportError: If the database write fails
        """
        if getattr(student, 'role', None) != UserRole.STUDENT:
            raise ValidationError("Fee plans can only be created for students")

        try:
            plan = FeePlan.objects.create(
                student=student,
                plan_title=plan_title,
                total_amount=total_amount,
                due_dates=list(due_dates or []),
                late_fee_policy=late_fee_policy or None,
            )
        except DjangoValidationError as e:
            raise _validation_error(e) from e
        except DatabaseError as e:
            logger.error(f"Failed to create fee plan for student {student.pk}: {str(e)}", exc_info=True)
            raise TransportError("Could not create fee plan") from e

        FeePlanService._warn_on_schedule_mismatch(plan)
        publish(FeePlanService, CacheNamespaces.FEE_PLANS)
        logger.info(f"Fee plan {plan.pk} '{plan.plan_title}' created for student {student.pk}")
        return plan

    @staticmethod
    def update_plan(plan: FeePlan, **changes) -> FeePlan:
        unknown = set(changes) - set(FeePlanService.EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot update fee plan fields: {', '.join(sorted(unknown))}")

        for name, value in changes.items():
            setattr(plan, name, value)

        try:
            plan.save()
        except DjangoValidationError as e:
            raise _validation_error(e) from e

        FeePlanService._warn_on_schedule_mismatch(plan)
        publish(FeePlanService, CacheNamespaces.FEE_PLANS)
        return plan

    @staticmethod
    def delete_plan(plan: FeePlan) -> None:
        """Delete a plan together with its payments."""
        plan_id = plan.pk
        with transaction.atomic():
            plan.delete()
        publish(FeePlanService, CacheNamespaces.FEE_PLANS, CacheNamespaces.PAYMENTS)
        logger.info(f"Fee plan {plan_id} deleted")

    @staticmethod
    def plans_for(user):
        queryset = FeePlan.objects.select_related('student')
        if getattr(user, 'role', None) == UserRole.STUDENT and not user.is_superuser:
            queryset = queryset.filter(student=user)
        return queryset

    @staticmethod
    def get_summary(plan: FeePlan, now=None):
        """
        Payment summary for a plan.

        Summaries for the current moment are cached per day until a fee plan
        or payment changes; an explicit `now` always recomputes.
        """
        if now is not None:
            return calculate_fee_plan_summary(plan, plan.payments.all(), now=now)

        now = timezone.now()
        key = cache_key(
            CacheNamespaces.FEE_PLANS,
            'summary',
            plan.pk,
            f"p{get_generation(CacheNamespaces.PAYMENTS)}",
            now.astimezone(dt_timezone.utc).date().isoformat(),
        )
        summary = cache.get(key)
        if summary is None:
            summary = calculate_fee_plan_summary(plan, plan.payments.all(), now=now)
            cache.set(key, summary, getattr(settings, 'CADENZA_SUMMARY_CACHE_TTL', 300))
        return summary


# ============ PAYMENT SERVICE ============

class PaymentService:
    """Record and remove payments against fee plans."""

    @staticmethod
    def record_payment(student, fee_plan: FeePlan, amount_paid, payment_mode, paid_at=None, notes='') -> Payment:
        """
        Record a payment.

        Raises:
            ValidationError: Non-positive amount, or the plan belongs to
                another student
        """
        try:
            amount = to_money(amount_paid)
        except InvalidOperation:
            raise ValidationError(f"Invalid payment amount: {amount_paid}")

        if amount <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        if fee_plan.student_id != student.pk:
            raise ValidationError("Fee plan does not belong to this student")

        try:
            payment = Payment.objects.create(
                student=student,
                fee_plan=fee_plan,
                amount_paid=amount.quantize(CENT),
                payment_mode=payment_mode,
                paid_at=paid_at or timezone.now(),
                notes=notes or '',
            )
        except DjangoValidationError as e:
            raise _validation_error(e) from e
        except DatabaseError as e:
            logger.error(f"Failed to record payment for plan {fee_plan.pk}: {str(e)}", exc_info=True)
            raise TransportError("Could not record payment") from e

        publish(PaymentService, CacheNamespaces.PAYMENTS, CacheNamespaces.FEE_PLANS)
        logger.info(f"Payment {payment.pk} of {payment.amount_paid} recorded on fee plan {fee_plan.pk}")
        return payment

    @staticmethod
    def delete_payment(payment: Payment) -> None:
        payment_id = payment.pk
        payment.delete()
        publish(PaymentService, CacheNamespaces.PAYMENTS, CacheNamespaces.FEE_PLANS)
        logger.info(f"Payment {payment_id} deleted")

    @staticmethod
    def payments_for(user):
        queryset = Payment.objects.select_related('fee_plan', 'student')
        if getattr(user, 'role', None) == UserRole.STUDENT and not user.is_superuser:
            queryset = queryset.filter(student=user)
        return queryset


# ============ PAYMENT REMINDERS ============

def _format_due_date(value):
    return f"{value:%B} {value.day}, {value.year}"


class PaymentReminderService:
    """Find installments that need a nudge and queue in-app reminders."""

    @staticmethod
    def upcoming_reminders(days_ahead=None, now=None):
        """
        Unpaid installments due within `days_ahead` days, or already overdue.

        Returns:
            list of dicts: student_id, fee_plan_id, plan_title, due_date,
            amount_due (unpaid part of that installment), days_until_due
        """
        if days_ahead is None:
            days_ahead = getattr(settings, 'CADENZA_REMINDER_DAYS_AHEAD', 7)
        now = now or timezone.now()
        today = now.astimezone(dt_timezone.utc).date()

        reminders = []
        for plan in FeePlan.objects.prefetch_related('payments').order_by('pk'):
            amount_paid = sum((payment.amount_paid for payment in plan.payments.all()), Decimal('0'))
            for due, unpaid in unsatisfied_due_dates(plan.due_dates, amount_paid):
                days_until_due = (due.date - today).days
                if days_until_due > days_ahead:
                    continue
                reminders.append({
                    'student_id': plan.student_id,
                    'fee_plan_id': plan.pk,
                    'plan_title': plan.plan_title,
                    'due_date': due.date,
                    'amount_due': min(unpaid, due.amount),
                    'days_until_due': days_until_due,
                })
        return reminders

    @staticmethod
    def build_message(reminder):
        amount = reminder['amount_due'].quantize(CENT)
        title = reminder['plan_title']
        if reminder['days_until_due'] < 0:
            return (
                f"OVERDUE PAYMENT: Your payment of ₹{amount} for {title} "
                f"was due on {_format_due_date(reminder['due_date'])}."
            )
        if reminder['days_until_due'] == 0:
            return f"PAYMENT DUE TODAY: Your payment of ₹{amount} for {title} is due today."
        return (
            f"PAYMENT REMINDER: Your payment of ₹{amount} for {title} "
            f"is due on {_format_due_date(reminder['due_date'])}."
        )

    @staticmethod
    def create_reminders(days_ahead=None, now=None):
        """
        Queue one in-app reminder per unpaid installment.

        A reminder with the same message for the same plan already queued
        today is not duplicated.

        Returns:
            list: Created Reminder rows
        """
        now = now or timezone.now()
        created = []

        for reminder in PaymentReminderService.upcoming_reminders(days_ahead=days_ahead, now=now):
            message = PaymentReminderService.build_message(reminder)
            already_queued = Reminder.objects.filter(
                type=ReminderType.PAYMENT,
                recipient_id=reminder['student_id'],
                related_id=str(reminder['fee_plan_id']),
                message=message,
                send_at__date=timezone.localdate(now),
            ).exists()
            if already_queued:
                continue

            try:
                with transaction.atomic():
                    reminder_row = Reminder.objects.create(
                        type=ReminderType.PAYMENT,
                        recipient_id=reminder['student_id'],
                        related_id=str(reminder['fee_plan_id']),
                        message=message,
                        send_at=now,
                        status=ReminderStatus.PENDING,
                        channel=ReminderChannel.IN_APP,
                    )
                created.append(reminder_row)
            except DatabaseError as e:
                logger.error(
                    f"Error creating reminder for fee plan {reminder['fee_plan_id']}: {str(e)}",
                    exc_info=True,
                )

        if created:
            publish(PaymentReminderService, CacheNamespaces.REMINDERS)
        logger.info(f"Processed {len(created)} payment reminders")
        return created


def get_plan_or_404(plan_id) -> FeePlan:
    try:
        return FeePlan.objects.select_related('student').get(pk=plan_id)
    except FeePlan.DoesNotExist:
        raise NotFoundError(f"Fee plan {plan_id} not found")
