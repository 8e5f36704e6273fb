# lessons/views.py
"""
LESSONS API
===========

Thin JSON wrappers around SessionService / PackService. Mutating endpoints
return an `invalidates` list naming the data sets the client should refetch.
"""
import logging
from datetime import date as date_type

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from core.exceptions import RolePermissionError, ValidationError
from shared.constants import UserRole
from shared.decorators.permissions import PermissionChecker, require_admin, require_role
from shared.utils import CacheNamespaces
from users.services import UserService

from .conflicts import SessionSlot, check_session_conflicts
from .models import Session, SessionPack
from .serializers import (
    AddStudentsSerializer, AttendanceEventSerializer, ConflictCheckSerializer,
    PackCreateSerializer, PackUpdateSerializer, RescheduleSerializer,
    SessionCreateSerializer, SessionPackSerializer, SessionSerializer,
    SessionUpdateSerializer, StatusUpdateSerializer,
)
from .services import PackService, SessionService

logger = logging.getLogger(__name__)


# ============ HELPER FUNCTIONS ============

def _students(student_ids):
    return [UserService.resolve(user_id=pk, role=UserRole.STUDENT, label='Student') for pk in student_ids]


def _teacher(teacher_id):
    return UserService.resolve(user_id=teacher_id, role=UserRole.TEACHER, label='Teacher')


def _session_queryset():
    return Session.objects.select_related('teacher', 'pack').prefetch_related('session_students')


def _check_can_view_session(user, session):
    if PermissionChecker.has_role(user, (UserRole.ADMIN, UserRole.TEACHER)):
        return
    if user.pk not in session.student_ids:
        raise RolePermissionError("You can only view your own sessions.")


# ============ SESSIONS ============

@api_view(['GET', 'POST'])
def sessions_view(request):
    """List sessions (filtered) or book a new one."""
    if request.method == 'GET':
        params = request.query_params
        filters = {
            'teacher_id': params.get('teacher_id'),
            'student_id': params.get('student_id'),
            'date_from': params.get('date_from'),
            'date_to': params.get('date_to'),
            'subjects': params.getlist('subject'),
            'session_types': params.getlist('session_type'),
            'statuses': params.getlist('status'),
            'location': params.get('location'),
        }
        sessions = SessionService.list_sessions(filters, user=request.user)
        return Response({'success': True, 'data': SessionSerializer(sessions, many=True).data})

    if not PermissionChecker.is_admin(request.user):
        raise RolePermissionError("Only admins can book sessions.")

    serializer = SessionCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    pack = None
    if data.get('pack_id'):
        pack = get_object_or_404(SessionPack, pk=data['pack_id'])

    session = SessionService.create_session(
        teacher=_teacher(data['teacher_id']),
        students=_students(data['student_ids']),
        subject=data['subject'],
        session_type=data['session_type'],
        location=data['location'],
        date_time=data['date_time'],
        duration=data['duration'],
        pack=pack,
        notes=data['notes'],
    )
    session = _session_queryset().get(pk=session.pk)
    return Response({
        'success': True,
        'data': SessionSerializer(session).data,
        'invalidates': [CacheNamespaces.PACKS, CacheNamespaces.SESSIONS],
    }, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH'])
def session_detail_view(request, session_id):
    session = get_object_or_404(_session_queryset(), pk=session_id)

    if request.method == 'GET':
        _check_can_view_session(request.user, session)
        return Response({'success': True, 'data': SessionSerializer(session).data})

    if not PermissionChecker.is_admin(request.user):
        raise RolePermissionError("Only admins can edit sessions.")

    serializer = SessionUpdateSerializer(data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    changes = dict(serializer.validated_data)
    if 'teacher_id' in changes:
        changes['teacher'] = _teacher(changes.pop('teacher_id'))

    session = SessionService.update_session(session, **changes)
    return Response({
        'success': True,
        'data': SessionSerializer(session).data,
        'invalidates': [CacheNamespaces.SESSIONS],
    })


@api_view(['POST'])
@require_role(UserRole.ADMIN, UserRole.TEACHER)
def session_status_view(request, session_id):
    """Mark attendance. Teachers may only mark their own sessions."""
    session = get_object_or_404(_session_queryset(), pk=session_id)

    if not PermissionChecker.is_admin(request.user) and session.teacher_id != request.user.pk:
        raise RolePermissionError("You can only mark attendance for your own sessions.")

    serializer = StatusUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    session = SessionService.update_status(
        session,
        serializer.validated_data['status'],
        marked_by=request.user,
        notes=serializer.validated_data['notes'],
    )
    latest_event = session.attendance_events.first()
    return Response({
        'success': True,
        'data': SessionSerializer(session).data,
        'event': AttendanceEventSerializer(latest_event).data,
        'invalidates': [CacheNamespaces.SESSIONS],
    })


@api_view(['POST'])
@require_admin
def session_reschedule_view(request, session_id):
    session = get_object_or_404(_session_queryset(), pk=session_id)

    serializer = RescheduleSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    replacement = SessionService.reschedule_session(
        session,
        new_date_time=data['date_time'],
        new_duration=data.get('duration'),
        new_teacher=_teacher(data['teacher_id']) if data.get('teacher_id') else None,
        new_notes=data.get('notes'),
    )
    replacement = _session_queryset().get(pk=replacement.pk)
    return Response({
        'success': True,
        'data': SessionSerializer(replacement).data,
        'invalidates': [CacheNamespaces.SESSIONS],
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@require_admin
def session_students_view(request, session_id):
    session = get_object_or_404(_session_queryset(), pk=session_id)

    serializer = AddStudentsSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    SessionService.add_students(session, _students(serializer.validated_data['student_ids']))
    session = _session_queryset().get(pk=session.pk)
    return Response({
        'success': True,
        'data': SessionSerializer(session).data,
        'invalidates': [CacheNamespaces.SESSIONS],
    })


@api_view(['POST'])
@require_role(UserRole.ADMIN, UserRole.TEACHER)
def conflict_check_view(request):
    """
    Dry-run conflict check for a candidate session.

    Returns the first conflict found across the requested rules.
    """
    serializer = ConflictCheckSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    candidate = SessionSlot(
        id=data.get('id'),
        date_time=data.get('date_time'),
        duration=data.get('duration'),
        teacher_id=data.get('teacher_id'),
        student_ids=tuple(data['student_ids']),
        session_type=data.get('session_type'),
    )

    result = None
    if candidate.date_time is not None and candidate.duration:
        existing = SessionService.load_slots(
            SessionService.nearby_sessions(
                candidate.date_time,
                candidate.duration,
                teacher_id=candidate.teacher_id,
                student_ids=candidate.student_ids,
            )
        )
        if candidate.id is not None:
            own = Session.objects.filter(pk=candidate.id)
            existing = [slot for slot in existing if slot.id != candidate.id]
            existing.extend(SessionService.load_slots(own))

        for conflict_type in data['conflict_types']:
            result = check_session_conflicts(candidate, existing, conflict_type)
            if result.has_conflict:
                break

    conflicting = result.conflicting_session if result and result.has_conflict else None
    return Response({
        'success': True,
        'data': {
            'has_conflict': bool(conflicting),
            'conflicting_session_id': conflicting.id if conflicting else None,
            'reason': result.reason if conflicting else None,
        },
    })


@api_view(['GET'])
@require_role(UserRole.ADMIN, UserRole.TEACHER)
def teacher_slots_view(request, teacher_id):
    """Free slots for a teacher on ?date=YYYY-MM-DD."""
    teacher = _teacher(teacher_id)
    try:
        day = date_type.fromisoformat(request.query_params.get('date', ''))
        slot_duration = int(request.query_params.get('slot_duration', 60))
    except ValueError:
        raise ValidationError("Provide date as YYYY-MM-DD and slot_duration in minutes")

    slots = SessionService.available_slots(teacher, day, slot_duration)
    return Response({
        'success': True,
        'data': [{'start': start.isoformat(), 'end': end.isoformat()} for start, end in slots],
    })


# ============ SESSION PACKS ============

@api_view(['GET', 'POST'])
def packs_view(request):
    if request.method == 'GET':
        packs = PackService.packs_for(request.user)
        student_id = request.query_params.get('student_id')
        if student_id:
            packs = packs.filter(student_id=student_id)
        if request.query_params.get('active') == 'true':
            packs = packs.filter(is_active=True)
        return Response({'success': True, 'data': SessionPackSerializer(packs, many=True).data})

    if not PermissionChecker.is_admin(request.user):
        raise RolePermissionError("Only admins can create session packs.")

    serializer = PackCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data)

    student = UserService.resolve(user_id=data.pop('student_id'), role=UserRole.STUDENT, label='Student')
    pack = PackService.create_pack(student, **data)
    return Response({
        'success': True,
        'data': SessionPackSerializer(pack).data,
        'invalidates': [CacheNamespaces.PACKS],
    }, status=status.HTTP_201_CREATED)


@api_view(['PATCH'])
@require_admin
def pack_detail_view(request, pack_id):
    pack = get_object_or_404(SessionPack, pk=pack_id)

    serializer = PackUpdateSerializer(data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)

    pack = PackService.update_pack(pack, **serializer.validated_data)
    return Response({
        'success': True,
        'data': SessionPackSerializer(pack).data,
        'invalidates': [CacheNamespaces.PACKS],
    })
