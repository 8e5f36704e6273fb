# lessons/services.py
"""
SCHEDULING SERVICES
===================

Booking, rescheduling and attendance for lessons, plus session pack
bookkeeping. Every write goes through these classes so conflict checks,
pack decrements and cache invalidation happen in one place.
"""
import logging
from datetime import datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.db.models import F, Max, Q
from django.utils import timezone

from core.exceptions import ConflictError, TransportError, ValidationError
from shared.constants import (
    ACTIVE_STATUSES, CANCELLED_STATUSES, DUO_CAPACITY,
    AttendanceStatus, PackSize, SessionType, UserRole,
)
from shared.utils import CacheNamespaces, publish
from users.models import User

from .conflicts import SessionSlot, check_session_conflicts, find_available_slots
from .models import AttendanceEvent, Session, SessionPack, SessionStudent

logger = logging.getLogger(__name__)


def _max_session_minutes():
    return getattr(settings, 'CADENZA_MAX_SESSION_MINUTES', 240)


# ============ PACK SERVICE ============

class PackService:
    """Session pack purchase, consumption and expiry."""

    @staticmethod
    def create_pack(student, size, subject, session_type, location, weekly_frequency,
                    purchased_date=None, expiry_date=None) -> SessionPack:
        """
        Create an active pack with every session still available.

        Raises:
            ValidationError: If the size is not a sellable pack size
        """
        try:
            size = int(size)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid pack size: {size}. Must be one of 4, 10, 20, or 30.")

        if size not in PackSize.values:
            raise ValidationError(f"Invalid pack size: {size}. Must be one of 4, 10, 20, or 30.")

        try:
            pack = SessionPack.objects.create(
                student=student,
                size=size,
                subject=subject,
                session_type=session_type,
                location=location,
                weekly_frequency=weekly_frequency,
                purchased_date=purchased_date or timezone.now(),
                expiry_date=expiry_date,
                remaining_sessions=size,
                is_active=True,
            )
        except DjangoValidationError as e:
            raise ValidationError("; ".join(e.messages), details=getattr(e, "message_dict", None)) from e
        except DatabaseError as e:
            logger.error(f"Failed to create session pack for student {student.pk}: {str(e)}", exc_info=True)
            raise TransportError("Could not create session pack") from e

        publish(PackService, CacheNamespaces.PACKS)
        logger.info(f"Session pack {pack.pk} created: {size} x {subject} {session_type} for student {student.pk}")
        return pack

    @staticmethod
    def update_pack(pack: SessionPack, **changes) -> SessionPack:
        """Edit pack attributes. Remaining sessions are managed by consume_session."""
        allowed = {'subject', 'session_type', 'location', 'weekly_frequency', 'expiry_date', 'is_active'}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Cannot update pack fields: {', '.join(sorted(unknown))}")

        for name, value in changes.items():
            setattr(pack, name, value)
        pack.save()

        publish(PackService, CacheNamespaces.PACKS)
        return pack

    @staticmethod
    def find_available_pack(student_id, subject, session_type) -> Optional[SessionPack]:
        """
        The pack a new lesson should draw from.

        Active packs with sessions left for the same subject and session type,
        soonest expiry first; packs without an expiry date come last.
        """
        return (
            SessionPack.objects
            .filter(
                student_id=student_id,
                subject=subject,
                session_type=session_type,
                is_active=True,
                remaining_sessions__gt=0,
            )
            .order_by(F('expiry_date').asc(nulls_last=True), 'purchased_date', 'pk')
            .first()
        )

    @staticmethod
    def consume_session(pack_id) -> None:
        """
        Take one session off a pack.

        The decrement is a single conditional UPDATE, so two bookings racing
        for the last session cannot both succeed. A pack that reaches zero is
        deactivated.

        Raises:
            ConflictError: If the pack has no sessions left or is inactive
        """
        updated = SessionPack.objects.filter(
            pk=pack_id,
            is_active=True,
            remaining_sessions__gt=0,
        ).update(
            remaining_sessions=F('remaining_sessions') - 1,
            updated_at=timezone.now(),
        )

        if updated == 0:
            raise ConflictError(
                "Session pack has no remaining sessions",
                details={'pack_id': pack_id},
            )

        SessionPack.objects.filter(pk=pack_id, remaining_sessions=0).update(is_active=False)
        publish(PackService, CacheNamespaces.PACKS)

    @staticmethod
    def expire_packs(now=None) -> int:
        """
        Deactivate packs whose expiry date has passed.

        Returns:
            int: Number of packs deactivated
        """
        now = now or timezone.now()
        expired = SessionPack.objects.filter(is_active=True, expiry_date__lt=now).update(
            is_active=False,
            updated_at=now,
        )
        if expired:
            publish(PackService, CacheNamespaces.PACKS)
            logger.info(f"Deactivated {expired} expired session packs")
        return expired

    @staticmethod
    def packs_for(user):
        queryset = SessionPack.objects.select_related('student')
        if getattr(user, 'role', None) == UserRole.STUDENT and not user.is_superuser:
            queryset = queryset.filter(student=user)
        return queryset


# ============ SESSION SERVICE ============

class SessionService:
    """Booking, rescheduling and attendance for lessons."""

    @staticmethod
    def load_slots(queryset) -> List[SessionSlot]:
        return [session.as_slot() for session in queryset.prefetch_related('session_students')]

    @staticmethod
    def nearby_sessions(date_time, duration, teacher_id=None, student_ids=(), exclude_ids=(),
                        statuses=ACTIVE_STATUSES):
        """
        Sessions in `statuses` that could overlap [date_time, date_time + duration).

        The lookback window is the longest stored session (never shorter than
        CADENZA_MAX_SESSION_MINUTES), so rows saved before the limit was
        lowered are still found.
        """
        end = date_time + timedelta(minutes=duration)
        longest = Session.objects.aggregate(longest=Max('duration'))['longest'] or 0
        earliest = date_time - timedelta(minutes=max(longest, _max_session_minutes()))

        people = Q()
        if teacher_id is not None:
            people |= Q(teacher_id=teacher_id)
        if student_ids:
            people |= Q(session_students__student_id__in=list(student_ids))
        if not people:
            return Session.objects.none()

        return (
            Session.objects
            .filter(people, status__in=list(statuses), date_time__lt=end, date_time__gt=earliest)
            .exclude(pk__in=[pk for pk in exclude_ids if pk is not None])
            .distinct()
        )

    @staticmethod
    def check_conflicts(candidate: SessionSlot, conflict_types: Sequence[str] = ('teacher', 'student'),
                        exclude_ids: Iterable = (), statuses: Iterable[str] = ACTIVE_STATUSES) -> None:
        """
        Run conflict rules against stored sessions.

        Raises:
            ConflictError: With the first conflicting session
        """
        if candidate.date_time is None or not candidate.duration:
            return

        existing = SessionService.load_slots(
            SessionService.nearby_sessions(
                candidate.date_time,
                candidate.duration,
                teacher_id=candidate.teacher_id,
                student_ids=candidate.student_ids,
                exclude_ids=exclude_ids,
                statuses=statuses,
            )
        )

        for conflict_type in conflict_types:
            result = check_session_conflicts(candidate, existing, conflict_type, statuses)
            if result.has_conflict:
                logger.info(
                    f"Conflict ({conflict_type}) for teacher {candidate.teacher_id} at "
                    f"{candidate.date_time.isoformat()}: session {result.conflicting_session.id}"
                )
                raise ConflictError(result.reason, conflicting_session=result.conflicting_session)

    @staticmethod
    def _validate_booking(date_time, duration, session_type, student_ids):
        if date_time is None:
            raise ValidationError("Session date and time are required")
        try:
            duration = int(duration)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid duration: {duration}")
        if duration <= 0:
            raise ValidationError("Duration must be greater than zero")
        if duration > _max_session_minutes():
            raise ValidationError(f"Sessions cannot be longer than {_max_session_minutes()} minutes")
        if session_type == SessionType.DUO and len(set(student_ids)) > DUO_CAPACITY:
            raise ValidationError("Duo sessions cannot have more than 2 students")
        return duration

    @staticmethod
    def book_session(teacher, students, subject, session_type, location, date_time, duration,
                     pack=None, notes='', status=AttendanceStatus.SCHEDULED, charge_pack=True, **extra) -> Session:
        """
        Create the session, link its students and take one session off the pack.

        All three writes share one transaction: if linking or the pack
        decrement fails nothing is kept.
        """
        with transaction.atomic():
            session = Session.objects.create(
                teacher=teacher,
                pack=pack,
                subject=subject,
                session_type=session_type,
                location=location,
                date_time=date_time,
                duration=duration,
                notes=notes or '',
                status=status,
                **extra,
            )
            SessionStudent.objects.bulk_create(
                [SessionStudent(session=session, student=student) for student in students]
            )
            if pack is not None and charge_pack:
                PackService.consume_session(pack.pk)

        publish(SessionService, CacheNamespaces.SESSIONS)
        return session

    @staticmethod
    def create_session(teacher, students, subject, session_type, location, date_time, duration,
                       pack=None, notes='', conflict_types=('teacher', 'student'),
                       statuses=ACTIVE_STATUSES) -> Session:
        """
        Book a new lesson.

        Args:
            teacher: Teacher user
            students: Student users taking part
            pack: Pack to draw from, or None to book without one
            conflict_types: Conflict rules to enforce before writing
            statuses: Statuses of existing sessions that block the time slot

        Returns:
            Session: The booked session

        Raises:
            ValidationError: Bad duration, missing time or too many Duo students
            ConflictError: Teacher or student already booked, or pack exhausted
            TransportError: Database failure
        """
        students = list(students)
        student_ids = tuple(student.pk for student in students)
        duration = SessionService._validate_booking(date_time, duration, session_type, student_ids)

        if pack is not None and pack.student_id not in student_ids:
            raise ValidationError("Session pack does not belong to any student in this session")

        candidate = SessionSlot(
            date_time=date_time,
            duration=duration,
            teacher_id=teacher.pk,
            student_ids=student_ids,
            session_type=session_type,
            status=AttendanceStatus.SCHEDULED,
        )
        SessionService.check_conflicts(candidate, conflict_types, statuses=statuses)

        try:
            session = SessionService.book_session(
                teacher, students, subject, session_type, location, date_time, duration,
                pack=pack, notes=notes,
            )
        except DjangoValidationError as e:
            raise ValidationError("; ".join(e.messages), details=getattr(e, "message_dict", None)) from e
        except DatabaseError as e:
            logger.error(f"Failed to book session for teacher {teacher.pk}: {str(e)}", exc_info=True)
            raise TransportError("Could not book session") from e

        logger.info(f"Session {session.pk} booked for teacher {teacher.pk} at {date_time.isoformat()}")
        return session

    @staticmethod
    def update_session(session: Session, **changes) -> Session:
        """
        Edit a session. Moving it in time or to another teacher re-runs the
        teacher and student conflict checks with the session itself excluded.
        """
        allowed = {'teacher', 'date_time', 'duration', 'subject', 'location', 'notes'}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Cannot update session fields: {', '.join(sorted(unknown))}")

        moved = any(
            name in changes and changes[name] != getattr(session, name)
            for name in ('teacher', 'date_time', 'duration')
        )

        for name, value in changes.items():
            setattr(session, name, value)

        if moved:
            session.duration = SessionService._validate_booking(
                session.date_time, session.duration, session.session_type, session.student_ids
            )
            SessionService.check_conflicts(session.as_slot(), ('teacher', 'student'), exclude_ids=[session.pk])

        session.save()
        publish(SessionService, CacheNamespaces.SESSIONS)
        return session

    @staticmethod
    @transaction.atomic
    def add_students(session: Session, students) -> Session:
        """
        Add students to an existing session.

        Raises:
            ConflictError: If a Duo session would exceed two students, or a
                student is busy elsewhere at that time
        """
        current = set(session.student_ids)
        new_students = [student for student in students if student.pk not in current]
        if not new_students:
            return session

        new_ids = tuple(student.pk for student in new_students)
        candidate = SessionSlot(
            id=session.pk,
            date_time=session.date_time,
            duration=session.duration,
            teacher_id=session.teacher_id,
            student_ids=new_ids,
            session_type=session.session_type,
            status=session.status,
        )

        duo = check_session_conflicts(candidate, [session.as_slot()], 'duo')
        if duo.has_conflict:
            raise ConflictError(duo.reason, conflicting_session=duo.conflicting_session)

        student_only = SessionSlot(
            id=session.pk,
            date_time=session.date_time,
            duration=session.duration,
            student_ids=new_ids,
        )
        SessionService.check_conflicts(student_only, ('student',), exclude_ids=[session.pk])

        SessionStudent.objects.bulk_create(
            [SessionStudent(session=session, student=student) for student in new_students]
        )
        publish(SessionService, CacheNamespaces.SESSIONS)
        logger.info(f"Added {len(new_students)} students to session {session.pk}")
        return session

    @staticmethod
    @transaction.atomic
    def update_status(session: Session, status, marked_by=None, notes='') -> Session:
        """Record attendance for a session and keep the history row."""
        if status not in AttendanceStatus.values:
            raise ValidationError(f"Invalid attendance status: {status}")

        previous = session.status
        session.status = status
        session.save(update_fields=['status', 'updated_at'])

        AttendanceEvent.objects.create(
            session=session,
            status=status,
            marked_by=marked_by,
            notes=notes or '',
        )

        publish(SessionService, CacheNamespaces.SESSIONS)
        logger.info(f"Session {session.pk} status changed from '{previous}' to '{status}'")
        return session

    @staticmethod
    def reschedule_session(session: Session, new_date_time, new_duration=None,
                           new_teacher=None, new_notes=None) -> Session:
        """
        Move a lesson to a new time.

        A new session row is booked with the same students and pack (the
        pack is not charged again) and linked back to the session it
        replaces; the old row is cancelled by the school.

        Raises:
            ConflictError: If the new slot clashes with another session
        """
        duration = new_duration or session.duration
        teacher = new_teacher or session.teacher
        student_ids = session.student_ids
        duration = SessionService._validate_booking(new_date_time, duration, session.session_type, student_ids)

        candidate = SessionSlot(
            date_time=new_date_time,
            duration=duration,
            teacher_id=teacher.pk,
            student_ids=student_ids,
            session_type=session.session_type,
            status=AttendanceStatus.SCHEDULED,
        )
        SessionService.check_conflicts(candidate, ('teacher', 'student'), exclude_ids=[session.pk])

        with transaction.atomic():
            replacement = SessionService.book_session(
                teacher,
                [link.student for link in session.session_students.select_related('student')],
                session.subject,
                session.session_type,
                session.location,
                new_date_time,
                duration,
                pack=session.pack,
                charge_pack=False,
                notes=new_notes if new_notes is not None else session.notes,
                original_session_id=session.original_session_id or session.pk,
                rescheduled_from=session,
                reschedule_count=session.reschedule_count + 1,
            )
            if session.status not in CANCELLED_STATUSES:
                SessionService.update_status(
                    session,
                    AttendanceStatus.CANCELLED_BY_SCHOOL,
                    notes=f"Rescheduled to session {replacement.pk}",
                )

        logger.info(f"Session {session.pk} rescheduled as session {replacement.pk}")
        return replacement

    @staticmethod
    def list_sessions(filters: Optional[Dict] = None, user=None):
        """
        Sessions matching the given filters, earliest first.

        Supported filters: teacher_id, student_id, date_from, date_to,
        subject / subjects, session_type / session_types, location,
        status / statuses.
        """
        filters = filters or {}
        queryset = Session.objects.select_related('teacher', 'pack').prefetch_related('session_students')

        if user is not None and not user.is_superuser:
            if user.role == UserRole.STUDENT:
                queryset = queryset.filter(session_students__student=user)

        if filters.get('teacher_id'):
            queryset = queryset.filter(teacher_id=filters['teacher_id'])
        if filters.get('student_id'):
            queryset = queryset.filter(session_students__student_id=filters['student_id'])
        if filters.get('date_from'):
            queryset = queryset.filter(date_time__gte=filters['date_from'])
        if filters.get('date_to'):
            queryset = queryset.filter(date_time__lte=filters['date_to'])

        for single, many, column in (
            ('subject', 'subjects', 'subject'),
            ('session_type', 'session_types', 'session_type'),
            ('status', 'statuses', 'status'),
        ):
            values = list(filters.get(many) or [])
            if filters.get(single):
                values.append(filters[single])
            if values:
                queryset = queryset.filter(**{f'{column}__in': values})

        if filters.get('location'):
            queryset = queryset.filter(location=filters['location'])

        return queryset.distinct().order_by('date_time')

    @staticmethod
    def available_slots(teacher: User, day, slot_duration=60):
        tz = timezone.get_current_timezone()
        start = timezone.make_aware(datetime.combine(day, time.min), tz)
        sessions = Session.objects.filter(
            teacher=teacher,
            date_time__gte=start,
            date_time__lt=start + timedelta(days=1),
        )
        return find_available_slots(teacher.pk, day, SessionService.load_slots(sessions), slot_duration)
