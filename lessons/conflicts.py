# lessons/conflicts.py
"""
SESSION CONFLICT DETECTION
==========================

Pure functions over already-fetched sessions. Nothing here touches the
database; callers load the sessions they care about and pass them in as
SessionSlot values (see Session.as_slot()).

Rules:
    teacher  - same teacher, overlapping time
    student  - any shared student, overlapping time
    duo      - adding students to a Duo session would push it past two
"""
import logging
from dataclasses import dataclass
from datetime import datetime, date as date_type, time, timedelta
from typing import Iterable, List, Optional, Tuple

from django.conf import settings
from django.utils import timezone

from core.exceptions import ValidationError
from shared.constants import ACTIVE_STATUSES, CANCELLED_STATUSES, DUO_CAPACITY, SessionType

logger = logging.getLogger(__name__)

CONFLICT_TYPES = ('teacher', 'student', 'duo')

CONFLICT_REASONS = {
    'teacher': 'Teacher is already booked for another session during this time',
    'student': 'Student is already booked for another session during this time',
    'duo': 'Duo sessions cannot have more than 2 students',
}


@dataclass(frozen=True)
class SessionSlot:
    """The parts of a session that matter for conflict checks."""
    id: Optional[int] = None
    date_time: Optional[datetime] = None
    duration: Optional[int] = None
    teacher_id: Optional[int] = None
    student_ids: Tuple = ()
    session_type: Optional[str] = None
    status: Optional[str] = None

    @property
    def end(self) -> Optional[datetime]:
        if self.date_time is None or not self.duration:
            return None
        return self.date_time + timedelta(minutes=self.duration)


@dataclass
class ConflictResult:
    has_conflict: bool = False
    conflicting_session: Optional[SessionSlot] = None
    reason: Optional[str] = None

    def __bool__(self):
        return self.has_conflict


def sessions_overlap(first: SessionSlot, second: SessionSlot) -> bool:
    """
    Half-open interval intersection of [start, start + duration).

    A session ending exactly when another begins does not overlap it.
    """
    if first.end is None or second.end is None:
        return False
    return first.date_time < second.end and second.date_time < first.end


def check_session_conflicts(candidate: SessionSlot, existing: Iterable[SessionSlot],
                            conflict_type: str = 'teacher',
                            statuses: Iterable[str] = ACTIVE_STATUSES) -> ConflictResult:
    """
    Check a candidate session against existing ones under a single rule.

    For the teacher and student rules only sessions whose status is in
    `statuses` take part (Scheduled and Present by default) and the
    candidate's own row is skipped so that editing a session never conflicts
    with itself. The duo rule looks only at that row, whatever its status.

    Args:
        candidate: Session being created or edited (id set when editing)
        existing: Sessions to compare against
        conflict_type: 'teacher', 'student' or 'duo'
        statuses: Session statuses that still occupy their time slot

    Returns:
        ConflictResult for the first matching session

    Raises:
        ValidationError: For an unknown conflict type
    """
    if conflict_type not in CONFLICT_TYPES:
        raise ValidationError(f"Unknown conflict type: {conflict_type}")

    if candidate.date_time is None or not candidate.duration:
        return ConflictResult()

    candidate_students = set(candidate.student_ids or ())
    statuses = set(statuses)

    for other in existing:
        is_same_row = candidate.id is not None and other.id == candidate.id

        if conflict_type == 'duo':
            if (candidate.session_type == SessionType.DUO and is_same_row and
                    len(other.student_ids) + len(candidate.student_ids) > DUO_CAPACITY):
                return ConflictResult(True, other, CONFLICT_REASONS['duo'])
            continue

        if other.status not in statuses:
            continue
        if is_same_row or not sessions_overlap(candidate, other):
            continue

        if conflict_type == 'teacher':
            if candidate.teacher_id is not None and other.teacher_id == candidate.teacher_id:
                return ConflictResult(True, other, CONFLICT_REASONS['teacher'])
        elif candidate_students.intersection(other.student_ids or ()):
            return ConflictResult(True, other, CONFLICT_REASONS['student'])

    return ConflictResult()


def find_available_slots(teacher_id, day: date_type, existing: Iterable[SessionSlot],
                         slot_duration: int = 60, business_hours=None) -> List[Tuple[datetime, datetime]]:
    """
    Free gaps in a teacher's day that fit at least `slot_duration` minutes.

    Business hours default to settings.CADENZA_BUSINESS_HOURS and are read in
    the current time zone. Cancelled sessions leave their time free.

    Returns:
        list of (start, end) aware datetimes in chronological order
    """
    open_hour, close_hour = business_hours or getattr(settings, 'CADENZA_BUSINESS_HOURS', (9, 18))
    tz = timezone.get_current_timezone()
    day_start = timezone.make_aware(datetime.combine(day, time.min), tz)
    day_end = day_start + timedelta(days=1)
    business_start = timezone.make_aware(datetime.combine(day, time(open_hour)), tz)
    business_end = timezone.make_aware(datetime.combine(day, time(close_hour)), tz)

    busy = sorted(
        (
            slot for slot in existing
            if slot.teacher_id == teacher_id
            and slot.date_time is not None
            and day_start <= slot.date_time < day_end
            and slot.status not in CANCELLED_STATUSES
        ),
        key=lambda slot: slot.date_time,
    )

    gap = timedelta(minutes=slot_duration)
    available = []
    cursor = business_start

    for slot in busy:
        if slot.date_time - cursor >= gap:
            available.append((cursor, slot.date_time))
        if slot.end and slot.end > cursor:
            cursor = slot.end

    if business_end - cursor >= gap:
        available.append((cursor, business_end))

    return available
