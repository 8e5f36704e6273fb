# lessons/tests/test_services.py
from datetime import datetime, timedelta

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from core.exceptions import ConflictError, ValidationError
from lessons.models import AttendanceEvent, Session, SessionPack
from lessons.services import PackService, SessionService
from shared.constants import AttendanceStatus, SessionType, UserRole
from users.models import User


def at(hour, minute=0, day=2):
    return timezone.make_aware(datetime(2026, 3, day, hour, minute))


class LessonsTestMixin:
    def setUp(self):
        self.teacher = User.objects.create_user(email="teacher@example.com", name="Tara", role=UserRole.TEACHER)
        self.other_teacher = User.objects.create_user(email="other@example.com", name="Omar", role=UserRole.TEACHER)
        self.student = User.objects.create_user(email="sam@example.com", name="Sam", role=UserRole.STUDENT)
        self.second_student = User.objects.create_user(email="sia@example.com", name="Sia", role=UserRole.STUDENT)
        self.pack = PackService.create_pack(self.student, 4, 'Guitar', SessionType.SOLO, 'Online', 'once')

    def book(self, start, teacher=None, students=None, pack=None, duration=60, session_type=SessionType.SOLO):
        return SessionService.create_session(
            teacher=teacher or self.teacher,
            students=students if students is not None else [self.student],
            subject='Guitar',
            session_type=session_type,
            location='Online',
            date_time=start,
            duration=duration,
            pack=pack,
        )


class PackServiceTest(LessonsTestMixin, TestCase):
    def test_create_pack_starts_full(self):
        self.assertEqual(self.pack.remaining_sessions, 4)
        self.assertTrue(self.pack.is_active)

    def test_create_pack_rejects_invalid_size(self):
        with self.assertRaises(ValidationError) as ctx:
            PackService.create_pack(self.student, 7, 'Guitar', SessionType.SOLO, 'Online', 'once')
        self.assertEqual(ctx.exception.message, "Invalid pack size: 7. Must be one of 4, 10, 20, or 30.")

    def test_consume_session_decrements(self):
        PackService.consume_session(self.pack.pk)
        self.pack.refresh_from_db()
        self.assertEqual(self.pack.remaining_sessions, 3)

    def test_consume_never_goes_below_zero(self):
        for _ in range(4):
            PackService.consume_session(self.pack.pk)
        self.pack.refresh_from_db()
        self.assertEqual(self.pack.remaining_sessions, 0)
        self.assertFalse(self.pack.is_active)

        with self.assertRaises(ConflictError):
            PackService.consume_session(self.pack.pk)
        self.pack.refresh_from_db()
        self.assertEqual(self.pack.remaining_sessions, 0)

    def test_find_available_pack_prefers_earliest_expiry(self):
        now = timezone.now()
        later = PackService.create_pack(
            self.student, 10, 'Piano', SessionType.SOLO, 'Online', 'once', expiry_date=now + timedelta(days=60)
        )
        sooner = PackService.create_pack(
            self.student, 10, 'Piano', SessionType.SOLO, 'Online', 'once', expiry_date=now + timedelta(days=10)
        )
        PackService.create_pack(self.student, 10, 'Piano', SessionType.SOLO, 'Online', 'once')

        self.assertEqual(PackService.find_available_pack(self.student.pk, 'Piano', SessionType.SOLO), sooner)
        sooner.is_active = False
        sooner.save()
        self.assertEqual(PackService.find_available_pack(self.student.pk, 'Piano', SessionType.SOLO), later)

    def test_find_available_pack_skips_other_types(self):
        self.assertIsNone(PackService.find_available_pack(self.student.pk, 'Guitar', SessionType.DUO))

    def test_expire_packs(self):
        now = timezone.now()
        expired = PackService.create_pack(
            self.student, 4, 'Drums', SessionType.SOLO, 'Offline', 'twice',
            purchased_date=now - timedelta(days=90), expiry_date=now - timedelta(days=1),
        )
        self.assertEqual(PackService.expire_packs(now), 1)
        expired.refresh_from_db()
        self.pack.refresh_from_db()
        self.assertFalse(expired.is_active)
        self.assertTrue(self.pack.is_active)

    def test_expire_command(self):
        now = timezone.now()
        PackService.create_pack(
            self.student, 4, 'Drums', SessionType.SOLO, 'Offline', 'twice',
            purchased_date=now - timedelta(days=90), expiry_date=now - timedelta(days=1),
        )
        call_command('expire_session_packs', verbosity=0)
        self.assertEqual(SessionPack.objects.filter(is_active=False).count(), 1)


class SessionServiceTest(LessonsTestMixin, TestCase):
    def test_create_session_links_students_and_decrements_pack(self):
        session = self.book(at(10), pack=self.pack)
        self.assertEqual(session.status, AttendanceStatus.SCHEDULED)
        self.assertEqual(session.student_ids, (self.student.pk,))
        self.pack.refresh_from_db()
        self.assertEqual(self.pack.remaining_sessions, 3)

    def test_exhausted_pack_creates_nothing(self):
        SessionPack.objects.filter(pk=self.pack.pk).update(remaining_sessions=0)
        with self.assertRaises(ConflictError):
            self.book(at(10), pack=self.pack)
        self.assertFalse(Session.objects.exists())

    def test_teacher_conflict(self):
        first = self.book(at(10))
        with self.assertRaises(ConflictError) as ctx:
            self.book(at(10, 30), students=[self.second_student])
        self.assertEqual(ctx.exception.details['conflicting_session_id'], first.pk)
        self.assertEqual(Session.objects.count(), 1)

    def test_student_conflict(self):
        self.book(at(10))
        with self.assertRaises(ConflictError):
            self.book(at(10, 30), teacher=self.other_teacher)

    def test_back_to_back_sessions_allowed(self):
        self.book(at(10))
        self.book(at(11))
        self.assertEqual(Session.objects.count(), 2)

    def test_cancelled_session_frees_slot(self):
        first = self.book(at(10))
        SessionService.update_status(first, AttendanceStatus.CANCELLED_BY_STUDENT)
        self.book(at(10))
        self.assertEqual(Session.objects.count(), 2)

    def test_invalid_duration(self):
        with self.assertRaises(ValidationError):
            self.book(at(10), duration=0)

    def test_duo_capacity_on_create(self):
        third = User.objects.create_user(email="third@example.com", name="Tom", role=UserRole.STUDENT)
        with self.assertRaises(ValidationError):
            self.book(at(10), students=[self.student, self.second_student, third], session_type=SessionType.DUO)

    def test_add_students_respects_duo_capacity(self):
        session = self.book(at(10), students=[self.student], session_type=SessionType.DUO)
        SessionService.add_students(session, [self.second_student])
        self.assertEqual(len(session.student_ids), 2)

        third = User.objects.create_user(email="third@example.com", name="Tom", role=UserRole.STUDENT)
        with self.assertRaises(ConflictError):
            SessionService.add_students(session, [third])
        self.assertEqual(len(session.student_ids), 2)

    def test_duo_capacity_holds_for_finished_sessions(self):
        session = self.book(at(10), students=[self.student, self.second_student], session_type=SessionType.DUO)
        SessionService.update_status(session, AttendanceStatus.ABSENT)

        third = User.objects.create_user(email="third@example.com", name="Tom", role=UserRole.STUDENT)
        with self.assertRaises(ConflictError):
            SessionService.add_students(session, [third])
        self.assertEqual(len(session.student_ids), 2)

    def test_long_stored_session_still_conflicts(self):
        Session.objects.create(
            teacher=self.teacher, subject='Guitar', session_type=SessionType.SOLO,
            location='Online', date_time=at(8), duration=300,
        )
        with self.assertRaises(ConflictError):
            self.book(at(12), students=[self.second_student])

    def test_absent_session_frees_slot_for_regular_booking(self):
        first = self.book(at(10))
        SessionService.update_status(first, AttendanceStatus.ABSENT)
        self.book(at(10))
        self.assertEqual(Session.objects.count(), 2)

    def test_update_session_excludes_itself(self):
        session = self.book(at(10))
        SessionService.update_session(session, date_time=at(10, 30))
        session.refresh_from_db()
        self.assertEqual(session.date_time, at(10, 30))

    def test_update_session_detects_conflict(self):
        self.book(at(12))
        session = self.book(at(10))
        with self.assertRaises(ConflictError):
            SessionService.update_session(session, date_time=at(11, 30))

    def test_update_status_writes_event(self):
        session = self.book(at(10))
        SessionService.update_status(session, AttendanceStatus.PRESENT, marked_by=self.teacher, notes="On time")

        session.refresh_from_db()
        self.assertEqual(session.status, AttendanceStatus.PRESENT)
        event = AttendanceEvent.objects.get(session=session)
        self.assertEqual(event.status, AttendanceStatus.PRESENT)
        self.assertEqual(event.marked_by, self.teacher)

    def test_update_status_rejects_unknown(self):
        session = self.book(at(10))
        with self.assertRaises(ValidationError):
            SessionService.update_status(session, 'Late')

    def test_reschedule_links_rows_and_copies_students(self):
        session = self.book(at(10), pack=self.pack)
        replacement = SessionService.reschedule_session(session, at(10, 30))

        session.refresh_from_db()
        self.pack.refresh_from_db()
        self.assertEqual(session.status, AttendanceStatus.CANCELLED_BY_SCHOOL)
        self.assertEqual(replacement.rescheduled_from, session)
        self.assertEqual(replacement.original_session_id, session.pk)
        self.assertEqual(replacement.reschedule_count, 1)
        self.assertEqual(replacement.student_ids, (self.student.pk,))
        self.assertEqual(replacement.pack_id, self.pack.pk)
        # Rescheduling does not charge the pack again
        self.assertEqual(self.pack.remaining_sessions, 3)

        second = SessionService.reschedule_session(replacement, at(15))
        self.assertEqual(second.original_session_id, session.pk)
        self.assertEqual(second.rescheduled_from, replacement)
        self.assertEqual(second.reschedule_count, 2)

    def test_reschedule_into_conflict(self):
        self.book(at(12), students=[self.second_student])
        session = self.book(at(10))
        with self.assertRaises(ConflictError):
            SessionService.reschedule_session(session, at(12, 30))
        session.refresh_from_db()
        self.assertEqual(session.status, AttendanceStatus.SCHEDULED)

    def test_list_sessions_filters(self):
        guitar = self.book(at(10))
        piano = SessionService.create_session(
            teacher=self.other_teacher,
            students=[self.second_student],
            subject='Piano',
            session_type=SessionType.SOLO,
            location='Offline',
            date_time=at(9),
            duration=45,
        )

        self.assertEqual(list(SessionService.list_sessions()), [piano, guitar])
        self.assertEqual(list(SessionService.list_sessions({'teacher_id': self.teacher.pk})), [guitar])
        self.assertEqual(list(SessionService.list_sessions({'subjects': ['Piano']})), [piano])
        self.assertEqual(list(SessionService.list_sessions({'student_id': self.student.pk})), [guitar])
        self.assertEqual(list(SessionService.list_sessions({'location': 'Offline'})), [piano])
        self.assertEqual(list(SessionService.list_sessions(user=self.student)), [guitar])

    def test_available_slots(self):
        self.book(at(10))
        slots = SessionService.available_slots(self.teacher, at(10).date())
        self.assertEqual(slots[0], (at(9), at(10)))
        self.assertEqual(slots[1], (at(11), at(18)))
