# bulk_uploads/tests/test_importers.py
from datetime import datetime

from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from bulk_uploads.importers import (
    ImportReport, SessionImporter, SessionPackImporter, StudentImporter,
    clean_row, get_importer, parse_datetime_value,
)
from core.exceptions import ValidationError
from lessons.models import Session, SessionPack
from lessons.services import PackService, SessionService
from shared.constants import AttendanceStatus, SessionType, UploadStatus, UploadType, UserRole
from users.models import StudentProfile, User


class ImportReportTest(SimpleTestCase):
    def test_failed_only_when_nothing_succeeded(self):
        report = ImportReport()
        report.record_error(2, "bad")
        self.assertEqual(report.final_status, UploadStatus.FAILED)

        report.record_success(3, 10)
        self.assertEqual(report.final_status, UploadStatus.COMPLETED)

    def test_empty_and_warning_only_runs_complete(self):
        self.assertEqual(ImportReport().final_status, UploadStatus.COMPLETED)

        report = ImportReport()
        report.record_warning(2, "duplicate")
        self.assertEqual(report.final_status, UploadStatus.COMPLETED)
        self.assertEqual(report.failure_count, 0)

    def test_file_error_fails(self):
        report = ImportReport.file_error("Failed to download file")
        self.assertEqual(report.final_status, UploadStatus.FAILED)
        self.assertEqual(report.as_summary()['errors'], [{'row': 0, 'message': "Failed to download file"}])

    def test_clean_row(self):
        self.assertEqual(
            clean_row({' name ': ' Sam ', 'email': None, None: ['extra']}),
            {'name': 'Sam', 'email': ''},
        )

    def test_naive_datetime_uses_school_timezone(self):
        parsed = parse_datetime_value('2026-03-02 10:00', 'date_time')
        self.assertEqual(parsed, timezone.make_aware(datetime(2026, 3, 2, 10, 0)))

    def test_bad_datetime(self):
        with self.assertRaises(ValidationError) as ctx:
            parse_datetime_value('tomorrow', 'date_time')
        self.assertEqual(ctx.exception.message, "Invalid date_time: tomorrow")

    def test_unknown_importer(self):
        self.assertIsInstance(get_importer(UploadType.SESSIONS), SessionImporter)
        with self.assertRaises(ValidationError):
            get_importer('teachers')


class StudentImporterTest(TestCase):
    def setUp(self):
        User.objects.create_user(email="sam@example.com", name="Sam", role=UserRole.STUDENT)

    def test_creates_students_and_skips_duplicates(self):
        report = StudentImporter().run([
            {'name': 'Ria', 'email': 'ria@example.com', 'preferred_subjects': 'Piano, Vocal', 'notes': 'Evenings'},
            {'name': 'Sam Again', 'email': 'SAM@example.com', 'preferred_subjects': '', 'notes': ''},
            {'name': '', 'email': 'nobody@example.com'},
        ])

        self.assertEqual(report.success_count, 1)
        self.assertEqual(report.failure_count, 1)
        self.assertEqual(report.warnings, [{'row': 3, 'message': "User with email SAM@example.com already exists"}])
        self.assertEqual(report.errors, [{'row': 4, 'message': "Missing required fields: name and email are required"}])
        self.assertEqual(User.objects.filter(email__iexact='sam@example.com').count(), 1)

        ria = User.objects.get(email='ria@example.com')
        self.assertEqual(report.success, [{'row': 2, 'id': ria.pk}])
        self.assertEqual(ria.role, UserRole.STUDENT)
        profile = StudentProfile.objects.get(user=ria)
        self.assertEqual(profile.preferred_subjects, ['Piano', 'Vocal'])
        self.assertEqual(profile.notes, 'Evenings')

    def test_invalid_email(self):
        report = StudentImporter().run([{'name': 'Ria', 'email': 'not-an-email'}])
        self.assertEqual(report.errors, [{'row': 2, 'message': "Invalid email: not-an-email"}])
        self.assertEqual(report.final_status, UploadStatus.FAILED)


class SessionPackImporterTest(TestCase):
    def setUp(self):
        self.student = User.objects.create_user(email="sam@example.com", name="Sam", role=UserRole.STUDENT)

    def row(self, **overrides):
        row = {
            'student_email': 'sam@example.com', 'student_id': '', 'size': '10', 'subject': 'Piano',
            'session_type': 'Solo', 'location': 'Offline', 'weekly_frequency': 'once',
            'purchased_date': '', 'expiry_date': '',
        }
        row.update(overrides)
        return row

    def test_creates_full_active_pack(self):
        report = SessionPackImporter().run([self.row(expiry_date='2099-12-31')])

        self.assertEqual(report.success_count, 1)
        pack = SessionPack.objects.get(pk=report.success[0]['id'])
        self.assertEqual(pack.student, self.student)
        self.assertEqual(pack.remaining_sessions, 10)
        self.assertTrue(pack.is_active)
        self.assertEqual(timezone.localdate(pack.expiry_date).isoformat(), '2099-12-31')

    def test_row_errors_do_not_stop_the_batch(self):
        report = SessionPackImporter().run([
            self.row(size='7'),
            self.row(student_email='', student_id=''),
            self.row(subject=''),
            self.row(student_email='ghost@example.com'),
            self.row(),
        ])

        self.assertEqual(report.errors, [
            {'row': 2, 'message': "Invalid pack size: 7. Must be one of 4, 10, 20, or 30."},
            {'row': 3, 'message': "Missing student identifier: student_email or student_id required"},
            {'row': 4, 'message': (
                "Missing required fields: size, subject, session_type, location, "
                "and weekly_frequency are required"
            )},
            {'row': 5, 'message': "Student with email ghost@example.com not found"},
        ])
        self.assertEqual(report.success_count, 1)
        self.assertEqual(report.final_status, UploadStatus.COMPLETED)
        self.assertEqual(SessionPack.objects.count(), 1)

    def test_student_id_skips_email_lookup(self):
        report = SessionPackImporter().run([self.row(student_email='', student_id=str(self.student.pk))])
        self.assertEqual(report.success_count, 1)

    def test_unknown_student_id(self):
        report = SessionPackImporter().run([self.row(student_email='', student_id='999999')])
        self.assertEqual(report.errors[0]['message'], "Student with id 999999 not found")

    def test_invalid_subject(self):
        report = SessionPackImporter().run([self.row(subject='Violin')])
        self.assertEqual(report.failure_count, 1)
        self.assertFalse(SessionPack.objects.exists())


class SessionImporterTest(TestCase):
    def setUp(self):
        self.teacher = User.objects.create_user(email="tara@example.com", name="Tara", role=UserRole.TEACHER)
        self.student = User.objects.create_user(email="sam@example.com", name="Sam", role=UserRole.STUDENT)
        self.pack = PackService.create_pack(self.student, 4, 'Guitar', SessionType.SOLO, 'Online', 'once')

    def row(self, **overrides):
        row = {
            'teacher_email': 'tara@example.com', 'teacher_id': '',
            'student_email': 'sam@example.com', 'student_id': '',
            'date_time': '2026-03-02T10:00:00+05:30', 'subject': 'Guitar', 'session_type': 'Solo',
            'location': 'Online', 'duration': '60', 'notes': 'Imported',
        }
        row.update(overrides)
        return row

    def test_books_session_and_charges_pack(self):
        report = SessionImporter().run([self.row()])

        self.assertEqual(report.success_count, 1)
        self.assertEqual(report.errors, [])
        session = Session.objects.get(pk=report.success[0]['id'])
        self.assertEqual(session.teacher, self.teacher)
        self.assertEqual(session.pack, self.pack)
        self.assertEqual(list(session.student_ids), [self.student.pk])
        self.assertEqual(session.notes, 'Imported')

        self.pack.refresh_from_db()
        self.assertEqual(self.pack.remaining_sessions, 3)

    def test_no_matching_pack(self):
        report = SessionImporter().run([self.row(subject='Piano')])

        self.assertEqual(report.errors, [{
            'row': 2,
            'message': "No active session pack found for student with subject Piano and session type Solo",
        }])
        self.assertEqual(report.failure_count, 1)
        self.assertFalse(Session.objects.exists())

    def test_teacher_conflict(self):
        report = SessionImporter().run([
            self.row(),
            self.row(date_time='2026-03-02T10:30:00+05:30'),
            self.row(date_time='2026-03-02T11:00:00+05:30'),
        ])

        self.assertEqual(report.errors, [
            {'row': 3, 'message': "Teacher has a scheduling conflict at the requested time"},
        ])
        self.assertEqual(report.success_count, 2)
        self.pack.refresh_from_db()
        self.assertEqual(self.pack.remaining_sessions, 2)

    def test_cancelled_sessions_do_not_block(self):
        session = SessionService.create_session(
            teacher=self.teacher, students=[self.student], subject='Guitar', session_type=SessionType.SOLO,
            location='Online', date_time=parse_datetime_value('2026-03-02T10:00:00+05:30', 'date_time'),
            duration=60,
        )
        SessionService.update_status(session, 'Cancelled by Teacher')

        report = SessionImporter().run([self.row()])
        self.assertEqual(report.success_count, 1)

    def test_absent_and_no_show_sessions_still_block(self):
        for status in (AttendanceStatus.ABSENT, AttendanceStatus.NO_SHOW):
            Session.objects.all().delete()
            session = SessionService.create_session(
                teacher=self.teacher, students=[self.student], subject='Guitar', session_type=SessionType.SOLO,
                location='Online', date_time=parse_datetime_value('2026-03-02T10:00:00+05:30', 'date_time'),
                duration=60,
            )
            SessionService.update_status(session, status)

            report = SessionImporter().run([self.row()])
            self.assertEqual(report.success_count, 0, status)
            self.assertEqual(report.errors, [
                {'row': 2, 'message': "Teacher has a scheduling conflict at the requested time"},
            ], status)

    def test_exhausted_pack_is_not_used(self):
        for _ in range(4):
            PackService.consume_session(self.pack.pk)

        report = SessionImporter().run([self.row()])
        self.assertEqual(report.failure_count, 1)
        self.assertFalse(Session.objects.exists())

    def test_missing_identifiers_and_fields(self):
        report = SessionImporter().run([
            self.row(teacher_email=''),
            self.row(student_email=''),
            self.row(duration=''),
            self.row(teacher_email='sam@example.com'),
        ])

        self.assertEqual([error['message'] for error in report.errors], [
            "Missing teacher identifier: teacher_email or teacher_id required",
            "Missing student identifier: student_email or student_id required",
            "Missing required fields: date_time, subject, session_type, location, and duration are required",
            "Teacher with email sam@example.com not found",
        ])
        self.assertEqual(report.final_status, UploadStatus.FAILED)

    def test_bad_duration(self):
        report = SessionImporter().run([self.row(duration='an hour')])
        self.assertEqual(report.errors[0]['message'], "Invalid duration: an hour")
        self.pack.refresh_from_db()
        self.assertEqual(self.pack.remaining_sessions, 4)
