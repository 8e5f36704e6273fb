# bulk_uploads/importers.py
"""
BULK IMPORT PIPELINE
====================

Turns parsed CSV rows into students, session packs or sessions. Every row is
handled on its own: a bad row is recorded in the report and the batch moves
on. Rows are numbered as they appear in the file, so the first data row
(right under the header) is row 2.

Each row runs in its own savepoint. A row either lands completely or leaves
nothing behind; rows committed before a failure stay committed.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Dict, Iterable, List

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.db import DatabaseError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from core.exceptions import ConflictError, MusicSchoolException, NotFoundError, ValidationError
from lessons.services import PackService, SessionService
from shared.constants import BOOKED_STATUSES, UploadStatus, UploadType, UserRole
from shared.utils import CacheNamespaces
from users.services import UserService, split_subjects

logger = logging.getLogger(__name__)

HEADER_OFFSET = 2


# ============ REPORT ============

@dataclass
class ImportReport:
    """Per-row outcome of one import run."""
    success: List[Dict] = field(default_factory=list)
    errors: List[Dict] = field(default_factory=list)
    warnings: List[Dict] = field(default_factory=list)
    success_count: int = 0
    failure_count: int = 0
    # Set when the file itself could not be read; no row was attempted
    aborted: bool = False

    @classmethod
    def file_error(cls, message, row=0):
        return cls(errors=[{'row': row, 'message': message}], aborted=True)

    def record_success(self, row, record_id):
        self.success.append({'row': row, 'id': record_id})
        self.success_count += 1

    def record_error(self, row, message):
        self.errors.append({'row': row, 'message': message})
        self.failure_count += 1

    def record_warning(self, row, message):
        self.warnings.append({'row': row, 'message': message})

    @property
    def final_status(self):
        if self.aborted:
            return UploadStatus.FAILED
        if self.failure_count > 0 and self.success_count == 0:
            return UploadStatus.FAILED
        return UploadStatus.COMPLETED

    def as_summary(self):
        return {
            'success': list(self.success),
            'errors': list(self.errors),
            'warnings': list(self.warnings),
        }


# ============ ROW HELPERS ============

def clean_row(row) -> Dict[str, str]:
    """Strip cell whitespace; missing cells become empty strings."""
    return {
        key.strip(): (value or '').strip()
        for key, value in row.items()
        if key is not None
    }


def parse_datetime_value(value, column) -> datetime:
    """
    Parse an ISO date or datetime cell.

    Naive values are read in the school's timezone; a bare date means
    midnight.
    """
    try:
        parsed = parse_datetime(value)
        if parsed is None:
            day = parse_date(value)
            parsed = datetime.combine(day, time.min) if day else None
    except ValueError:
        parsed = None

    if parsed is None:
        raise ValidationError(f"Invalid {column}: {value}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def parse_int_value(value, column) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {column}: {value}")


def _missing(row, columns):
    return any(not row.get(column) for column in columns)


# ============ IMPORTERS ============

class BaseImporter:
    """Runs `import_row` over every row and collects the outcomes."""

    upload_type = None
    # Data sets touched by a successful row
    namespaces = ()

    def run(self, rows: Iterable[Dict]) -> ImportReport:
        report = ImportReport()

        for index, raw_row in enumerate(rows):
            row_number = index + HEADER_OFFSET
            row = clean_row(raw_row)
            try:
                with transaction.atomic():
                    self.import_row(row, row_number, report)
            except MusicSchoolException as e:
                report.record_error(row_number, e.message)
            except DatabaseError as e:
                logger.error(f"{self.upload_type} import row {row_number} failed: {str(e)}", exc_info=True)
                report.record_error(row_number, f"Error: {str(e)}")

        logger.info(
            f"{self.upload_type} import finished: {report.success_count} succeeded, "
            f"{report.failure_count} failed, {len(report.warnings)} warnings"
        )
        return report

    def import_row(self, row: Dict[str, str], row_number: int, report: ImportReport) -> None:
        raise NotImplementedError


class StudentImporter(BaseImporter):
    """Columns: name, email, preferred_subjects (comma separated), notes."""

    upload_type = UploadType.STUDENTS
    namespaces = (CacheNamespaces.STUDENTS,)

    def import_row(self, row, row_number, report):
        if _missing(row, ('name', 'email')):
            raise ValidationError("Missing required fields: name and email are required")

        email = row['email']
        try:
            validate_email(email)
        except DjangoValidationError:
            raise ValidationError(f"Invalid email: {email}")

        if UserService.email_exists(email):
            report.record_warning(row_number, f"User with email {email} already exists")
            return

        user, _ = UserService.create_student(
            name=row['name'],
            email=email,
            preferred_subjects=split_subjects(row.get('preferred_subjects')),
            notes=row.get('notes', ''),
        )
        report.record_success(row_number, user.pk)


class SessionPackImporter(BaseImporter):
    """
    Columns: student_email or student_id, size, subject, session_type,
    location, weekly_frequency, purchased_date, expiry_date.
    """

    upload_type = UploadType.SESSION_PACKS
    namespaces = (CacheNamespaces.PACKS,)
    REQUIRED = ('size', 'subject', 'session_type', 'location', 'weekly_frequency')

    def import_row(self, row, row_number, report):
        if _missing(row, ('student_email',)) and _missing(row, ('student_id',)):
            raise ValidationError("Missing student identifier: student_email or student_id required")
        if _missing(row, self.REQUIRED):
            raise ValidationError(
                "Missing required fields: size, subject, session_type, location, "
                "and weekly_frequency are required"
            )

        student = UserService.resolve(
            user_id=row.get('student_id'),
            email=row.get('student_email'),
            role=UserRole.STUDENT,
            label='Student',
        )

        purchased_date = None
        if row.get('purchased_date'):
            purchased_date = parse_datetime_value(row['purchased_date'], 'purchased_date')
        expiry_date = None
        if row.get('expiry_date'):
            expiry_date = parse_datetime_value(row['expiry_date'], 'expiry_date')

        pack = PackService.create_pack(
            student,
            size=row['size'],
            subject=row['subject'],
            session_type=row['session_type'],
            location=row['location'],
            weekly_frequency=row['weekly_frequency'],
            purchased_date=purchased_date,
            expiry_date=expiry_date,
        )
        report.record_success(row_number, pack.pk)


class SessionImporter(BaseImporter):
    """
    Columns: teacher_email or teacher_id, student_email or student_id,
    date_time, subject, session_type, location, duration, notes.

    The session draws from the student's matching pack with the soonest
    expiry and must not overlap another lesson of the same teacher
    unless that lesson was cancelled.
    """

    upload_type = UploadType.SESSIONS
    namespaces = (CacheNamespaces.SESSIONS, CacheNamespaces.PACKS)
    REQUIRED = ('date_time', 'subject', 'session_type', 'location', 'duration')

    def import_row(self, row, row_number, report):
        if _missing(row, ('teacher_email',)) and _missing(row, ('teacher_id',)):
            raise ValidationError("Missing teacher identifier: teacher_email or teacher_id required")
        if _missing(row, ('student_email',)) and _missing(row, ('student_id',)):
            raise ValidationError("Missing student identifier: student_email or student_id required")
        if _missing(row, self.REQUIRED):
            raise ValidationError(
                "Missing required fields: date_time, subject, session_type, location, "
                "and duration are required"
            )

        teacher = UserService.resolve(
            user_id=row.get('teacher_id'),
            email=row.get('teacher_email'),
            role=UserRole.TEACHER,
            label='Teacher',
        )
        student = UserService.resolve(
            user_id=row.get('student_id'),
            email=row.get('student_email'),
            role=UserRole.STUDENT,
            label='Student',
        )

        date_time = parse_datetime_value(row['date_time'], 'date_time')
        duration = parse_int_value(row['duration'], 'duration')

        subject, session_type = row['subject'], row['session_type']
        pack = PackService.find_available_pack(student.pk, subject, session_type)
        if pack is None:
            raise NotFoundError(
                f"No active session pack found for student with subject {subject} "
                f"and session type {session_type}"
            )

        try:
            session = SessionService.create_session(
                teacher=teacher,
                students=[student],
                subject=subject,
                session_type=session_type,
                location=row['location'],
                date_time=date_time,
                duration=duration,
                pack=pack,
                notes=row.get('notes', ''),
                conflict_types=('teacher',),
                statuses=BOOKED_STATUSES,
            )
        except ConflictError as e:
            if e.conflicting_session is None:
                raise
            raise ConflictError(
                "Teacher has a scheduling conflict at the requested time",
                conflicting_session=e.conflicting_session,
            ) from e

        report.record_success(row_number, session.pk)


IMPORTERS = {
    UploadType.STUDENTS: StudentImporter,
    UploadType.SESSION_PACKS: SessionPackImporter,
    UploadType.SESSIONS: SessionImporter,
}


def get_importer(upload_type) -> BaseImporter:
    """
    Importer for an upload type.

    Raises:
        ValidationError: Unknown upload type
    """
    importer_class = IMPORTERS.get(upload_type)
    if importer_class is None:
        raise ValidationError("Invalid upload type")
    return importer_class()
