# shared/constants/choices.py

"""
Domain vocabulary shared by every app.
NO DEPENDENCIES beyond Django - safe to import from models.
"""
from django.db import models


class UserRole(models.TextChoices):
    ADMIN = 'admin', 'Admin'
    TEACHER = 'teacher', 'Teacher'
    STUDENT = 'student', 'Student'


class AttendanceStatus(models.TextChoices):
    SCHEDULED = 'Scheduled', 'Scheduled'
    PRESENT = 'Present', 'Present'
    ABSENT = 'Absent', 'Absent'
    CANCELLED_BY_STUDENT = 'Cancelled by Student', 'Cancelled by Student'
    CANCELLED_BY_TEACHER = 'Cancelled by Teacher', 'Cancelled by Teacher'
    CANCELLED_BY_SCHOOL = 'Cancelled by School', 'Cancelled by School'
    NO_SHOW = 'No Show', 'No Show'


# Statuses that free the time slot
CANCELLED_STATUSES = (
    AttendanceStatus.CANCELLED_BY_STUDENT,
    AttendanceStatus.CANCELLED_BY_TEACHER,
    AttendanceStatus.CANCELLED_BY_SCHOOL,
)

# Statuses that still occupy the time slot for conflict checks
ACTIVE_STATUSES = (
    AttendanceStatus.SCHEDULED,
    AttendanceStatus.PRESENT,
)

# Every status that was not cancelled; imported sessions must not overlap these
BOOKED_STATUSES = tuple(
    status for status in AttendanceStatus.values if status not in CANCELLED_STATUSES
)


class SubjectType(models.TextChoices):
    GUITAR = 'Guitar', 'Guitar'
    PIANO = 'Piano', 'Piano'
    DRUMS = 'Drums', 'Drums'
    UKULELE = 'Ukulele', 'Ukulele'
    VOCAL = 'Vocal', 'Vocal'


class SessionType(models.TextChoices):
    SOLO = 'Solo', 'Solo'
    DUO = 'Duo', 'Duo'
    FOCUS = 'Focus', 'Focus'


DUO_CAPACITY = 2


class LocationType(models.TextChoices):
    ONLINE = 'Online', 'Online'
    OFFLINE = 'Offline', 'Offline'


class PackSize(models.IntegerChoices):
    FOUR = 4, '4 sessions'
    TEN = 10, '10 sessions'
    TWENTY = 20, '20 sessions'
    THIRTY = 30, '30 sessions'


class WeeklyFrequency(models.TextChoices):
    ONCE = 'once', 'Once a week'
    TWICE = 'twice', 'Twice a week'


class PaymentMode(models.TextChoices):
    CASH = 'cash', 'Cash'
    UPI = 'upi', 'UPI'
    CARD = 'card', 'Card'
    BANK_TRANSFER = 'bank_transfer', 'Bank Transfer'
    OTHER = 'other', 'Other'


class PaymentStatus:
    PAID = 'paid'
    OVERDUE = 'overdue'
    PARTIALLY_PAID = 'partially_paid'
    PENDING = 'pending'


class UploadType(models.TextChoices):
    STUDENTS = 'students', 'Students'
    SESSION_PACKS = 'session_packs', 'Session Packs'
    SESSIONS = 'sessions', 'Sessions'


class UploadStatus(models.TextChoices):
    PROCESSING = 'processing', 'Processing'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'


class ReminderType(models.TextChoices):
    SESSION = 'session', 'Session'
    PAYMENT = 'payment', 'Payment'
    ENROLLMENT = 'enrollment', 'Enrollment'
    OTHER = 'other', 'Other'


class ReminderStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    SENT = 'sent', 'Sent'
    FAILED = 'failed', 'Failed'
    CANCELLED = 'cancelled', 'Cancelled'


class ReminderChannel(models.TextChoices):
    EMAIL = 'email', 'Email'
    IN_APP = 'in_app', 'In App'
    SMS = 'sms', 'SMS'
    PUSH = 'push', 'Push'
