# shared/constants/__init__.py
from .choices import (
    UserRole,
    AttendanceStatus,
    CANCELLED_STATUSES,
    ACTIVE_STATUSES,
    BOOKED_STATUSES,
    SubjectType,
    SessionType,
    DUO_CAPACITY,
    LocationType,
    PackSize,
    WeeklyFrequency,
    PaymentMode,
    PaymentStatus,
    UploadType,
    UploadStatus,
    ReminderType,
    ReminderStatus,
    ReminderChannel,
)

__all__ = [
    'UserRole',
    'AttendanceStatus',
    'CANCELLED_STATUSES',
    'ACTIVE_STATUSES',
    'BOOKED_STATUSES',
    'SubjectType',
    'SessionType',
    'DUO_CAPACITY',
    'LocationType',
    'PackSize',
    'WeeklyFrequency',
    'PaymentMode',
    'PaymentStatus',
    'UploadType',
    'UploadStatus',
    'ReminderType',
    'ReminderStatus',
    'ReminderChannel',
]
