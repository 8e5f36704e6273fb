# lessons/models.py
from django.db import models
from django.conf import settings
from django.utils import timezone
from django.core.exceptions import ValidationError
import logging

from shared.constants import (
    AttendanceStatus, SubjectType, SessionType, LocationType,
    PackSize, WeeklyFrequency, DUO_CAPACITY,
)

from .conflicts import SessionSlot

logger = logging.getLogger(__name__)


class SessionPack(models.Model):
    """A purchased bundle of lessons for one subject, type and location."""
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='session_packs',
    )
    size = models.PositiveSmallIntegerField(choices=PackSize.choices)
    subject = models.CharField(max_length=20, choices=SubjectType.choices)
    session_type = models.CharField(max_length=10, choices=SessionType.choices)
    location = models.CharField(max_length=10, choices=LocationType.choices)
    weekly_frequency = models.CharField(max_length=10, choices=WeeklyFrequency.choices)

    purchased_date = models.DateTimeField(default=timezone.now)
    expiry_date = models.DateTimeField(null=True, blank=True)
    remaining_sessions = models.PositiveIntegerField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'lessons_session_pack'
        verbose_name = 'Session Pack'
        verbose_name_plural = 'Session Packs'
        ordering = ['-purchased_date']
        indexes = [
            models.Index(fields=['student', 'subject', 'session_type']),
            models.Index(fields=['is_active', 'expiry_date']),
        ]

    def __str__(self):
        return f"{self.student} - {self.subject} {self.session_type} ({self.remaining_sessions}/{self.size})"

    def clean(self):
        if self.size not in PackSize.values:
            raise ValidationError({'size': f"Invalid pack size: {self.size}. Must be one of 4, 10, 20, or 30."})
        if self.remaining_sessions is not None and self.remaining_sessions > self.size:
            raise ValidationError({'remaining_sessions': "Remaining sessions cannot exceed the pack size."})
        if self.expiry_date and self.purchased_date and self.expiry_date < self.purchased_date:
            raise ValidationError({'expiry_date': "Expiry date cannot be before the purchase date."})

    def save(self, *args, **kwargs):
        if self.remaining_sessions is None:
            self.remaining_sessions = self.size
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def is_exhausted(self):
        return self.remaining_sessions == 0

    def is_expired(self, now=None):
        return bool(self.expiry_date and self.expiry_date < (now or timezone.now()))


class Session(models.Model):
    """A single scheduled lesson."""
    teacher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='teaching_sessions',
    )
    pack = models.ForeignKey(
        SessionPack,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sessions',
    )
    students = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through='SessionStudent',
        related_name='lesson_sessions',
        blank=True,
    )

    subject = models.CharField(max_length=20, choices=SubjectType.choices)
    session_type = models.CharField(max_length=10, choices=SessionType.choices)
    location = models.CharField(max_length=10, choices=LocationType.choices)
    date_time = models.DateTimeField()
    duration = models.PositiveIntegerField(help_text="Length in minutes")
    status = models.CharField(
        max_length=30,
        choices=AttendanceStatus.choices,
        default=AttendanceStatus.SCHEDULED,
    )
    notes = models.TextField(blank=True)

    # Reschedule chain
    reschedule_count = models.PositiveIntegerField(default=0)
    original_session = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reschedule_chain',
    )
    rescheduled_from = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='rescheduled_to',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'lessons_session'
        verbose_name = 'Session'
        verbose_name_plural = 'Sessions'
        ordering = ['date_time']
        indexes = [
            models.Index(fields=['teacher', 'date_time']),
            models.Index(fields=['date_time', 'status']),
        ]

    def __str__(self):
        return f"{self.subject} {self.session_type} with {self.teacher} at {self.date_time:%Y-%m-%d %H:%M}"

    def clean(self):
        if not self.duration or self.duration <= 0:
            raise ValidationError({'duration': "Duration must be greater than zero."})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def student_ids(self):
        return tuple(link.student_id for link in self.session_students.all())

    @property
    def end_time(self):
        return self.as_slot().end

    def as_slot(self, student_ids=None):
        """Snapshot for the conflict checker."""
        return SessionSlot(
            id=self.pk,
            date_time=self.date_time,
            duration=self.duration,
            teacher_id=self.teacher_id,
            student_ids=tuple(student_ids) if student_ids is not None else (self.student_ids if self.pk else ()),
            session_type=self.session_type,
            status=self.status,
        )


class SessionStudent(models.Model):
    """Links a student to a session."""
    session = models.ForeignKey(Session, on_delete=models.CASCADE, related_name='session_students')
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='session_links',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'lessons_session_student'
        unique_together = ['session', 'student']
        indexes = [
            models.Index(fields=['student']),
        ]

    def __str__(self):
        return f"{self.student} in session {self.session_id}"

    def clean(self):
        if self.session.session_type == SessionType.DUO:
            others = self.session.session_students.exclude(pk=self.pk).count()
            if others >= DUO_CAPACITY:
                raise ValidationError("Duo sessions cannot have more than 2 students.")


class AttendanceEvent(models.Model):
    """History of status changes for a session."""
    session = models.ForeignKey(Session, on_delete=models.CASCADE, related_name='attendance_events')
    status = models.CharField(max_length=30, choices=AttendanceStatus.choices)
    marked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='marked_attendance',
    )
    marked_at = models.DateTimeField(auto_now_add=True)
    notes = models.TextField(blank=True)

    class Meta:
        db_table = 'lessons_attendance_event'
        verbose_name = 'Attendance Event'
        verbose_name_plural = 'Attendance Events'
        ordering = ['-marked_at']

    def __str__(self):
        return f"Session {self.session_id} marked {self.status}"
