# lessons/serializers.py
from rest_framework import serializers

from shared.constants import (
    AttendanceStatus, SubjectType, SessionType, LocationType, PackSize, WeeklyFrequency,
)

from .models import Session, SessionPack, AttendanceEvent


# ============ OUTPUT ============

class SessionPackSerializer(serializers.ModelSerializer):
    student_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = SessionPack
        fields = (
            'id', 'student_id', 'size', 'subject', 'session_type', 'location',
            'weekly_frequency', 'purchased_date', 'expiry_date',
            'remaining_sessions', 'is_active', 'created_at', 'updated_at',
        )
        read_only_fields = fields


class SessionSerializer(serializers.ModelSerializer):
    teacher_id = serializers.IntegerField(read_only=True)
    pack_id = serializers.IntegerField(read_only=True, allow_null=True)
    original_session_id = serializers.IntegerField(read_only=True, allow_null=True)
    rescheduled_from_id = serializers.IntegerField(read_only=True, allow_null=True)
    student_ids = serializers.SerializerMethodField()

    class Meta:
        model = Session
        fields = (
            'id', 'teacher_id', 'pack_id', 'student_ids', 'subject', 'session_type',
            'location', 'date_time', 'duration', 'status', 'notes', 'reschedule_count',
            'original_session_id', 'rescheduled_from_id', 'created_at', 'updated_at',
        )
        read_only_fields = fields

    def get_student_ids(self, obj):
        return list(obj.student_ids)


class AttendanceEventSerializer(serializers.ModelSerializer):
    session_id = serializers.IntegerField(read_only=True)
    marked_by_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = AttendanceEvent
        fields = ('id', 'session_id', 'status', 'marked_by_id', 'marked_at', 'notes')
        read_only_fields = fields


# ============ INPUT ============

class SessionCreateSerializer(serializers.Serializer):
    teacher_id = serializers.IntegerField()
    student_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=True, default=list)
    pack_id = serializers.IntegerField(required=False, allow_null=True)
    subject = serializers.ChoiceField(choices=SubjectType.choices)
    session_type = serializers.ChoiceField(choices=SessionType.choices)
    location = serializers.ChoiceField(choices=LocationType.choices)
    date_time = serializers.DateTimeField()
    duration = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['session_type'] == SessionType.DUO and len(set(attrs['student_ids'])) > 2:
            raise serializers.ValidationError("Duo sessions cannot have more than 2 students")
        return attrs


class SessionUpdateSerializer(serializers.Serializer):
    teacher_id = serializers.IntegerField(required=False)
    date_time = serializers.DateTimeField(required=False)
    duration = serializers.IntegerField(min_value=1, required=False)
    subject = serializers.ChoiceField(choices=SubjectType.choices, required=False)
    location = serializers.ChoiceField(choices=LocationType.choices, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=AttendanceStatus.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class RescheduleSerializer(serializers.Serializer):
    date_time = serializers.DateTimeField()
    duration = serializers.IntegerField(min_value=1, required=False)
    teacher_id = serializers.IntegerField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True)


class AddStudentsSerializer(serializers.Serializer):
    student_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


class ConflictCheckSerializer(serializers.Serializer):
    id = serializers.IntegerField(required=False, allow_null=True)
    teacher_id = serializers.IntegerField(required=False, allow_null=True)
    student_ids = serializers.ListField(child=serializers.IntegerField(), required=False, default=list)
    session_type = serializers.ChoiceField(choices=SessionType.choices, required=False, allow_null=True)
    date_time = serializers.DateTimeField(required=False, allow_null=True)
    duration = serializers.IntegerField(required=False, allow_null=True)
    conflict_types = serializers.ListField(
        child=serializers.ChoiceField(choices=('teacher', 'student', 'duo')),
        required=False,
        default=lambda: ['teacher', 'student'],
    )


class PackCreateSerializer(serializers.Serializer):
    student_id = serializers.IntegerField()
    size = serializers.ChoiceField(choices=PackSize.choices)
    subject = serializers.ChoiceField(choices=SubjectType.choices)
    session_type = serializers.ChoiceField(choices=SessionType.choices)
    location = serializers.ChoiceField(choices=LocationType.choices)
    weekly_frequency = serializers.ChoiceField(choices=WeeklyFrequency.choices)
    purchased_date = serializers.DateTimeField(required=False, allow_null=True)
    expiry_date = serializers.DateTimeField(required=False, allow_null=True)


class PackUpdateSerializer(serializers.Serializer):
    subject = serializers.ChoiceField(choices=SubjectType.choices, required=False)
    session_type = serializers.ChoiceField(choices=SessionType.choices, required=False)
    location = serializers.ChoiceField(choices=LocationType.choices, required=False)
    weekly_frequency = serializers.ChoiceField(choices=WeeklyFrequency.choices, required=False)
    expiry_date = serializers.DateTimeField(required=False, allow_null=True)
    is_active = serializers.BooleanField(required=False)
