# lessons/admin.py
from django.contrib import admin

from .models import SessionPack, Session, SessionStudent, AttendanceEvent


class SessionStudentInline(admin.TabularInline):
    model = SessionStudent
    extra = 0
    raw_id_fields = ('student',)


class AttendanceEventInline(admin.TabularInline):
    model = AttendanceEvent
    extra = 0
    readonly_fields = ('status', 'marked_by', 'marked_at', 'notes')
    can_delete = False


@admin.register(SessionPack)
class SessionPackAdmin(admin.ModelAdmin):
    list_display = ('student', 'subject', 'session_type', 'size', 'remaining_sessions', 'is_active', 'expiry_date')
    list_filter = ('is_active', 'subject', 'session_type', 'location')
    search_fields = ('student__email', 'student__name')
    raw_id_fields = ('student',)
    # Decrements go through PackService.consume_session
    readonly_fields = ('remaining_sessions', 'created_at', 'updated_at')


@admin.register(Session)
class SessionAdmin(admin.ModelAdmin):
    list_display = ('date_time', 'teacher', 'subject', 'session_type', 'location', 'duration', 'status')
    list_filter = ('status', 'subject', 'session_type', 'location')
    search_fields = ('teacher__email', 'teacher__name', 'notes')
    date_hierarchy = 'date_time'
    raw_id_fields = ('teacher', 'pack', 'original_session', 'rescheduled_from')
    readonly_fields = ('reschedule_count', 'created_at', 'updated_at')
    inlines = [SessionStudentInline, AttendanceEventInline]
