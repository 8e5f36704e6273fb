# billing/admin.py
from django.contrib import admin

from .models import FeePlan, Payment, Reminder
from .services import FeePlanService


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    fields = ['amount_paid', 'paid_at', 'payment_mode', 'notes']
    raw_id_fields = ['student']


@admin.register(FeePlan)
class FeePlanAdmin(admin.ModelAdmin):
    list_display = ['plan_title', 'student', 'total_amount', 'payment_status', 'created_at']
    search_fields = ['plan_title', 'student__email', 'student__name']
    raw_id_fields = ['student']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [PaymentInline]

    fieldsets = (
        ('Plan', {
            'fields': ('student', 'plan_title', 'total_amount')
        }),
        ('Schedule', {
            'fields': ('due_dates', 'late_fee_policy')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def payment_status(self, obj):
        return FeePlanService.get_summary(obj).status
    payment_status.short_description = 'Status'


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ['student', 'fee_plan', 'amount_paid', 'payment_mode', 'paid_at']
    list_filter = ['payment_mode', 'paid_at']
    search_fields = ['student__email', 'student__name', 'fee_plan__plan_title']
    raw_id_fields = ['student', 'fee_plan']
    date_hierarchy = 'paid_at'


@admin.register(Reminder)
class ReminderAdmin(admin.ModelAdmin):
    list_display = ['recipient', 'type', 'status', 'channel', 'send_at', 'sent_at']
    list_filter = ['type', 'status', 'channel']
    search_fields = ['recipient__email', 'message']
    raw_id_fields = ['recipient']
    readonly_fields = ['created_at']
