# billing/models.py
from django.db import models
from django.conf import settings
from django.utils import timezone
from django.core.validators import MinValueValidator
from decimal import Decimal, InvalidOperation
from datetime import date
import logging

from shared.constants import PaymentMode, ReminderType, ReminderStatus, ReminderChannel

logger = logging.getLogger(__name__)


class FeePlan(models.Model):
    """
    Installment schedule for what a student owes.

    due_dates holds [{"date": "YYYY-MM-DD", "amount": "2500.00", "description": "..."}].
    late_fee_policy is {"rate_per_day": "0.01", "maximum": "500"} or null.
    """
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='fee_plans',
    )
    plan_title = models.CharField(max_length=200)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    due_dates = models.JSONField(default=list, blank=True)
    late_fee_policy = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'billing_fee_plan'
        ordering = ['-created_at']
        verbose_name = 'Fee Plan'
        verbose_name_plural = 'Fee Plans'
        indexes = [
            models.Index(fields=['student']),
        ]

    def __str__(self):
        return f"{self.plan_title} - {self.student}"

    def clean(self):
        """Validate the due date schedule and late fee policy."""
        from django.core.exceptions import ValidationError

        if not isinstance(self.due_dates, list):
            raise ValidationError({'due_dates': 'Due dates must be a list.'})

        for index, entry in enumerate(self.due_dates):
            if not isinstance(entry, dict) or 'date' not in entry or 'amount' not in entry:
                raise ValidationError({'due_dates': f'Entry {index + 1} needs a date and an amount.'})
            try:
                date.fromisoformat(str(entry['date'])[:10])
            except ValueError:
                raise ValidationError({'due_dates': f"Entry {index + 1} has an invalid date: {entry['date']}"})
            try:
                amount = Decimal(str(entry['amount']))
            except InvalidOperation:
                raise ValidationError({'due_dates': f"Entry {index + 1} has an invalid amount: {entry['amount']}"})
            if amount < 0:
                raise ValidationError({'due_dates': f'Entry {index + 1} has a negative amount.'})

        if self.late_fee_policy:
            policy = self.late_fee_policy
            if not isinstance(policy, dict) or 'rate_per_day' not in policy or 'maximum' not in policy:
                raise ValidationError({'late_fee_policy': 'Late fee policy needs rate_per_day and maximum.'})
            try:
                rate = Decimal(str(policy['rate_per_day']))
                maximum = Decimal(str(policy['maximum']))
            except InvalidOperation:
                raise ValidationError({'late_fee_policy': 'Late fee rate and maximum must be numbers.'})
            if rate < 0 or maximum < 0:
                raise ValidationError({'late_fee_policy': 'Late fee rate and maximum cannot be negative.'})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    @property
    def scheduled_total(self):
        return sum((Decimal(str(entry['amount'])) for entry in self.due_dates), Decimal('0'))


class Payment(models.Model):
    """Money received against a fee plan."""
    student = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='payments',
    )
    fee_plan = models.ForeignKey(FeePlan, on_delete=models.CASCADE, related_name='payments')
    amount_paid = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))],
    )
    paid_at = models.DateTimeField(default=timezone.now)
    payment_mode = models.CharField(max_length=20, choices=PaymentMode.choices, default=PaymentMode.CASH)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'billing_payment'
        ordering = ['-paid_at']
        indexes = [
            models.Index(fields=['fee_plan', 'paid_at']),
            models.Index(fields=['student']),
        ]

    def __str__(self):
        return f"₹{self.amount_paid} from {self.student} on {self.paid_at:%Y-%m-%d}"

    def clean(self):
        from django.core.exceptions import ValidationError

        if self.fee_plan_id and self.student_id and self.fee_plan.student_id != self.student_id:
            raise ValidationError("Payment student does not match the fee plan student.")

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class Reminder(models.Model):
    """A message queued for a user. Delivery happens elsewhere."""
    type = models.CharField(max_length=20, choices=ReminderType.choices)
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='reminders',
    )
    related_id = models.CharField(max_length=64, blank=True)
    message = models.TextField()
    send_at = models.DateTimeField(default=timezone.now)
    sent_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=ReminderStatus.choices, default=ReminderStatus.PENDING)
    channel = models.CharField(max_length=20, choices=ReminderChannel.choices, default=ReminderChannel.IN_APP)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'billing_reminder'
        ordering = ['-send_at']
        indexes = [
            models.Index(fields=['recipient', 'status']),
            models.Index(fields=['type', 'related_id']),
        ]

    def __str__(self):
        return f"{self.get_type_display()} reminder for {self.recipient} ({self.status})"
