# billing/serializers.py
from rest_framework import serializers

from shared.constants import PaymentMode

from .models import FeePlan, Payment, Reminder


class DueDateSerializer(serializers.Serializer):
    date = serializers.DateField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    description = serializers.CharField(required=False, allow_blank=True, default='')

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        # Stored as JSON
        return {
            'date': value['date'].isoformat(),
            'amount': str(value['amount']),
            'description': value['description'],
        }


class LateFeePolicySerializer(serializers.Serializer):
    rate_per_day = serializers.DecimalField(max_digits=8, decimal_places=4, min_value=0)
    maximum = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        return {'rate_per_day': str(value['rate_per_day']), 'maximum': str(value['maximum'])}


class FeePlanSerializer(serializers.ModelSerializer):
    student_id = serializers.IntegerField()
    due_dates = DueDateSerializer(many=True, required=False)
    late_fee_policy = LateFeePolicySerializer(required=False, allow_null=True)

    class Meta:
        model = FeePlan
        fields = (
            'id', 'student_id', 'plan_title', 'total_amount', 'due_dates',
            'late_fee_policy', 'created_at', 'updated_at',
        )
        read_only_fields = ('id', 'created_at', 'updated_at')


class PaymentSerializer(serializers.ModelSerializer):
    student_id = serializers.IntegerField()
    fee_plan_id = serializers.IntegerField()
    payment_mode = serializers.ChoiceField(choices=PaymentMode.choices, default=PaymentMode.CASH)

    class Meta:
        model = Payment
        fields = ('id', 'student_id', 'fee_plan_id', 'amount_paid', 'paid_at', 'payment_mode', 'notes', 'created_at')
        read_only_fields = ('id', 'created_at')
        extra_kwargs = {
            'paid_at': {'required': False},
            'notes': {'required': False},
        }


class ReminderSerializer(serializers.ModelSerializer):
    recipient_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Reminder
        fields = ('id', 'type', 'recipient_id', 'related_id', 'message', 'send_at', 'sent_at', 'status', 'channel')
        read_only_fields = fields
