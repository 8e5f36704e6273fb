# billing/fee_plans.py
"""
FEE PLAN SUMMARY
================

Reduces a fee plan's due-date schedule and its payments to the figures shown
on the billing dashboard. Payments are applied to the schedule as a running
total, oldest due date first; they are never matched to a specific due date.

Pure functions: callers load the plan and payments, nothing here hits the
database.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Iterator, List, Optional, Tuple

from django.utils import timezone

from shared.constants import PaymentStatus

ZERO = Decimal('0')
CENT = Decimal('0.01')
ONE_DAY = timedelta(days=1)


def to_money(value) -> Decimal:
    """Coerce numbers and numeric strings to Decimal without float noise."""
    if value is None or value == '':
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _field(obj, name):
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


@dataclass(frozen=True)
class DueDate:
    date: date
    amount: Decimal
    description: str = ''

    @property
    def due_at(self) -> datetime:
        """The due date as an instant: midnight UTC."""
        return datetime.combine(self.date, time.min, tzinfo=dt_timezone.utc)


def parse_due_dates(raw_dates) -> List[DueDate]:
    """Parse stored due-date entries, sorted by date ascending."""
    schedule = []
    for entry in raw_dates or []:
        raw_date = entry['date']
        if isinstance(raw_date, datetime):
            raw_date = raw_date.date()
        elif not isinstance(raw_date, date):
            raw_date = date.fromisoformat(str(raw_date)[:10])
        schedule.append(DueDate(raw_date, to_money(entry['amount']), entry.get('description') or ''))
    return sorted(schedule, key=lambda due: due.date)


def unsatisfied_due_dates(raw_dates, amount_paid: Decimal) -> Iterator[Tuple[DueDate, Decimal]]:
    """
    Yield (due_date, unpaid) for every due date the payments do not cover.

    `unpaid` is the shortfall against the running total up to and including
    that due date.
    """
    running_total = ZERO
    for due in parse_due_dates(raw_dates):
        running_total += due.amount
        if amount_paid < running_total:
            yield due, running_total - amount_paid


def days_past_due(due: DueDate, now: datetime) -> int:
    """Whole days elapsed since the due date, negative when still ahead."""
    return (now - due.due_at) // ONE_DAY


@dataclass
class FeePlanSummary:
    total_amount: Decimal
    amount_paid: Decimal
    remaining_amount: Decimal
    payment_percentage: Decimal
    next_due_date: Optional[date]
    next_due_amount: Optional[Decimal]
    late_fee: Decimal
    days_overdue: int
    status: str

    def to_dict(self):
        def money(value):
            return str(value.quantize(CENT, rounding=ROUND_HALF_UP)) if value is not None else None

        return {
            'total_amount': money(self.total_amount),
            'amount_paid': money(self.amount_paid),
            'remaining_amount': money(self.remaining_amount),
            'payment_percentage': money(self.payment_percentage),
            'next_due_date': self.next_due_date.isoformat() if self.next_due_date else None,
            'next_due_amount': money(self.next_due_amount),
            'late_fee': money(self.late_fee),
            'days_overdue': self.days_overdue,
            'status': self.status,
        }


def calculate_fee_plan_summary(plan, payments: Iterable, now: Optional[datetime] = None) -> FeePlanSummary:
    """
    Summarize what has been paid against a fee plan and what is owed next.

    The late fee is the single worst candidate across overdue due dates,
    min(days_past_due * rate_per_day * unpaid, maximum), not a sum.

    Args:
        plan: FeePlan (or a dict with the same keys)
        payments: Payments (or dicts) carrying amount_paid
        now: Reference instant, defaults to timezone.now()

    Returns:
        FeePlanSummary
    """
    now = now or timezone.now()

    total_amount = to_money(_field(plan, 'total_amount'))
    amount_paid = sum((to_money(_field(payment, 'amount_paid')) for payment in payments), ZERO)
    remaining_amount = total_amount - amount_paid
    payment_percentage = (amount_paid / total_amount * 100) if total_amount > 0 else ZERO

    policy = _field(plan, 'late_fee_policy')
    rate_per_day = to_money(policy.get('rate_per_day')) if policy else ZERO
    maximum = to_money(policy.get('maximum')) if policy else ZERO

    next_due = None
    next_due_amount = None
    late_fee = ZERO
    days_overdue = 0

    for due, unpaid in unsatisfied_due_dates(_field(plan, 'due_dates'), amount_paid):
        if next_due is None or due.date < next_due.date:
            next_due = due
            next_due_amount = unpaid

        if due.due_at < now:
            days = days_past_due(due, now)
            if days > 0 and policy:
                candidate = min(days * rate_per_day * unpaid, maximum)
                if candidate > late_fee:
                    late_fee = candidate
                    days_overdue = days

    if remaining_amount <= 0:
        status = PaymentStatus.PAID
    elif next_due is not None and next_due.due_at < now:
        status = PaymentStatus.OVERDUE
    elif amount_paid > 0:
        status = PaymentStatus.PARTIALLY_PAID
    else:
        status = PaymentStatus.PENDING

    return FeePlanSummary(
        total_amount=total_amount,
        amount_paid=amount_paid,
        remaining_amount=remaining_amount,
        payment_percentage=payment_percentage,
        next_due_date=next_due.date if next_due else None,
        next_due_amount=next_due_amount,
        late_fee=late_fee,
        days_overdue=days_overdue,
        status=status,
    )
