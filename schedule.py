"""
schedule.py
Weekly payment schedule: 4 slots per customer, due on Fridays.

A slot that reaches `paid` is locked; every later edit is rejected with
InvalidTransition. Amount recomputes (discounts) still touch all 4 slots.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta

from errors import InvalidTransition, ValidationError
from logger import get_logger
from models import PaymentSlot, PaymentStatus
from money import normalize_amount

logger = get_logger(__name__)

SCHEDULE_WEEKS = 4
FRIDAY = 4  # date.weekday()

DATE_FORMAT = "%d/%m/%Y"
DATETIME_FORMAT = "%d/%m/%Y %H:%M"


def parse_date(text: str | None) -> date | None:
    """Read the DD/MM/YYYY part of "DD/MM/YYYY" or "DD/MM/YYYY HH:MM"."""
    if not text:
        return None
    try:
        return datetime.strptime(text.strip().split(" ")[0], DATE_FORMAT).date()
    except ValueError:
        return None


def format_date(d: date) -> str:
    return d.strftime(DATE_FORMAT)


def format_datetime(dt: datetime) -> str:
    return dt.strftime(DATETIME_FORMAT)


def next_friday(d: date) -> date:
    # a Friday pickup is a free week: first due date is the following Friday
    days = (FRIDAY - d.weekday()) % 7 or 7
    return d + timedelta(days=days)


def week_of_month(d: date) -> int:
    if d.day <= 7:
        return 1
    if d.day <= 14:
        return 2
    if d.day <= 21:
        return 3
    return 4


def next_payment_date(today: date | None = None) -> str:
    return format_date(next_friday(today or date.today()))


def initialize_schedule(pickup_date: str, weekly_rate: str) -> tuple[PaymentSlot, ...]:
    """
    Build the 4 slots for a new customer.
    - The first due Friday after pickup gets `pending` and its date.
    - The next 3 week-of-month indices follow (4 wraps to 1), `unpaid`, no date.
    - An unreadable pickup date gives weeks 1..4 with week 1 pending.
    Slots are returned ordered by week number.
    """
    amount = normalize_amount(weekly_rate)
    pickup = parse_date(pickup_date)

    if pickup is None:
        logger.info("Pickup date %r unreadable; using default schedule", pickup_date)
        return tuple(
            PaymentSlot(
                week_number=i + 1,
                status=PaymentStatus.PENDING if i == 0 else PaymentStatus.UNPAID,
                amount=amount,
            )
            for i in range(SCHEDULE_WEEKS)
        )

    first_due = next_friday(pickup)
    first_week = week_of_month(first_due)
    slots = []
    for i in range(SCHEDULE_WEEKS):
        slots.append(
            PaymentSlot(
                week_number=(first_week + i - 1) % SCHEDULE_WEEKS + 1,
                status=PaymentStatus.PENDING if i == 0 else PaymentStatus.UNPAID,
                amount=amount,
                date=format_date(first_due) if i == 0 else "",
            )
        )
    return tuple(sorted(slots, key=lambda s: s.week_number))


def update_slot(
    schedule: tuple[PaymentSlot, ...],
    week_number: int,
    status: PaymentStatus | str,
    amount: str,
    date_text: str = "",
    note: str | None = None,
) -> tuple[PaymentSlot, ...]:
    target = next((s for s in schedule if s.week_number == week_number), None)
    if target is None:
        raise ValidationError(f"No payment slot for week {week_number}.")
    if target.locked:
        raise InvalidTransition(f"Week {week_number} is already paid and cannot be edited.")
    try:
        new_status = PaymentStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown payment status: {status!r}.") from None

    updated = replace(
        target,
        status=new_status,
        amount=amount,
        date=date_text or "",
        note=note or None,
    )
    return tuple(updated if s.week_number == week_number else s for s in schedule)


def is_complete_schedule(schedule: tuple[PaymentSlot, ...]) -> bool:
    """Exactly one slot for each week 1..4."""
    return sorted(s.week_number for s in schedule) == list(range(1, SCHEDULE_WEEKS + 1))


def next_pending_or_unpaid(schedule: tuple[PaymentSlot, ...]) -> int | None:
    """Week the UI should focus on next: lowest pending, else lowest unpaid."""
    for status in (PaymentStatus.PENDING, PaymentStatus.UNPAID):
        weeks = [s.week_number for s in schedule if s.status == status]
        if weeks:
            return min(weeks)
    return None


def recompute_amounts(schedule: tuple[PaymentSlot, ...], weekly_rate) -> tuple[PaymentSlot, ...]:
    amount = normalize_amount(weekly_rate)
    return tuple(replace(s, amount=amount) for s in schedule)


def payment_progress(schedule: tuple[PaymentSlot, ...]) -> tuple[PaymentStatus, int]:
    """Aggregate status of a schedule plus the number of paid weeks."""
    paid = sum(1 for s in schedule if s.status == PaymentStatus.PAID)
    if schedule and paid == len(schedule):
        return PaymentStatus.PAID, paid
    if any(s.status == PaymentStatus.PENDING for s in schedule):
        return PaymentStatus.PENDING, paid
    return PaymentStatus.UNPAID, paid
