"""
registry.py
In-memory customer collection keyed by login id.

Every operation returns a new Registry; the caller (UI) hands the result
to db.save_registry.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterator

from errors import ValidationError
from logger import get_logger
from models import CustomerRecord, PaymentStatus
from money import normalize_amount
from schedule import initialize_schedule, next_pending_or_unpaid, update_slot

logger = get_logger(__name__)


@dataclass(frozen=True)
class Registry:
    records: tuple[CustomerRecord, ...] = ()

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[CustomerRecord]:
        return iter(self.records)

    def login_ids(self) -> list[str]:
        return [r.login_id for r in self.records]

    def find(self, login_id: str) -> CustomerRecord | None:
        return next((r for r in self.records if r.login_id == login_id), None)

    def upsert(self, record: CustomerRecord) -> "Registry":
        """
        Replace the record with the same login id in place, or append.
        Upserting an identical record returns the same registry.
        """
        if not record.login_id or not record.login_id.strip():
            raise ValidationError("Login ID is required.")

        current = self.find(record.login_id)
        if current == record:
            return self
        if current is not None:
            logger.info("Updating customer %s", record.login_id)
            return Registry(tuple(record if r.login_id == record.login_id else r for r in self.records))

        logger.info("Adding customer %s", record.login_id)
        return Registry(self.records + (record,))

    def replace_many(self, *records: CustomerRecord) -> "Registry":
        # one new value for a multi-record change (referrer + referred)
        registry = self
        for record in records:
            registry = registry.upsert(record)
        return registry

    def remove(self, login_id: str) -> "Registry":
        # referred_by links pointing here are left dangling on purpose
        if self.find(login_id) is None:
            return self
        logger.info("Removing customer %s", login_id)
        return Registry(tuple(r for r in self.records if r.login_id != login_id))


def build_customer(
    name: str,
    login_id: str,
    total_price: str = "",
    weekly_price: str = "",
    password: str = "",
    car_category: str = "",
    pickup_location: str = "",
    pickup_date: str = "",
    return_date: str = "",
    card_brands=(),
    card_suffixes=(),
    can_refer: bool = False,
    active: bool = True,
    inactive_reason: str = "",
    notes: str = "",
) -> CustomerRecord:
    """
    Validated construction of a new customer from form values.
    The payment schedule is derived from the pickup date and weekly price.
    """
    errors: list[str] = []
    if not name or not name.strip():
        errors.append("Name is required.")
    if not login_id or not login_id.strip():
        errors.append("Login ID (CPF) is required.")
    if not active and not (inactive_reason or "").strip():
        errors.append("A reason is required to deactivate a profile.")
    if errors:
        raise ValidationError(" ".join(errors))

    weekly = normalize_amount(weekly_price)
    return CustomerRecord(
        login_id=login_id.strip(),
        name=name.strip(),
        total_price=normalize_amount(total_price),
        weekly_price=weekly,
        password=password,
        car_category=car_category,
        pickup_location=pickup_location,
        pickup_date=pickup_date.strip(),
        return_date=return_date.strip(),
        card_brands=tuple(b for b in card_brands if b),
        card_suffixes=tuple(s for s in card_suffixes if s),
        can_refer=can_refer,
        payments=initialize_schedule(pickup_date, weekly),
        active=active,
        inactive_reason=None if active else inactive_reason.strip(),
        notes=notes or None,
    )


def update_payment(
    registry: Registry,
    login_id: str,
    week_number: int,
    status: PaymentStatus | str,
    amount: str,
    date_text: str = "",
    note: str | None = None,
) -> tuple[Registry, int | None]:
    """
    Edit one slot of a stored customer.
    Returns the new registry and, when the slot was just paid, the week to
    open next (None otherwise or when everything is paid).
    """
    record = registry.find(login_id)
    if record is None:
        raise ValidationError(f"Customer {login_id} not found.")

    payments = update_slot(record.payments, week_number, status, amount, date_text, note)
    registry = registry.upsert(replace(record, payments=payments))

    if PaymentStatus(status) == PaymentStatus.PAID:
        logger.info("Week %s of %s marked paid", week_number, login_id)
        return registry, next_pending_or_unpaid(payments)
    return registry, None


def add_customer(registry: Registry, record: CustomerRecord) -> Registry:
    if registry.find(record.login_id) is not None:
        raise ValidationError(f"A customer with login ID {record.login_id} already exists.")
    return registry.upsert(record)


def edit_customer(registry: Registry, login_id: str, edited: CustomerRecord) -> Registry:
    """
    Apply an edit made through the text-block form to customer `login_id`.
    The block carries no schedule, referral, renewal or activation state, so
    those are kept from the stored record. The login id cannot change.
    """
    record = registry.find(login_id)
    if record is None:
        raise ValidationError(f"Customer {login_id} not found.")
    if edited.login_id != login_id:
        raise ValidationError("The login ID (CPF) of an existing customer cannot be changed.")

    return registry.upsert(
        replace(
            edited,
            payments=record.payments,
            referrals=record.referrals,
            referred_by=record.referred_by,
            discount_applied=record.discount_applied,
            discount_amount=record.discount_amount,
            original_total_price=record.original_total_price,
            renewal_history=record.renewal_history,
            post_renewal_date=record.post_renewal_date,
            active=record.active,
            inactive_reason=record.inactive_reason,
        )
    )


def set_active(registry: Registry, login_id: str, active: bool, reason: str = "") -> Registry:
    record = registry.find(login_id)
    if record is None:
        raise ValidationError(f"Customer {login_id} not found.")
    if not active and not reason.strip():
        raise ValidationError("A reason is required to deactivate a profile.")
    return registry.upsert(
        replace(record, active=active, inactive_reason=None if active else reason.strip())
    )
