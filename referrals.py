"""
referrals.py
Referral program: who referred whom, and the discount the referrer earns.

First referral is worth R$ 500,00, every later one R$ 250,00. Discounts stack
by subtracting from the current total; the pre-discount total is kept once
in original_total_price.
"""

from __future__ import annotations

from dataclasses import replace

from errors import SkipReason, ValidationError
from logger import get_logger
from models import CustomerRecord, PaymentSlot, PaymentStatus
from money import format_amount, parse_amount
from registry import Registry
from schedule import SCHEDULE_WEEKS, recompute_amounts

logger = get_logger(__name__)

FIRST_REFERRAL_DISCOUNT = 500.0
REFERRAL_DISCOUNT = 250.0


def tier_discount(prior_referral_count: int) -> str:
    if prior_referral_count == 0:
        return format_amount(FIRST_REFERRAL_DISCOUNT)
    return format_amount(REFERRAL_DISCOUNT)


def apply_discount(record: CustomerRecord, discount_amount: str) -> CustomerRecord:
    """
    Subtract `discount_amount` from the current total, spread the new total
    over 4 weeks and rewrite every slot amount. Slot statuses and dates are kept.
    """
    new_total = max(0.0, parse_amount(record.total_price) - parse_amount(discount_amount))
    new_weekly = new_total / SCHEDULE_WEEKS

    payments = record.payments
    if not payments:
        payments = tuple(
            PaymentSlot(week_number=i + 1, status=PaymentStatus.UNPAID, amount="")
            for i in range(SCHEDULE_WEEKS)
        )

    return replace(
        record,
        original_total_price=record.original_total_price or record.total_price,
        total_price=format_amount(new_total),
        weekly_price=format_amount(new_weekly),
        discount_amount=discount_amount,
        discount_applied=True,
        payments=recompute_amounts(payments, new_weekly),
    )


def referral_skip_reason(registry: Registry, referrer_id: str, referred_id: str) -> SkipReason | None:
    if referrer_id == referred_id:
        return SkipReason.SELF_REFERRAL
    referrer = registry.find(referrer_id)
    if referrer is None:
        return SkipReason.REFERRER_NOT_FOUND
    if registry.find(referred_id) is None:
        return SkipReason.REFERRED_NOT_FOUND
    if referred_id in referrer.referrals:
        return SkipReason.ALREADY_REFERRED
    return None


def apply_referral(registry: Registry, referrer_id: str, referred_id: str) -> Registry:
    """
    Link referred -> referrer and discount the referrer.
    Replaying an existing pair (or any unresolved id) returns the registry unchanged.
    """
    reason = referral_skip_reason(registry, referrer_id, referred_id)
    if reason is not None:
        logger.info("Referral %s -> %s skipped: %s", referrer_id, referred_id, reason.value)
        return registry

    referrer = registry.find(referrer_id)
    referred = registry.find(referred_id)

    discount = tier_discount(len(referrer.referrals))
    referrer = apply_discount(replace(referrer, referrals=referrer.referrals + (referred_id,)), discount)
    referred = replace(referred, referred_by=referrer_id)

    logger.info(
        "%s earned %s for referring %s (total now %s)",
        referrer_id,
        discount,
        referred_id,
        referrer.total_price,
    )
    return registry.replace_many(referrer, referred)


def set_referrer(registry: Registry, customer_id: str, referrer_id: str | None) -> Registry:
    """
    Admin override of a customer's referrer.
    None clears the link and leaves discounts alone; a referrer id goes
    through apply_referral so the discount is granted once.
    """
    customer = registry.find(customer_id)
    if customer is None:
        logger.info("Set referrer skipped: %s", SkipReason.CUSTOMER_NOT_FOUND.value)
        return registry

    if referrer_id is None:
        if customer.referred_by is None:
            return registry
        logger.info("Clearing referrer of %s", customer_id)
        return registry.upsert(replace(customer, referred_by=None))

    if referrer_id == customer_id:
        raise ValidationError("A customer cannot refer themselves.")
    if registry.find(referrer_id) is None:
        logger.info("Set referrer skipped: %s", SkipReason.REFERRER_NOT_FOUND.value)
        return registry

    registry = registry.upsert(replace(customer, referred_by=referrer_id))
    return apply_referral(registry, referrer_id, customer_id)


def referrers(registry: Registry) -> list[CustomerRecord]:
    return [r for r in registry if r.can_refer]


def referred_customers(registry: Registry, referrer_id: str) -> list[CustomerRecord]:
    return [r for r in registry if r.referred_by == referrer_id]


def resolve_referrer(registry: Registry, record: CustomerRecord) -> CustomerRecord | None:
    """Referrer record, or None when unset or pointing at a removed customer."""
    if not record.referred_by:
        return None
    return registry.find(record.referred_by)
