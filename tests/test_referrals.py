from dataclasses import replace

import pytest

from errors import SkipReason, ValidationError
from models import PaymentStatus
from referrals import (
    apply_discount,
    apply_referral,
    referral_skip_reason,
    referred_customers,
    referrers,
    resolve_referrer,
    set_referrer,
    tier_discount,
)
from registry import Registry, build_customer
from schedule import update_slot


def test_tier_discount():
    assert tier_discount(0) == "R$ 500,00"
    assert tier_discount(1) == "R$ 250,00"
    assert tier_discount(7) == "R$ 250,00"


def test_first_referral_scenario(registry):
    updated = apply_referral(registry, "111", "222")

    alice = updated.find("111")
    assert alice.total_price == "R$ 2.000,00"
    assert alice.weekly_price == "R$ 500,00"
    assert alice.discount_amount == "R$ 500,00"
    assert alice.original_total_price == "R$ 2.500,00"
    assert alice.discount_applied is True
    assert alice.referrals == ("222",)
    assert all(s.amount == "R$ 500,00" for s in alice.payments)

    assert updated.find("222").referred_by == "111"
    # positions are kept
    assert updated.login_ids() == registry.login_ids()


def test_apply_referral_is_idempotent(registry):
    once = apply_referral(registry, "111", "222")
    twice = apply_referral(once, "111", "222")
    assert twice == once


def test_second_referral_stacks_on_current_total(registry):
    updated = apply_referral(registry, "111", "222")
    updated = apply_referral(updated, "111", "333")

    alice = updated.find("111")
    assert alice.total_price == "R$ 1.750,00"
    assert alice.weekly_price == "R$ 437,50"
    assert alice.discount_amount == "R$ 250,00"
    assert alice.original_total_price == "R$ 2.500,00"
    assert alice.referrals == ("222", "333")


@pytest.mark.parametrize(
    "referrer, referred, reason",
    [
        ("111", "111", SkipReason.SELF_REFERRAL),
        ("999", "222", SkipReason.REFERRER_NOT_FOUND),
        ("111", "999", SkipReason.REFERRED_NOT_FOUND),
    ],
)
def test_skipped_referrals_leave_registry_unchanged(registry, referrer, referred, reason):
    assert referral_skip_reason(registry, referrer, referred) == reason
    assert apply_referral(registry, referrer, referred) is registry


def test_already_referred_reason(registry):
    updated = apply_referral(registry, "111", "222")
    assert referral_skip_reason(updated, "111", "222") == SkipReason.ALREADY_REFERRED
    assert referral_skip_reason(updated, "111", "333") is None


def test_apply_discount_floors_at_zero(alice):
    cheap = replace(alice, total_price="R$ 300,00", weekly_price="R$ 75,00")
    discounted = apply_discount(cheap, "R$ 500,00")
    assert discounted.total_price == "R$ 0,00"
    assert discounted.weekly_price == "R$ 0,00"
    assert discounted.original_total_price == "R$ 300,00"


def test_apply_discount_keeps_paid_slot_status(alice):
    paid = update_slot(alice.payments, 2, PaymentStatus.PAID, "R$ 625,00", "08/03/2024")
    discounted = apply_discount(replace(alice, payments=paid), "R$ 500,00")

    by_week = {s.week_number: s for s in discounted.payments}
    assert by_week[2].status == PaymentStatus.PAID
    assert by_week[2].date == "08/03/2024"
    assert by_week[2].amount == "R$ 500,00"


def test_apply_discount_creates_missing_schedule(alice):
    discounted = apply_discount(replace(alice, payments=()), "R$ 500,00")
    assert [s.week_number for s in discounted.payments] == [1, 2, 3, 4]
    assert all(s.status == PaymentStatus.UNPAID for s in discounted.payments)
    assert all(s.amount == "R$ 500,00" for s in discounted.payments)


def test_original_total_is_never_overwritten(alice):
    first = apply_discount(alice, "R$ 500,00")
    second = apply_discount(first, "R$ 250,00")
    assert second.original_total_price == "R$ 2.500,00"
    assert second.total_price == "R$ 1.750,00"


def test_set_referrer_links_and_discounts(registry):
    updated = set_referrer(registry, "333", "111")
    assert updated.find("333").referred_by == "111"
    assert updated.find("111").total_price == "R$ 2.000,00"
    assert updated.find("111").referrals == ("333",)

    # replaying does not discount again
    assert set_referrer(updated, "333", "111") == updated


def test_set_referrer_none_clears_link_only(registry):
    linked = apply_referral(registry, "111", "222")
    cleared = set_referrer(linked, "222", None)

    assert cleared.find("222").referred_by is None
    assert cleared.find("111") == linked.find("111")
    assert set_referrer(cleared, "222", None) is cleared


def test_set_referrer_rejects_self(registry):
    with pytest.raises(ValidationError):
        set_referrer(registry, "111", "111")


def test_set_referrer_unknown_ids_are_noops(registry):
    assert set_referrer(registry, "999", "111") is registry
    assert set_referrer(registry, "222", "999") is registry


def test_referrers_and_referred(registry):
    updated = apply_referral(registry, "111", "222")
    assert [r.login_id for r in referrers(updated)] == ["111"]
    assert [r.login_id for r in referred_customers(updated, "111")] == ["222"]


def test_resolve_referrer_handles_dangling_link(registry):
    updated = apply_referral(registry, "111", "222")
    assert resolve_referrer(updated, updated.find("222")).login_id == "111"

    removed = updated.remove("111")
    assert resolve_referrer(removed, removed.find("222")) is None
    assert resolve_referrer(removed, removed.find("333")) is None


def test_total_strictly_decreases_until_zero():
    registry = Registry()
    referrer = build_customer(name="R", login_id="r", total_price="R$ 900,00", weekly_price="R$ 225,00")
    registry = registry.upsert(referrer)
    totals = []
    for i in range(4):
        registry = registry.upsert(build_customer(name=f"C{i}", login_id=f"c{i}"))
        registry = apply_referral(registry, "r", f"c{i}")
        totals.append(registry.find("r").total_price)
    assert totals == ["R$ 400,00", "R$ 150,00", "R$ 0,00", "R$ 0,00"]
    assert registry.find("r").original_total_price == "R$ 900,00"


def test_set_referrer_replay_returns_same_registry(registry):
    linked = set_referrer(registry, "222", "111")
    assert set_referrer(linked, "222", "111") is linked
