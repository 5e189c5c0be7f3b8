"""
utils.py
JSON backup import/export, reports (pandas), CSV exports, sample data.
"""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import date, timedelta

import pandas as pd

from errors import ValidationError
from logger import get_logger
from models import CustomerRecord, PaymentStatus
from money import parse_amount
from referrals import apply_referral, referred_customers
from registry import Registry, build_customer
from schedule import format_date, initialize_schedule, is_complete_schedule, parse_date, payment_progress

logger = get_logger(__name__)

# keys written by the old browser dashboard backups
LEGACY_RECORD_KEYS = {
    "login_cpf": "loginId",
    "nome": "name",
    "senha": "password",
    "categoria_carro": "carCategory",
    "local_retirada": "pickupLocation",
    "valor_cobrado_total": "totalPrice",
    "valor_cobrado_semanal": "weeklyPrice",
    "data_retirada": "pickupDate",
    "data_devolucao": "returnDate",
    "data_apos_renovacao": "postRenewalDate",
    "cartoes_usado_bandeira": "cardBrands",
    "final_cartoes_usado_numero": "cardSuffixes",
    "historicoRenovacoes": "renewalHistory",
    "indicadoPor": "referredBy",
    "pagamentos": "payments",
    "podeIndicar": "canRefer",
    "valorDesconto": "discountAmount",
    "descontoAplicado": "discountApplied",
    "valorOriginal": "originalTotalPrice",
    "indicacoes": "referrals",
    "observacoes": "notes",
    "ativo": "active",
    "motivoInativacao": "inactiveReason",
}

LEGACY_PAYMENT_KEYS = {
    "semana": "weekNumber",
    "valor": "amount",
    "data": "date",
    "observacao": "note",
}

LEGACY_RENEWAL_KEYS = {
    "dataAnterior": "previousReturnDate",
    "dataNova": "newReturnDate",
    "dataRenovacao": "renewalTimestamp",
    "cartaoBandeira": "cardBrand",
    "cartaoFinal": "cardSuffix",
}


def _rename(data: dict, mapping: dict) -> dict:
    return {mapping.get(k, k): v for k, v in data.items()}


def _normalize_legacy(item: dict) -> dict:
    item = _rename(item, LEGACY_RECORD_KEYS)
    item["payments"] = [_rename(p, LEGACY_PAYMENT_KEYS) for p in item.get("payments") or []]
    item["renewalHistory"] = [_rename(r, LEGACY_RENEWAL_KEYS) for r in item.get("renewalHistory") or []]
    return item


def registry_to_json(registry: Registry) -> str:
    return json.dumps([r.to_dict() for r in registry], ensure_ascii=False, indent=2)


def registry_from_json(text: str) -> Registry:
    """
    Read a JSON backup (current or legacy key names). Records without a
    payment schedule get one from their pickup date and weekly price.
    """
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ValidationError(f"Backup is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise ValidationError("Backup must be a list of customers.")

    registry = Registry()
    for i, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValidationError(f"Item {i} is not a customer object.")
        try:
            item = _normalize_legacy(item)
            if not item.get("loginId") or not item.get("name"):
                raise ValidationError(f"Item {i} is missing name or loginId.")
            record = CustomerRecord.from_dict(item)
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise ValidationError(f"Item {i} is not a valid customer: {exc}") from exc
        if not record.payments:
            record = replace(record, payments=initialize_schedule(record.pickup_date, record.weekly_price))
        elif not is_complete_schedule(record.payments):
            raise ValidationError(f"Item {i} must have exactly one payment for each week 1-4.")
        registry = registry.upsert(record)

    logger.info("%d customers read from backup", len(registry))
    return registry


def export_file_name(today: date | None = None) -> str:
    return f"cadastros_{(today or date.today()).isoformat()}.json"


# ---------- Reports ----------

def finance_summary(registry: Registry, week: int) -> dict:
    """Received (paid slots of `week`), all applied discounts, and the net."""
    received = sum(
        parse_amount(p.amount)
        for r in registry
        for p in r.payments
        if p.status == PaymentStatus.PAID and p.week_number == week
    )
    discounts = sum(parse_amount(r.discount_amount) for r in registry if r.discount_applied and r.discount_amount)
    return {
        "week": week,
        "received": received,
        "discounts": discounts,
        "net": received - discounts,
    }


def customers_frame(registry: Registry) -> pd.DataFrame:
    columns = [
        "login_id", "name", "car_category", "total_price", "weekly_price",
        "pickup_date", "return_date", "referred_by", "referrals", "payment_status",
        "weeks_paid", "active",
    ]
    rows = []
    for r in registry:
        status, paid = payment_progress(r.payments)
        rows.append({
            "login_id": r.login_id,
            "name": r.name,
            "car_category": r.car_category,
            "total_price": r.total_price,
            "weekly_price": r.weekly_price,
            "pickup_date": r.pickup_date,
            "return_date": r.return_date,
            "referred_by": r.referred_by or "",
            "referrals": len(r.referrals),
            "payment_status": status.value,
            "weeks_paid": f"{paid}/{len(r.payments)}",
            "active": r.active,
        })
    return pd.DataFrame(rows, columns=columns)


def payments_frame(registry: Registry, week: int | None = None) -> pd.DataFrame:
    columns = ["login_id", "name", "week", "status", "amount", "value", "date", "note"]
    rows = [
        {
            "login_id": r.login_id,
            "name": r.name,
            "week": p.week_number,
            "status": p.status.value,
            "amount": p.amount,
            "value": parse_amount(p.amount),
            "date": p.date,
            "note": p.note or "",
        }
        for r in registry
        for p in r.payments
        if week is None or p.week_number == week
    ]
    return pd.DataFrame(rows, columns=columns)


def totals_by_week(registry: Registry) -> pd.DataFrame:
    # every customer owes its weekly price in each of the 4 weeks
    weekly = sum(parse_amount(r.weekly_price) for r in registry)
    return pd.DataFrame({"week": [1, 2, 3, 4], "expected": [weekly] * 4})


def totals_by_month(registry: Registry) -> pd.DataFrame:
    rows = []
    for r in registry:
        pickup = parse_date(r.pickup_date)
        if pickup is None:
            continue
        rows.append({"month": pickup.strftime("%Y-%m"), "total": parse_amount(r.total_price)})
    df = pd.DataFrame(rows, columns=["month", "total"])
    if df.empty:
        return df
    return df.groupby("month", as_index=False)["total"].sum().sort_values("month").reset_index(drop=True)


def referral_overview(registry: Registry) -> pd.DataFrame:
    columns = ["login_id", "name", "referred", "referred_names", "discount_applied", "discount_amount", "original_total", "total"]
    rows = []
    for r in registry:
        if not r.can_refer and not r.referrals:
            continue
        referred = referred_customers(registry, r.login_id)
        rows.append({
            "login_id": r.login_id,
            "name": r.name,
            "referred": len(r.referrals),
            "referred_names": ", ".join(c.name for c in referred),
            "discount_applied": r.discount_applied,
            "discount_amount": r.discount_amount or "",
            "original_total": r.original_total_price or r.total_price,
            "total": r.total_price,
        })
    return pd.DataFrame(rows, columns=columns)


def customers_to_csv_bytes(registry: Registry) -> bytes:
    return customers_frame(registry).to_csv(index=False).encode("utf-8")


def payments_to_csv_bytes(registry: Registry) -> bytes:
    return payments_frame(registry).to_csv(index=False).encode("utf-8")


def insert_sample_data(registry: Registry, today: date | None = None) -> Registry:
    """
    Add 3 sample customers (one referral between them) to `registry`.
    Safe to run twice: same login ids are replaced. Saving is left to the caller.
    """
    today = today or date.today()

    samples = [
        ("Ana Souza", "11111111111", "R$ 2.500,00", "R$ 625,00", "SUV", True, 20, 10),
        ("Bruno Lima", "22222222222", "R$ 2.000,00", "R$ 500,00", "Sedan", False, 10, 20),
        ("Carla Dias", "33333333333", "R$ 1.600,00", "R$ 400,00", "Hatch", False, 35, 3),
    ]
    for name, login_id, total, weekly, category, can_refer, days_ago, days_left in samples:
        registry = registry.upsert(
            build_customer(
                name=name,
                login_id=login_id,
                total_price=total,
                weekly_price=weekly,
                car_category=category,
                pickup_location="Loja Centro",
                pickup_date=f"{format_date(today - timedelta(days=days_ago))} 10:00",
                return_date=f"{format_date(today + timedelta(days=days_left))} 10:00",
                can_refer=can_refer,
            )
        )

    return apply_referral(registry, "11111111111", "22222222222")
