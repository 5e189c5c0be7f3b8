"""
renewals.py
Return-date extensions. History entries are appended, never edited.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import date, datetime

from logger import get_logger
from models import CustomerRecord, RenewalRecord
from schedule import format_datetime, parse_date

logger = get_logger(__name__)

CARD_BRANDS = ["Visa", "Mastercard", "Amex", "Elo", "Hipercard", "Diners"]


def record_renewal(
    record: CustomerRecord,
    new_return_date: str,
    card_brand: str = "",
    card_suffix: str = "",
    now: datetime | None = None,
) -> CustomerRecord:
    entry = RenewalRecord(
        previous_return_date=record.return_date,
        new_return_date=new_return_date,
        renewal_timestamp=format_datetime(now or datetime.now()),
        card_brand=card_brand or None,
        card_suffix=card_suffix or None,
    )

    brands = record.card_brands
    if card_brand and card_brand not in brands:
        brands = brands + (card_brand,)
    suffixes = record.card_suffixes
    if card_suffix and card_suffix not in suffixes:
        suffixes = suffixes + (card_suffix,)

    logger.info("Renewed %s: %s -> %s", record.login_id, record.return_date, new_return_date)
    return replace(
        record,
        return_date=new_return_date,
        post_renewal_date=record.return_date,
        card_brands=brands,
        card_suffixes=suffixes,
        renewal_history=record.renewal_history + (entry,),
    )


def is_valid_card_suffix(card_brand: str, card_suffix: str) -> bool:
    """
    Masked suffix = first letter of the brand + last digits,
    e.g. "V1234" for Visa, "A123" for Amex.
    """
    if not card_brand:
        return False
    digits = 3 if card_brand == "Amex" else 4
    pattern = rf"{re.escape(card_brand[0].upper())}\d{{{digits}}}"
    return re.fullmatch(pattern, card_suffix or "") is not None


def days_until_return(record: CustomerRecord, today: date | None = None) -> int | None:
    returns = parse_date(record.return_date)
    if returns is None:
        return None
    return (returns - (today or date.today())).days


def renewal_message(record: CustomerRecord) -> str:
    """Short text sent to the customer after a renewal."""
    when = record.return_date
    parts = when.split(" ")
    day_month = "/".join(parts[0].split("/")[:2])
    if len(parts) > 1:
        day_month = f"{day_month} {parts[1]}"

    lines = [
        "RENOVAÇÃO",
        f"NOME: {record.name}",
        f"LOGIN CPF: {record.login_id}",
        f"NOVA DATA DE DEVOLUÇÃO: {day_month}",
    ]
    if record.renewal_history:
        last = record.renewal_history[-1]
        if last.card_brand or last.card_suffix:
            lines.append(f"CARTÃO: {last.card_brand or ''} {last.card_suffix or ''}".rstrip())
    return "\n".join(lines)
