"""
pending.py
Pre-registration pipeline: people who showed interest but are not customers yet.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime

from errors import ValidationError
from logger import get_logger
from models import CustomerRecord, PendingProfile, ProfileStatus
from registry import build_customer
from schedule import format_datetime
from textblock import parse_fields

logger = get_logger(__name__)

# lines kept in the profile notes when a full customer block is pasted
_NOTE_LABELS = [
    ("VALOR COBRADO TOTAL", "total_price"),
    ("VALOR COBRADO SEMANAL", "weekly_price"),
    ("SENHA", "password"),
    ("CATEGORIA CARRO", "car_category"),
    ("CARTÕES USADO BANDEIRA", "card_brands"),
    ("FINAL CARTOES USADO NÚMERO", "card_suffixes"),
]


def new_profile(
    name: str,
    contact: str = "",
    login_id: str = "",
    notes: str = "",
    status: ProfileStatus | str = ProfileStatus.PENDING,
    now: datetime | None = None,
) -> PendingProfile:
    if not name or not name.strip():
        raise ValidationError("Name is required.")
    return PendingProfile(
        id=uuid.uuid4().hex,
        name=name.strip(),
        contact=contact.strip() or login_id.strip() or "Pendente",
        login_id=login_id.strip(),
        notes=notes,
        created_at=format_datetime(now or datetime.now()),
        status=ProfileStatus(status),
    )


def profile_from_text(text: str, status: ProfileStatus | str = ProfileStatus.PENDING) -> PendingProfile:
    fields = parse_fields(text)
    lines = []
    for label, key in _NOTE_LABELS:
        value = fields.get(key, "")
        if isinstance(value, list):
            value = ", ".join(value)
        lines.append(f"{label}: {value}")
    return new_profile(
        name=fields.get("name", ""),
        login_id=fields.get("login_id", ""),
        notes="\n".join(lines),
        status=status,
    )


def add_profile(profiles: tuple[PendingProfile, ...], profile: PendingProfile) -> tuple[PendingProfile, ...]:
    logger.info("Pending profile added: %s", profile.name)
    return profiles + (profile,)


def update_profile(profiles: tuple[PendingProfile, ...], profile: PendingProfile) -> tuple[PendingProfile, ...]:
    return tuple(profile if p.id == profile.id else p for p in profiles)


def remove_profile(profiles: tuple[PendingProfile, ...], profile_id: str) -> tuple[PendingProfile, ...]:
    return tuple(p for p in profiles if p.id != profile_id)


def convert_to_customer(profile: PendingProfile, **fields) -> CustomerRecord:
    """
    Seed a customer with the profile's name and login id. Extra fields
    (prices, dates, ...) go straight to build_customer; values parsed from
    the profile notes fill what the caller leaves out.
    """
    parsed = parse_fields(profile.notes)
    for key in ("total_price", "weekly_price", "password", "car_category", "card_brands", "card_suffixes"):
        if key in parsed and not fields.get(key):
            fields[key] = parsed[key]

    fields.setdefault("name", profile.name)
    fields.setdefault("login_id", profile.login_id)
    record = build_customer(**fields)
    logger.info("Pending profile %s converted to customer %s", profile.id, record.login_id)
    return record


def set_status(profile: PendingProfile, status: ProfileStatus | str) -> PendingProfile:
    return replace(profile, status=ProfileStatus(status))
