"""
textblock.py
Human-readable "KEY: value" blocks used to paste customers in and out of
the dashboard. Lossy: payments, referrals and history are not carried,
except for the summary view which only renders them.
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import date

from errors import ValidationError
from models import CustomerRecord, PaymentStatus
from money import format_amount, parse_amount
from registry import build_customer
from renewals import days_until_return
from schedule import parse_date

EMPTY = "----"

# label -> field; matching is a case-insensitive containment check
LABELS = {
    "VALOR COBRADO TOTAL": "total_price",
    "VALOR COBRADO SEMANAL": "weekly_price",
    "NOME": "name",
    "LOGIN CPF": "login_id",
    "SENHA": "password",
    "CATEGORIA CARRO": "car_category",
    "LOCAL RETIRADA": "pickup_location",
    "DATA RETIRADA": "pickup_date",
    "DATA DEVOLUÇÃO": "return_date",
    "DATA APOS RENOVAÇÃO": "post_renewal_date",
    "CARTÕES USADO BANDEIRA": "card_brands",
    "FINAL CARTOES USADO NÚMERO": "card_suffixes",
    "INDICADO POR": "referred_by",
    "INDICAÇÕES": "referrals",
}

LIST_FIELDS = {"card_brands", "card_suffixes", "referrals"}

_SEPARATOR = re.compile(r"^\s*-{3,}\s*$", re.MULTILINE)


def _match_label(key: str) -> str | None:
    key = key.strip().upper()
    if not key:
        return None
    if key in LABELS:
        return LABELS[key]
    for label, field_name in LABELS.items():
        if label in key or key in label:
            return field_name
    return None


def parse_fields(text: str) -> dict:
    """Best-effort read of KEY: value lines into a field dict."""
    fields: dict = {}
    notes: list[str] = []
    in_notes = False

    for line in text.splitlines():
        if in_notes:
            notes.append(line)
            continue
        if not line.strip() or ":" not in line:
            continue
        key, value = line.split(":", 1)
        value = value.strip()
        if key.strip().upper() == "OBSERVAÇÕES":
            in_notes = True
            if value:
                notes.append(value)
            continue

        field_name = _match_label(key)
        if field_name is None or field_name in fields:
            continue
        if field_name in LIST_FIELDS:
            fields[field_name] = [] if value in ("", EMPTY) else [v.strip() for v in value.split(",") if v.strip()]
        else:
            fields[field_name] = "" if value == EMPTY else value

    if notes:
        fields["notes"] = "\n".join(notes).strip()
    return fields


def parse_record(text: str) -> CustomerRecord:
    """
    Build a customer from a text block. NOME and LOGIN CPF are required;
    the payment schedule starts fresh from the pickup date.
    """
    fields = parse_fields(text)
    if not fields.get("name") or not fields.get("login_id"):
        raise ValidationError("NOME and LOGIN CPF are required.")

    record = build_customer(
        name=fields["name"],
        login_id=fields["login_id"],
        total_price=fields.get("total_price", ""),
        weekly_price=fields.get("weekly_price", ""),
        password=fields.get("password", ""),
        car_category=fields.get("car_category", ""),
        pickup_location=fields.get("pickup_location", ""),
        pickup_date=fields.get("pickup_date", ""),
        return_date=fields.get("return_date", ""),
        card_brands=fields.get("card_brands", ()),
        card_suffixes=fields.get("card_suffixes", ()),
        notes=fields.get("notes", ""),
    )

    return replace(
        record,
        post_renewal_date=fields.get("post_renewal_date") or None,
        referred_by=fields.get("referred_by") or None,
        referrals=tuple(dict.fromkeys(fields.get("referrals", ()))),
    )


def parse_blocks(text: str) -> list[CustomerRecord]:
    """
    Several customers separated by lines of 3+ dashes. Sections without
    NOME and LOGIN CPF at all (summary headers) are skipped.
    """
    records = []
    for section in _SEPARATOR.split(text):
        fields = parse_fields(section)
        if not fields.get("name") and not fields.get("login_id"):
            continue
        records.append(parse_record(section))
    return records


def render_record(record: CustomerRecord) -> str:
    lines = [
        f"VALOR COBRADO TOTAL: {record.total_price}",
        f"VALOR COBRADO SEMANAL: {record.weekly_price}",
        f"NOME: {record.name}",
        f"LOGIN CPF: {record.login_id}",
        f"SENHA: {record.password}",
        f"CATEGORIA CARRO: {record.car_category}",
        f"LOCAL RETIRADA: {record.pickup_location}",
        f"DATA RETIRADA: {record.pickup_date}",
        f"DATA DEVOLUÇÃO: {record.return_date}",
        f"DATA APOS RENOVAÇÃO: {record.post_renewal_date or EMPTY}",
        f"CARTÕES USADO BANDEIRA: {', '.join(record.card_brands)}",
        f"FINAL CARTOES USADO NÚMERO: {', '.join(record.card_suffixes)}",
    ]
    return "\n".join(lines)


def _time_with_us(record: CustomerRecord, today: date) -> str:
    pickup = parse_date(record.pickup_date)
    if pickup is None:
        return "N/A"
    days = (today - pickup).days
    if days < 30:
        return f"{days} DIA(S)"
    return f"{days // 30} MÊS(ES) E {days % 30} DIA(S)"


def render_summary(records, today: date | None = None) -> str:
    """
    Full text summary of every customer, soonest return first, with an
    urgent-renewals header for returns within 7 days.
    """
    today = today or date.today()
    records = list(records)

    def sort_key(r: CustomerRecord):
        days = days_until_return(r, today)
        return days if days is not None else float("inf")

    records.sort(key=sort_key)
    out = [f"RESUMO DE CADASTROS - GERADO EM {today.strftime('%d/%m/%Y')}", ""]

    urgent = [r for r in records if sort_key(r) <= 7]
    if urgent:
        out.append("ATENÇÃO: RENOVAÇÕES URGENTES")
        for r in urgent:
            out.append(f"- {r.name} ({days_until_return(r, today)} dia(s) restante(s)) - Devolução: {r.return_date}")
        out.append("")
        out.append("-" * 51)
        out.append("")

    blocks = []
    for r in records:
        block = []
        days = days_until_return(r, today)
        if days is not None and days <= 14:
            block.append(f"ATENÇÃO: RENOVAÇÃO EM {days} DIA(S)")
        block.append(f"CLIENTE HÁ: {_time_with_us(r, today)}")

        paid = [p for p in r.payments if p.status == PaymentStatus.PAID]
        if paid:
            total = sum(parse_amount(p.amount) for p in paid)
            block.append(f"PAGAMENTO: {len(paid)} SEMANA(S) PAGA(S) - TOTAL {format_amount(total)}")
        else:
            block.append("PAGAMENTO: NENHUMA SEMANA PAGA AINDA")

        block.append(render_record(r))
        for renewal in r.renewal_history:
            block.append(f"RENOVADO: {renewal.previous_return_date} -> {renewal.new_return_date}")
        if r.referred_by:
            block.append(f"INDICADO POR: {r.referred_by}")
        if r.referrals:
            block.append(f"INDICAÇÕES: {', '.join(r.referrals)}")
        if r.discount_applied and r.discount_amount:
            block.append(f"DESCONTO DE INDICAÇÃO: {r.discount_amount} (ORIGINAL {r.original_total_price})")
        if r.active:
            block.append("STATUS: ATIVO")
        else:
            block.append("STATUS: INATIVO")
            block.append(f"MOTIVO DE DESATIVAÇÃO: {r.inactive_reason or 'Não informado'}")
        if r.notes:
            block.append("")
            block.append("OBSERVAÇÕES:")
            block.append(r.notes)
        blocks.append("\n".join(block))

    out.append(("\n\n" + "-" * 51 + "\n\n").join(blocks))
    return "\n".join(out)
