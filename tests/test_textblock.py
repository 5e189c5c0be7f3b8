from datetime import date

import pytest

from errors import ValidationError
from models import PaymentStatus
from referrals import apply_referral
from textblock import parse_blocks, parse_fields, parse_record, render_record, render_summary

BLOCK = """VALOR COBRADO TOTAL: R$ 2.500,00
VALOR COBRADO SEMANAL: R$ 625,00
NOME: Maria Silva
LOGIN CPF: 12345678900
SENHA: s3nha
CATEGORIA CARRO: SUV
LOCAL RETIRADA: Loja Centro
DATA RETIRADA: 04/03/2024 10:00
DATA DEVOLUÇÃO: 01/04/2024 10:00
DATA APOS RENOVAÇÃO: ----
CARTÕES USADO BANDEIRA: Visa, Mastercard
FINAL CARTOES USADO NÚMERO: V1234, M5678
"""


def test_parse_record_reads_every_field():
    record = parse_record(BLOCK)
    assert record.name == "Maria Silva"
    assert record.login_id == "12345678900"
    assert record.password == "s3nha"
    assert record.car_category == "SUV"
    assert record.total_price == "R$ 2.500,00"
    assert record.pickup_date == "04/03/2024 10:00"
    assert record.post_renewal_date is None
    assert record.card_brands == ("Visa", "Mastercard")
    assert record.card_suffixes == ("V1234", "M5678")
    pending = [s for s in record.payments if s.status == PaymentStatus.PENDING]
    assert [s.date for s in pending] == ["08/03/2024"]


def test_parse_record_minimal_block_uses_defaults():
    record = parse_record("NOME: João\nLOGIN CPF: 999")
    assert record.total_price == "R$ 0,00"
    assert record.card_brands == ()
    assert [s.week_number for s in record.payments] == [1, 2, 3, 4]


@pytest.mark.parametrize("text", ["NOME: João", "LOGIN CPF: 999", "", "garbage"])
def test_parse_record_requires_name_and_login(text):
    with pytest.raises(ValidationError):
        parse_record(text)


def test_label_matching_is_case_insensitive():
    fields = parse_fields("nome: Ana\nlogin cpf: 1\nobservações:\nfirst line\nsecond: line")
    assert fields["name"] == "Ana"
    assert fields["login_id"] == "1"
    assert fields["notes"] == "first line\nsecond: line"


def test_render_then_parse_keeps_block_fields():
    record = parse_record(BLOCK)
    again = parse_record(render_record(record))
    assert again == record


def test_parse_blocks_splits_on_dashes():
    text = BLOCK + "\n---\n" + "NOME: João\nLOGIN CPF: 999\n" + "\n-----------\n"
    records = parse_blocks(text)
    assert [r.login_id for r in records] == ["12345678900", "999"]


def test_parse_blocks_rejects_half_filled_section():
    with pytest.raises(ValidationError):
        parse_blocks(BLOCK + "\n---\nNOME: Sem CPF\n")


def test_summary_can_be_imported_back(registry):
    registry = apply_referral(registry, "111", "222")
    summary = render_summary(registry, today=date(2024, 3, 28))

    assert "RENOVAÇÕES URGENTES" in summary
    assert "INDICAÇÕES: 222" in summary
    assert "INDICADO POR: 111" in summary

    records = parse_blocks(summary)
    assert sorted(r.login_id for r in records) == ["111", "222", "333"]
    by_id = {r.login_id: r for r in records}
    assert by_id["222"].referred_by == "111"
    assert by_id["111"].referrals == ("222",)
