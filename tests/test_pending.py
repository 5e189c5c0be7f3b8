from datetime import datetime

import pytest

from errors import ValidationError
from models import ProfileStatus
from pending import (
    add_profile,
    convert_to_customer,
    new_profile,
    profile_from_text,
    remove_profile,
    set_status,
    update_profile,
)


def test_new_profile_defaults():
    profile = new_profile("Lia", login_id="555", now=datetime(2024, 3, 1, 14, 30))
    assert profile.status == ProfileStatus.PENDING
    assert profile.contact == "555"
    assert profile.created_at == "01/03/2024 14:30"
    assert len(profile.id) == 32


def test_new_profile_requires_name():
    with pytest.raises(ValidationError):
        new_profile("  ", "11 99999-0000")


def test_add_update_remove():
    a = new_profile("Lia", "11 1111-1111")
    b = new_profile("Rui", "11 2222-2222", status="em_contato")
    profiles = add_profile(add_profile((), a), b)
    assert [p.name for p in profiles] == ["Lia", "Rui"]
    assert profiles[1].status == ProfileStatus.IN_CONTACT

    profiles = update_profile(profiles, set_status(a, ProfileStatus.GAVE_UP))
    assert profiles[0].status == ProfileStatus.GAVE_UP

    profiles = remove_profile(profiles, a.id)
    assert [p.name for p in profiles] == ["Rui"]


def test_profile_from_text_keeps_financial_lines():
    profile = profile_from_text(
        "VALOR COBRADO TOTAL: R$ 2.000,00\nVALOR COBRADO SEMANAL: R$ 500,00\nNOME: Lia\nLOGIN CPF: 555\n"
        "CARTÕES USADO BANDEIRA: Visa, Elo"
    )
    assert profile.name == "Lia"
    assert profile.login_id == "555"
    assert "VALOR COBRADO TOTAL: R$ 2.000,00" in profile.notes
    assert "CARTÕES USADO BANDEIRA: Visa, Elo" in profile.notes


def test_convert_to_customer_uses_profile_and_notes():
    profile = profile_from_text("VALOR COBRADO TOTAL: R$ 2.000,00\nVALOR COBRADO SEMANAL: R$ 500,00\nNOME: Lia\nLOGIN CPF: 555")
    record = convert_to_customer(profile, pickup_date="04/03/2024 10:00")
    assert record.name == "Lia"
    assert record.login_id == "555"
    assert record.total_price == "R$ 2.000,00"
    assert all(s.amount == "R$ 500,00" for s in record.payments)


def test_convert_without_login_id_fails():
    with pytest.raises(ValidationError):
        convert_to_customer(new_profile("Lia", "11 1111-1111"))
