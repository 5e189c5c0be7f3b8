import sqlite3

from models import SystemSettings
from pending import new_profile
from referrals import apply_referral
from registry import Registry


def test_empty_database(temp_db):
    assert len(temp_db.load_registry()) == 0
    assert temp_db.load_pending_profiles() == ()


def test_registry_round_trip_keeps_order(temp_db, registry):
    registry = apply_referral(registry, "111", "333")
    assert temp_db.save_registry(registry)

    loaded = temp_db.load_registry()
    assert loaded.login_ids() == ["111", "222", "333"]
    assert loaded == registry


def test_save_replaces_previous_snapshot(temp_db, registry, alice):
    temp_db.save_registry(registry)
    temp_db.save_registry(Registry().upsert(alice))
    assert temp_db.load_registry().login_ids() == ["111"]


def test_unreadable_row_is_skipped(temp_db, registry):
    temp_db.save_registry(registry)
    temp_db.execute("UPDATE customers SET payload = ? WHERE login_id = ?", ("{not json", "222"))

    loaded = temp_db.load_registry()
    assert loaded.login_ids() == ["111", "333"]


def test_save_failure_returns_false(tmp_path, monkeypatch, registry):
    import db

    # a directory cannot be opened as a database file
    monkeypatch.setattr(db, "DB_FILE", tmp_path)
    assert db.save_registry(registry) is False
    assert db.save_settings(SystemSettings()) is False
    assert len(db.load_registry()) == 0


def test_settings_defaults_and_round_trip(temp_db):
    assert temp_db.load_settings() == SystemSettings()

    settings = SystemSettings(pix_key="chave@pix.com", payment_day="Segunda-feira", company_name="Frota")
    assert temp_db.save_settings(settings)
    assert temp_db.load_settings() == settings


def test_corrupt_settings_fall_back_to_defaults(temp_db):
    temp_db._set_setting("system_settings", "[1, 2")
    assert temp_db.load_settings() == SystemSettings()


def test_pending_profiles_round_trip(temp_db):
    profiles = (new_profile("Lia", "11 1111-1111"), new_profile("Rui", "11 2222-2222", status="desistiu"))
    assert temp_db.save_pending_profiles(profiles)
    assert temp_db.load_pending_profiles() == profiles


def test_tables_exist(temp_db):
    names = {row["name"] for row in temp_db.fetch_all("SELECT name FROM sqlite_master WHERE type='table'")}
    assert {"customers", "pending_profiles", "app_settings"} <= names
    assert isinstance(temp_db.fetch_one("SELECT 1 AS one"), sqlite3.Row)
