"""
db.py
SQLite persistence for the dashboard: customers, pending profiles, settings.

Each save writes a full snapshot in one transaction. Failures are logged and
reported to the caller as False/empty values; the core keeps working in memory.
"""

from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from errors import ValidationError
from logger import get_logger
from models import DEFAULT_SETTINGS, CustomerRecord, PendingProfile, SystemSettings
from registry import Registry

logger = get_logger(__name__)

DB_FILE = Path(os.environ.get("FLEET_DB_FILE", Path(__file__).with_name("fleet.db")))


@contextmanager
def get_conn():
    conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def _create_tables() -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS customers (
            login_id TEXT PRIMARY KEY,
            position INTEGER NOT NULL,
            payload TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS pending_profiles (
            id TEXT PRIMARY KEY,
            position INTEGER NOT NULL,
            payload TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )


def _get_setting(key: str, default: str | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
    if row:
        return str(row["value"])
    return default


def _set_setting(key: str, value: str) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )


def init_db() -> bool:
    try:
        _create_tables()
    except sqlite3.Error:
        logger.exception("Could not initialise database at %s", DB_FILE)
        return False
    return True


def _replace_rows(table: str, key_column: str, rows: list[tuple[str, int, str]]) -> None:
    # table/column names are module constants, never user input
    with get_conn() as conn:
        conn.execute(f"DELETE FROM {table}")
        conn.executemany(
            f"INSERT INTO {table}({key_column}, position, payload) VALUES(?,?,?)",
            rows,
        )


def load_registry() -> Registry:
    try:
        rows = fetch_all("SELECT payload FROM customers ORDER BY position ASC")
    except sqlite3.Error:
        logger.exception("Could not load customers")
        return Registry()

    registry = Registry()
    for row in rows:
        try:
            registry = registry.upsert(CustomerRecord.from_dict(json.loads(row["payload"])))
        except (ValueError, KeyError, TypeError, AttributeError, ValidationError):
            logger.warning("Skipping unreadable customer row")
    logger.info("%d customers loaded", len(registry))
    return registry


def save_registry(registry: Registry) -> bool:
    rows = [
        (r.login_id, i, json.dumps(r.to_dict(), ensure_ascii=False))
        for i, r in enumerate(registry)
    ]
    try:
        _replace_rows("customers", "login_id", rows)
    except sqlite3.Error:
        logger.exception("Could not save %d customers", len(rows))
        return False
    return True


def load_pending_profiles() -> tuple[PendingProfile, ...]:
    try:
        rows = fetch_all("SELECT payload FROM pending_profiles ORDER BY position ASC")
    except sqlite3.Error:
        logger.exception("Could not load pending profiles")
        return ()

    profiles = []
    for row in rows:
        try:
            profiles.append(PendingProfile.from_dict(json.loads(row["payload"])))
        except (ValueError, KeyError, TypeError, AttributeError):
            logger.warning("Skipping unreadable pending profile row")
    return tuple(profiles)


def save_pending_profiles(profiles: tuple[PendingProfile, ...]) -> bool:
    rows = [(p.id, i, json.dumps(p.to_dict(), ensure_ascii=False)) for i, p in enumerate(profiles)]
    try:
        _replace_rows("pending_profiles", "id", rows)
    except sqlite3.Error:
        logger.exception("Could not save pending profiles")
        return False
    return True


def load_settings() -> SystemSettings:
    try:
        raw = _get_setting("system_settings")
    except sqlite3.Error:
        logger.exception("Could not load settings")
        return SystemSettings(**DEFAULT_SETTINGS.to_dict())
    if raw is None:
        return SystemSettings(**DEFAULT_SETTINGS.to_dict())
    try:
        return SystemSettings.from_dict(json.loads(raw))
    except (ValueError, TypeError, AttributeError):
        logger.warning("Stored settings are corrupt; using defaults")
        return SystemSettings(**DEFAULT_SETTINGS.to_dict())


def save_settings(settings: SystemSettings) -> bool:
    try:
        _set_setting("system_settings", json.dumps(settings.to_dict(), ensure_ascii=False))
    except sqlite3.Error:
        logger.exception("Could not save settings")
        return False
    return True
