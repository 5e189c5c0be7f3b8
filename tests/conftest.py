import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path to allow `import registry`, `import db`, etc.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import db  # noqa: E402
from registry import Registry, build_customer  # noqa: E402


@pytest.fixture
def alice():
    return build_customer(
        name="Alice",
        login_id="111",
        total_price="R$ 2.500,00",
        weekly_price="R$ 625,00",
        pickup_date="04/03/2024 10:00",
        return_date="01/04/2024 10:00",
        can_refer=True,
    )


@pytest.fixture
def bob():
    return build_customer(
        name="Bob",
        login_id="222",
        total_price="R$ 2.000,00",
        weekly_price="R$ 500,00",
        pickup_date="20/03/2024 09:30",
        return_date="17/04/2024 09:30",
    )


@pytest.fixture
def carol():
    return build_customer(
        name="Carol",
        login_id="333",
        total_price="R$ 1.600,00",
        weekly_price="R$ 400,00",
        pickup_date="29/03/2024 08:00",
    )


@pytest.fixture
def registry(alice, bob, carol) -> Registry:
    return Registry().upsert(alice).upsert(bob).upsert(carol)


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point db.py at a fresh SQLite file."""
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "fleet_test.db")
    assert db.init_db()
    return db
