import itertools

import pytest

from records_cli.auth import Identity
from records_cli.context import build_services
from records_cli.db.config import create_engine_for_url, init_db
from records_cli.utils.local_state import LocalState

YEAR = "2024/2025"


def make_student(**overrides):
    """Field values for a valid student, with ``overrides`` applied."""
    fields = {
        "full_name": "Budi Santoso",
        "gender": "L",
        "nisn": "0012345678",
        "class_label": "7A",
        "birth_place": "Bandung",
        "birth_date": "2012-03-04",
        "religion": "Islam",
        "residence_type": "Bersama orang tua",
        "transport_mode": "Jalan kaki",
        "mobile_phone": "081234567890",
        "father_name": "Slamet",
        "mother_name": "Siti",
    }
    fields.update(overrides)
    return fields


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    monkeypatch.setenv("RECORDS_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("RECORDS_STATE_DIR", str(tmp_path / "state"))


@pytest.fixture
def engine():
    engine = create_engine_for_url("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def clock():
    ticks = itertools.count(1_700_000_000_000, 1000)
    return lambda: next(ticks)


@pytest.fixture
def services(engine, tmp_path, clock):
    return build_services(engine, LocalState(str(tmp_path / "state")), clock)


@pytest.fixture
def user():
    return Identity(uid="user-1", email="guru@sekolah.sch.id")


@pytest.fixture
def admin(services):
    identity = Identity(uid="admin-1", email="admin@sekolah.sch.id")
    services.roles.bootstrap_admin(identity)
    return identity


@pytest.fixture
def year(services):
    services.catalog.add_year(YEAR)
    services.selector.set_active(YEAR)
    return YEAR
