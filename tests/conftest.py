"""
Pytest configuration and shared fixtures.
"""

import os
import tempfile

# Keep log files out of the working tree; must run before clubadmin is imported.
os.environ.setdefault("CLUBADMIN_LOG_DIR", tempfile.mkdtemp(prefix="clubadmin-logs-"))

import pytest
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict

from clubadmin.database import Club, Member, PointEntry, Requirement, Specialty, init_database
from clubadmin.store import ClubStore


BASE_TIME = datetime(2025, 1, 1, 12, 0, 0)


def at(minutes: int) -> datetime:
    """Deterministic timestamp `minutes` after BASE_TIME."""
    return BASE_TIME + timedelta(minutes=minutes)


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Create an empty database with all tables."""
    path = tmp_path / "club.db"
    init_database(path)
    return path


@pytest.fixture
def store(db_path):
    """Open store on the temporary database."""
    with ClubStore.open(db_path, retry_delay=0) as s:
        yield s


@pytest.fixture
def members(store):
    """Three members in one club; ledger for m1 only."""
    club = Club(id="club-1", name="Orion de Barcarena", created_at=at(0))
    rows = [
        club,
        Member(id="m1", name="Ana", club_id="club-1", points=0, created_at=at(1), updated_at=at(1)),
        Member(id="m2", name="Bruno", club_id="club-1", points=500, created_at=at(2), updated_at=at(2)),
        Member(id="m3", name="Carla", club_id="club-1", points=0, created_at=at(3), updated_at=at(3)),
        PointEntry(member_id="m1", amount=50, source="ACTIVITY", created_at=at(10)),
        PointEntry(member_id="m1", amount=30, source="ATTENDANCE", created_at=at(11)),
        PointEntry(member_id="m1", amount=-10, source="REFUND", created_at=at(12)),
    ]
    store.add_all(rows)
    return ["m1", "m2", "m3"]


@pytest.fixture
def catalog(store):
    """Specialties and requirements with known duplicates."""
    amigo = "Ter no mínimo 10 anos de idade ou estar cursando o quinto ano do ensino fundamental"
    rows = [
        Specialty(id="s1", name="Primeiros Socorros", area="ADRA", created_at=at(0)),
        Specialty(id="s2", name="AD-001 - Primeiros Socorros", area="ADRA", created_at=at(5)),
        Specialty(id="s3", name="Avicultura", area="ESTUDO DA NATUREZA", created_at=at(1)),
        Requirement(id="r1", specialty_id="s1", code="1", description="Saber tratar cortes", created_at=at(0)),
        Requirement(id="r2", specialty_id="s2", code="1", description="Saber tratar cortes", created_at=at(6)),
        Requirement(id="r3", specialty_id="s2", code="1", description="Saber tratar cortes (dup)", created_at=at(7)),
        Requirement(id="r4", specialty_id="s2", code=None, description="Sem código", created_at=at(8)),
        Requirement(id="c1", dbv_class="AMIGO", code="1", description=amigo + " (antigo)", created_at=at(0)),
        Requirement(id="c2", dbv_class="AMIGO", code="I.", description=amigo + ".", created_at=at(1)),
        Requirement(id="c3", dbv_class="AMIGO", code="II.", description="Memorizar o voto e a lei", created_at=at(2)),
        Requirement(id="c4", dbv_class="AMIGO", club_id="club-x", code="1", description=amigo, created_at=at(3)),
    ]
    store.add_all(rows)
    return rows


@pytest.fixture
def export_document() -> Dict[str, Any]:
    """Small but complete export document."""
    return {
        "clubs": [{"id": "club-1", "name": "Orion", "region": "PA"}],
        "specialties": [{"id": "s1", "name": "AD-001 - Primeiros Socorros", "area": "ADRA"}],
        "members": [
            {"id": "m1", "name": "Ana", "club_id": "club-1", "points": 999},
            {"id": "m2", "name": "Bruno", "club_id": "club-1"},
        ],
        "requirements": [
            {"id": "r1", "description": "Saber tratar cortes", "code": "1", "specialty_id": "s1"},
        ],
        "point_history": [
            {"member_id": "m1", "amount": 1200, "source": "activity", "created_at": "2025-02-01T10:00:00"},
            {"member_id": "m1", "amount": -200, "source": "REFUND", "source_ref": "tx-9"},
        ],
    }
