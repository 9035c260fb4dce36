"""
Shared fixtures: in-memory registry database and matching configuration.
"""

import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from matching.contact_resolution.matchers import parse_criteria
from matching.contact_resolution.router import ConfidenceThresholds
from matching.models import Base, Person

# Criterion set used by the end-to-end examples
E2E_CRITERIA_TABLE = {
    "rut": {"weight": 100, "mode": "exact", "normalization": "national_id"},
    "email": {"weight": 80, "mode": "fuzzy", "threshold": 0.9, "normalization": "email"},
    "full_name": {"weight": 50, "mode": "fuzzy", "threshold": 0.8},
}


@pytest.fixture
def db():
    """Fresh in-memory SQLite session per test."""
    engine = create_engine("sqlite://", future=True)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def e2e_criteria():
    return parse_criteria(E2E_CRITERIA_TABLE)


@pytest.fixture
def thresholds():
    return ConfidenceThresholds(excellent=95, good=80, fair=60, poor=30)


@pytest.fixture
def registry(db):
    """Seed the person registry."""
    persons = {
        "juan": Person(
            full_name="Juan Perez",
            rut="12345678-5",
            email="juan@x.com",
            phone="+56912345678",
            address="Av. Providencia 1234",
        ),
        "maria": Person(
            full_name="Maria Gonzalez",
            rut="11111111-1",
            email="maria@y.cl",
            phone="+56987654321",
        ),
        "pedro": Person(
            full_name="Pedro Soto",
            rut="22222222-2",
            email="pedro@z.cl",
        ),
    }
    db.add_all(persons.values())
    db.commit()
    return persons
