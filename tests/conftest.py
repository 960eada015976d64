"""Pytest configuration and shared fixtures for all tests.

This module provides shared test fixtures including:
- A throwaway SQLite database file per test, built from the ORM metadata
- A session factory bound to that database
- Seeded persons, events and tariffs
- A deterministic signing secret and a wired BoxOfficeService
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from festival_pass.config import Settings
from festival_pass.domain.credential import CredentialSigner
from festival_pass.infrastructure.database import create_db_engine, drop_all_tables, init_db
from festival_pass.infrastructure.models import Event, Person, Tariff
from festival_pass.infrastructure.secrets import StaticSecretProvider
from festival_pass.services.box_office import BoxOfficeService

TEST_SECRET = "00112233445566778899aabbccddeeff" * 2

ALICE_ID = "11111111-1111-1111-1111-111111111111"  # studente, tariff 9.00
BRUNO_ID = "22222222-2222-2222-2222-222222222222"  # altro, no tariff
CARLA_ID = "33333333-3333-3333-3333-333333333333"  # docente, tariff 12.00

CONCERT_ID = "aaaaaaaa-0000-0000-0000-000000000001"  # base price 20.00
RECITAL_ID = "aaaaaaaa-0000-0000-0000-000000000002"  # base price 15.00


@pytest.fixture
def secret():
    return TEST_SECRET


@pytest.fixture
def signer():
    return CredentialSigner()


@pytest.fixture
def test_settings(secret):
    return Settings(
        _env_file=None,
        card_signing_secret=secret,
        lock_timeout_seconds=5,
    )


@pytest.fixture
def engine(tmp_path):
    """Create a fresh SQLite database file with the full schema."""
    db_engine = create_db_engine(f"sqlite:///{tmp_path / 'festival_pass.db'}", lock_timeout_seconds=5)
    init_db(db_engine)
    yield db_engine
    drop_all_tables(db_engine)
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    """Plain session for assertions against committed state."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded(session_factory):
    """Insert the reference persons, events and tariffs."""
    now = datetime.now(timezone.utc)
    session = session_factory()
    try:
        session.add_all(
            [
                Person(id=ALICE_ID, name="Alice", category="studente", document_verified=True, created_at=now),
                Person(id=BRUNO_ID, name="Bruno", category="altro", created_at=now),
                Person(id=CARLA_ID, name="Carla", category="docente", created_at=now),
                Event(
                    id=CONCERT_ID,
                    name="Concert",
                    date="2025-07-20",
                    venue="Cortile del Palazzo Ducale",
                    base_price=Decimal("20.00"),
                ),
                Event(
                    id=RECITAL_ID,
                    name="Recital",
                    date="2025-07-22",
                    venue="Teatro Sanzio",
                    base_price=Decimal("15.00"),
                ),
                Tariff(category="studente", price=Decimal("9.00")),
                Tariff(category="docente", price=Decimal("12.00")),
            ]
        )
        session.commit()
    finally:
        session.close()


@pytest.fixture
def box_office(session_factory, secret, test_settings, seeded):
    return BoxOfficeService(
        session_factory=session_factory,
        secret_provider=StaticSecretProvider(secret),
        app_settings=test_settings,
    )


@pytest.fixture
def alice_card(box_office):
    return box_office.issue_card(ALICE_ID, expiry_date="2099-12-31")


@pytest.fixture
def bruno_card(box_office):
    return box_office.issue_card(BRUNO_ID, expiry_date="2099-12-31")
