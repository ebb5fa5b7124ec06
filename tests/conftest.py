import os

# Must be set before consciente.database builds its engine.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("OPENAI_API_KEY", "test-key")

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import consciente.models  # noqa: F401
from consciente.config import Settings
from consciente.database import Base
from consciente.models import Contact, ContactStatus
from consciente.services.conversation_service import ensure_active_conversation

MEXICO_CITY = ZoneInfo("America/Mexico_City")


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def tz():
    return MEXICO_CITY


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        openai_api_key="test-key",
        waha_api_key="test-key",
        _env_file=None,
    )


@pytest.fixture
def contact(db_session):
    now = datetime.now(timezone.utc)
    contact = Contact(
        phone_number="5215551234567",
        name="Ana",
        status=ContactStatus.PROSPECT.value,
        lead_score=0,
        interested_in=[],
        first_contact_at=now,
        last_contact_at=now,
        created_at=now,
    )
    db_session.add(contact)
    db_session.commit()
    return contact


@pytest.fixture
def conversation(db_session, contact):
    return ensure_active_conversation(db_session, contact.id)
