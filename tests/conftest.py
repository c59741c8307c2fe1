"""
Shared fixtures: in-memory database, repository, seed data, a recording
mailer and a TestClient wired to them through dependency overrides.
"""

from typing import List

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session

from strandly.core.config import Settings, get_settings
from strandly.core.exceptions import DeliveryError
from strandly.core.rate_limit import limiter
from strandly.database import build_engine, create_db_and_tables, get_session
from strandly.engine.catalog import load_catalog, load_knowledge_base
from strandly.services.delivery import OutgoingEmail, get_mailer
from strandly.services.submissions import SubmissionRepository


class RecordingMailer:
    """Collects outgoing email; raises DeliveryError when ``fail`` is set."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: List[OutgoingEmail] = []

    async def send(self, email: OutgoingEmail) -> str:
        if self.fail:
            raise DeliveryError("Email provider returned HTTP 503.")
        self.sent.append(email)
        return f"msg-{len(self.sent)}"


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def repo(session):
    return SubmissionRepository(session)


@pytest.fixture(scope="session")
def catalog():
    return load_catalog()


@pytest.fixture(scope="session")
def knowledge_base():
    return load_knowledge_base()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def settings():
    return Settings(_env_file=None, DELIVERY_BACKEND="log", ENABLE_TEST_ENDPOINTS=True)


@pytest.fixture
def client(session, mailer, settings):
    from main import app

    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_settings] = lambda: settings
    limiter.reset()
    yield TestClient(app)
    app.dependency_overrides.clear()
