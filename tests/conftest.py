"""Shared test fixtures for the SpecVault test suite.

Every test gets a fresh in-memory SQLite database. The engine uses a
StaticPool, so the persistence worker thread and the test see the same
database through one shared connection.
"""

import os

# Use an in-memory database before any app imports read settings.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_FORMAT"] = "text"

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from specvault.core.config import Settings
from specvault.database import create_db_engine, init_db, make_session_factory
from specvault.engine.compression import encode_payload
from specvault.schemas.specification import NewSpecification, SpecificationRecord
from specvault.services import VersionController
from specvault.worker import PersistenceWorker, WorkerClient


@pytest.fixture()
def settings() -> Settings:
    """Settings for a throwaway in-memory store."""
    return Settings(
        database_url="sqlite://",
        rebaseline_interval=10,
        text_diff_min_length=60,
        worker_request_timeout=5.0,
        log_format="text",
    )


@pytest.fixture()
def engine(settings):
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture()
def db(session_factory):
    """Per-test database session."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def worker(session_factory, settings) -> PersistenceWorker:
    """A worker that is not started; tests may call ``handle()`` directly."""
    return PersistenceWorker(session_factory, settings)


@pytest_asyncio.fixture()
async def worker_client(worker, settings):
    client = WorkerClient(worker, request_timeout=settings.worker_request_timeout)
    await client.open()
    yield client
    await client.close()


@pytest_asyncio.fixture()
async def controller(worker_client, settings) -> VersionController:
    return VersionController(worker_client, settings)


@pytest.fixture()
def client():
    """FastAPI TestClient. Entering it runs the lifespan: a fresh database and worker."""
    from specvault.main import app

    with TestClient(app) as c:
        yield c


def make_spec(
    content,
    path: str = "spec.yaml",
    version: str = "1.0.0",
    name: str = "v1",
    is_full: bool = True,
    **overrides,
) -> NewSpecification:
    """Factory for new version records with an encoded payload."""
    data = {
        "path": path,
        "name": name,
        "version": version,
        "diff": encode_payload(content),
        "is_full": is_full,
        "created_at": datetime.now(timezone.utc),
    }
    data.update(overrides)
    return NewSpecification(**data)


def make_record(record_id: int, content, **kwargs) -> SpecificationRecord:
    """Factory for stored records, without touching the database."""
    spec = make_spec(content, **kwargs)
    return SpecificationRecord(id=record_id, **spec.model_dump())


def message(model, message_id: int = 1, **data) -> dict:
    """Serialized request, as the client would post it."""
    return model.build(**data).model_copy(update={"id": message_id}).model_dump()
