"""Shared fixtures and utilities for tests."""

import os

# Settings and the engine are created at import time, so the test
# environment has to be in place before any project import
os.environ.setdefault("APP_ENV", "test")

# Database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

# Celery (never contacted: retries are disabled)
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("NOTIFICATION_RETRY_ENABLED", "false")

# Logging and email
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("SMTP_HOST", "localhost")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import database.models  # noqa: F401  (registers mappers)
from database.engine import Base
from api.services.audit import AuditSink
from api.services.phase_configs import initialize_phase_configs
from tests.helpers import CYCLE_ID, FakeNotifier


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite engine so separate sessions see each other's commits."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def audit(session_factory):
    return AuditSink(session_factory)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest_asyncio.fixture
async def configs(db):
    configs, _ = await initialize_phase_configs(db, CYCLE_ID)
    return configs
