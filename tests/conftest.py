"""
Pytest configuration and fixtures for the error telemetry tests.
"""

import os
import sys
from pathlib import Path

import pytest
from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from db_pipeline.error_log_store import ErrorRecordStore  # noqa: E402
from models import Base  # noqa: E402
from services.error_logger import ErrorLogger  # noqa: E402


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite engine so the TestClient threadpool shares one DB."""
    eng = create_engine(
        f"sqlite:///{tmp_path / 'error_logs.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    return ErrorRecordStore(session_factory)


@pytest.fixture
def error_logger(store):
    return ErrorLogger(store)


# =============================================================================
# Application Fixtures
# =============================================================================

@pytest.fixture
def test_client(store):
    """TestClient with the store dependency pointed at the test database."""
    from fastapi.testclient import TestClient

    from main import app
    from routers.dependencies import get_error_store

    app.dependency_overrides[get_error_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


# =============================================================================
# Logging Fixtures
# =============================================================================

@pytest.fixture
def log_messages():
    """Collect loguru output emitted during a test."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def sample_report():
    return {
        "level": "error",
        "service": "frontend",
        "message": "Cannot read properties of undefined (reading 'price')",
        "stack": (
            "TypeError: Cannot read properties of undefined (reading 'price')\n"
            "    at renderCard (https://example.test/assets/app.js:10:5)\n"
            "    at render (https://example.test/assets/app.js:40:3)"
        ),
        "url": "https://example.test/en/shoes/pegasus-41",
        "userAgent": "Mozilla/5.0 (test)",
        "additionalData": {"component": "ProductCard"},
    }
