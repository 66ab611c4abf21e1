"""
Test configuration and fixtures for the accessibility scan API.

Every test gets its own SQLite database file and screenshot directory. The
broker, Redis and the browser are always replaced by doubles.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

from dotenv import load_dotenv

load_dotenv()

# settings are read at import time, so point them somewhere disposable first
_test_root = Path(tempfile.mkdtemp(prefix="a11y-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_test_root / 'app.db'}"
os.environ["SCREENSHOT_DIR"] = str(_test_root / "screenshots")
os.environ["LOG_DIR"] = str(_test_root / "logs")
os.environ["BASE_URL"] = "http://testserver"
os.environ["CLEANUP_ENABLED"] = "true"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from a11y_api.features.scan.models.scan import Scan, ScanStatus
from a11y_api.features.scan.models.issue import Issue
from a11y_api.features.scan.services.queue.scan_queue import ScanQueue
from a11y_api.platform.db.session import build_engine, init_db


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'scans.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def screenshot_dir(tmp_path) -> Path:
    directory = tmp_path / "screenshots"
    directory.mkdir()
    return directory


@pytest.fixture
def make_scan(session_factory):
    """Insert a scan (optionally with issues) and return its id."""

    def _make(url="https://example.com", status=ScanStatus.pending, created_at=None, issues=()):
        session = session_factory()
        try:
            scan = Scan(url=url, language="en", scanner_type="htmlcs", status=status.value)
            if created_at is not None:
                scan.created_at = created_at
            session.add(scan)
            session.flush()
            for issue in issues:
                session.add(Issue(scan_id=scan.id, **issue))
            session.commit()
            return scan.id
        finally:
            session.close()

    return _make


@pytest.fixture
def fake_queue():
    queue = MagicMock(spec=ScanQueue)
    queue.enqueue.return_value = "job-1"
    queue.get_status.return_value = {"waiting": 1, "active": 0, "completed": 3, "failed": 1}
    return queue


@pytest.fixture
def test_app():
    """Create FastAPI test application."""
    from a11y_api.main import app

    return app


@pytest.fixture
def client(test_app, session_factory, fake_queue, screenshot_dir) -> Generator[TestClient, None, None]:
    """
    TestClient with the database, queue and cleanup service swapped for
    per-test instances.
    """
    from a11y_api.features.scan.routes.dependencies import get_cleanup_service, get_scan_queue
    from a11y_api.features.scan.services.cleanup.cleanup_service import CleanupService
    from a11y_api.platform.db.session import get_db

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_scan_queue] = lambda: fake_queue
    test_app.dependency_overrides[get_cleanup_service] = lambda: CleanupService(
        session_factory, screenshot_dir, retention_days=0, batch_pause=0, sleep=lambda _: None
    )

    with TestClient(test_app, raise_server_exceptions=False) as test_client:
        yield test_client

    test_app.dependency_overrides.clear()
