"""
Pytest configuration and fixtures for SheetBridge tests.

Every test gets a fresh SQLite database, and the backoff sleep is replaced
so retries never actually wait. Storage and webhook fakes are opt-in.
"""

import os

# The app lifespan must not try to reach the default PostgreSQL URL.
os.environ.setdefault("SKIP_DB_INIT", "1")

from typing import Dict, List

import pytest
import requests

from sheetbridge.core.config import settings
from sheetbridge.db.session import dispose_engine, init_db
from sheetbridge.domain.delivery import retry
from sheetbridge.domain.delivery.webhook import shutdown_dispatcher
from tests.utils.fakes import FakeResponse, FakeWebhook


@pytest.fixture(autouse=True)
def sqlite_database(tmp_path, monkeypatch):
    """Point the engine at a throwaway SQLite file and create the tables."""
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{tmp_path / 'sheetbridge.db'}")
    dispose_engine()
    init_db()
    yield
    # Let background dispatches finish before the database goes away
    shutdown_dispatcher(wait=True)
    dispose_engine()


@pytest.fixture(autouse=True)
def recorded_sleeps(monkeypatch) -> List[float]:
    """Replace the backoff sleep; the list holds every requested delay."""
    sleeps: List[float] = []
    monkeypatch.setattr(retry, "_sleep", sleeps.append)
    return sleeps


@pytest.fixture
def fake_storage(monkeypatch) -> Dict[str, bytes]:
    storage: Dict[str, bytes] = {}

    def fake_upload(file_content: bytes, file_path: str, content_type: str, bucket=None, overwrite=False):
        storage[file_path] = bytes(file_content)
        return {"file_id": "etag", "file_path": file_path, "size": len(file_content)}

    def fake_public_url(file_path: str, bucket=None) -> str:
        return f"https://storage.test/uploads/{file_path}"

    monkeypatch.setattr("sheetbridge.domain.delivery.service.upload_file_to_storage", fake_upload)
    monkeypatch.setattr("sheetbridge.domain.delivery.service.get_public_url", fake_public_url)
    return storage


@pytest.fixture
def fake_webhook(monkeypatch) -> FakeWebhook:
    webhook = FakeWebhook()
    monkeypatch.setattr(requests, "post", webhook)
    return webhook


@pytest.fixture
def fake_sheet_export(monkeypatch):
    """Serve Google Sheets CSV exports from a dict of export URL -> response."""
    responses: Dict[str, FakeResponse] = {}
    requested: List[str] = []

    def fake_get(url, timeout=None):
        requested.append(url)
        if url not in responses:
            return FakeResponse(404)
        return responses[url]

    monkeypatch.setattr(requests, "get", fake_get)
    fake_get.responses = responses
    fake_get.requested = requested
    return fake_get
