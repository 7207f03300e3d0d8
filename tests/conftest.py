"""Pytest configuration and fixtures."""

import os
from unittest.mock import patch

import pytest

from app.core.config import get_settings
from tests.fakes.fake_conversation_store import FakeConversationStore


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ["EXPORT_ENGINE_ENV"] = "test"
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def uploads_dir(tmp_path, monkeypatch):
    """Point UPLOADS_DIR at a per-test directory."""
    path = tmp_path / "uploads"
    monkeypatch.setenv("UPLOADS_DIR", str(path))
    monkeypatch.setenv("PUBLIC_BASE_URL", "http://testserver")
    get_settings.cache_clear()
    yield path
    get_settings.cache_clear()


@pytest.fixture
def fake_store():
    """In-memory conversation store patched over app.db.conversations."""
    store = FakeConversationStore()
    patches = [
        patch("app.db.conversations.append_message", side_effect=store.append_message),
        patch("app.db.conversations.get_messages", side_effect=store.get_messages),
        patch("app.db.conversations.get_export_snapshot", side_effect=store.get_export_snapshot),
        patch("app.db.conversations.set_export_snapshot", side_effect=store.set_export_snapshot),
        patch("app.db.conversations.clear_export_snapshot", side_effect=store.clear_export_snapshot),
    ]
    for p in patches:
        p.start()
    yield store
    for p in patches:
        p.stop()


@pytest.fixture
def no_usage_logging():
    """Silence fire-and-forget usage logging from oracle calls."""
    with patch("app.core.oracle.log_llm_usage") as mock_log:
        yield mock_log
