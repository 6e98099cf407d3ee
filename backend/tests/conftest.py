"""Shared test fixtures and configuration for backend tests."""
import pytest
from fastapi.testclient import TestClient

from lanchat.config import AppConfig
from lanchat.main import create_app


@pytest.fixture
def config(tmp_path):
    """Config isolated to a temp directory (uploads, no web client)."""
    cfg = AppConfig()
    cfg.uploads.directory = str(tmp_path / "uploads")
    cfg.server.public_dir = str(tmp_path / "public")
    return cfg


@pytest.fixture
def app(config):
    """A fresh application with empty presence and history."""
    return create_app(config)


@pytest.fixture
def api_client(app):
    """Provide a TestClient for a freshly built app.

    The client is entered so every WebSocket connection shares one
    portal and event loop, as they would under uvicorn; chat state is
    built by create_app().
    """
    with TestClient(app) as client:
        yield client
