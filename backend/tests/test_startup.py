"""Tests for application startup checks."""

import threading

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app import database
from app.config import settings
from app.main import app
from app.services.auth import KeyLoadError


@pytest.fixture
def startup_settings(monkeypatch, rsa_key_paths):
    private_path, public_path = rsa_key_paths
    monkeypatch.setattr(settings, "jwt_private_key_path", private_path)
    monkeypatch.setattr(settings, "jwt_public_key_path", public_path)
    monkeypatch.setattr(settings, "token_cleanup_enabled", False)
    monkeypatch.setattr(database, "check_connection", lambda bind=None: None)


def test_startup_loads_codec(startup_settings):
    with TestClient(app) as client:
        assert client.app.state.token_codec is not None
        assert client.get("/health").status_code == 200


def test_startup_fails_without_keys(startup_settings, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "jwt_private_key_path", str(tmp_path / "missing.pem"))

    with pytest.raises(KeyLoadError):
        with TestClient(app):
            pass


def test_startup_fails_without_database(startup_settings, monkeypatch):
    def unreachable(bind=None):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(database, "check_connection", unreachable)

    with pytest.raises(OperationalError):
        with TestClient(app):
            pass


def test_startup_runs_cleanup_task(startup_settings, monkeypatch, session_factory):
    sweeps = []
    swept = threading.Event()

    def fake_cleanup(factory, retention, grace):
        sweeps.append((factory, retention, grace))
        swept.set()
        return 0, 0

    monkeypatch.setattr(settings, "token_cleanup_enabled", True)
    monkeypatch.setattr(database, "SessionLocal", session_factory)
    monkeypatch.setattr("app.services.auth.token_cleanup.run_token_cleanup", fake_cleanup)

    with TestClient(app):
        assert swept.wait(timeout=5)

    assert sweeps == [
        (
            session_factory,
            settings.refresh_token_retention_days,
            settings.reset_token_cleanup_grace_hours,
        )
    ]
