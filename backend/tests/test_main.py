"""Application wiring"""
import httpx
import pytest
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient

from handshake.core.config import settings
from handshake.main import app, build_handshake
from handshake.services.domain_router import LandingPages
from handshake.services.state_store import DatabaseStateCache, MemoryStateCache


@pytest.fixture
def http_client():
    return httpx.AsyncClient()


def test_build_handshake_memory_backend(monkeypatch, http_client):
    monkeypatch.setattr(settings, "GITHUB_APP_STATE_BACKEND", "memory")
    handshake = build_handshake(None, http_client)
    assert isinstance(handshake.state_tokens.cache, MemoryStateCache)
    assert handshake.default_base_url == settings.GITHUB_DEFAULT_BASE_URL


def test_build_handshake_database_backend(monkeypatch, http_client):
    monkeypatch.setattr(settings, "GITHUB_APP_STATE_BACKEND", "database")
    handshake = build_handshake(None, http_client)
    assert isinstance(handshake.state_tokens.cache, DatabaseStateCache)
    assert handshake.state_tokens.entropy_bytes == settings.GITHUB_APP_STATE_ENTROPY_BYTES


def test_build_handshake_unknown_backend(monkeypatch, http_client):
    monkeypatch.setattr(settings, "GITHUB_APP_STATE_BACKEND", "redis")
    with pytest.raises(ValueError, match="GITHUB_APP_STATE_BACKEND"):
        build_handshake(None, http_client)


def test_build_handshake_injects_landing_pages_and_cipher(monkeypatch, http_client):
    monkeypatch.setattr(settings, "SITE_ADMIN_GITHUB_APPS_PATH", "/admin/apps")
    monkeypatch.setattr(settings, "SITE_ADMIN_WORKFLOW_AUTOMATION_PATH", "/admin/automation")
    monkeypatch.setattr(settings, "SECRETS_ENCRYPTION_KEY", Fernet.generate_key().decode("utf-8"))
    monkeypatch.setattr(settings, "EXTERNAL_URL", "https://sourcegraph.example.com")

    handshake = build_handshake(None, http_client)

    assert handshake.landing_pages == LandingPages(github_apps="/admin/apps", workflow_automation="/admin/automation")
    assert handshake.cipher.enabled
    assert handshake.apps.cipher is handshake.cipher
    assert handshake.webhook_service.cipher is handshake.cipher
    assert handshake.route_prefix == settings.GITHUB_APP_ROUTE_PREFIX
    assert handshake.external_url == "https://sourcegraph.example.com"


def test_routes_mounted_under_prefix():
    # Not entering the client skips the lifespan, so no database is needed
    client = TestClient(app)
    prefix = settings.GITHUB_APP_ROUTE_PREFIX
    for name in ("state", "new-app-state", "new-app-manifest", "redirect", "setup"):
        assert client.get(f"{prefix}/{name}", follow_redirects=False).status_code == 401
    assert client.get(f"{prefix}/unknown").status_code == 404
    assert client.get("/health").json()["status"] == "healthy"
