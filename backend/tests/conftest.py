"""Shared fixtures for the GitHub App handshake tests

Provides:
- rsa_private_key_pem: PEM private key for app JWTs
- github_api: fake GitHub REST API (httpx.MockTransport) recording requests
- handshake / client: GitHubAppHandshake on an in-memory state store and fake
  storage, mounted on a FastAPI app with the site admin gate satisfied
- session_factory: SQLite (aiosqlite) session factory with all tables created
"""
from typing import Dict, List, Optional
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import create_async_engine

from handshake.api.v1.router import api_router
from handshake.core.database import Base, create_session_factory
from handshake.core.security import SecretCipher
from handshake.core.dependencies import require_site_admin
from handshake.models.github_app import GitHubApp
from handshake.models.webhook import Webhook
from handshake.services.domain_router import LandingPages
from handshake.services.github_api import ConvertedApp, GitHubAppsClient
from handshake.services.handshake import GitHubAppHandshake, HandshakeError, handshake_error_handler
from handshake.services.state_store import MemoryStateCache, StateTokens
from handshake.services.storage import RecordNotFound

GHE_BASE_URL = "https://github.example.com"
ROUTE_PREFIX = "/.auth/githubapp"
APPS_PATH = "/site-admin/github-apps"
AUTOMATION_PATH = "/site-admin/workflow-automation"


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_private_key_pem(rsa_private_key) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


class FakeGitHub:
    """Minimal GitHub REST API: manifest conversions and app installations"""

    def __init__(self, private_key_pem: str):
        self.private_key_pem = private_key_pem
        self.requests: List[httpx.Request] = []
        self.conversion_status = 201
        self.installation_status = 200

    def conversion(self, html_url: str) -> Dict:
        return {
            "id": 1234,
            "slug": "foo-app",
            "name": "Foo App",
            "html_url": html_url,
            "client_id": "Iv1.client",
            "client_secret": "client-secret",
            "pem": self.private_key_pem,
            "webhook_secret": "whsec",
            "permissions": {"contents": "read"},
            "events": ["push"],
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "POST" and path.endswith("/conversions"):
            if self.conversion_status != 201:
                return httpx.Response(self.conversion_status, json={"message": "Not Found"})
            host = request.url.host
            web_host = "github.com" if host == "api.github.com" else host
            return httpx.Response(201, json=self.conversion(f"https://{web_host}/apps/foo-app"))
        if request.method == "GET" and "/app/installations/" in path:
            if self.installation_status != 200:
                return httpx.Response(self.installation_status, json={"message": "Not Found"})
            installation_id = int(path.rsplit("/", 1)[-1])
            return httpx.Response(200, json={
                "id": installation_id,
                "html_url": f"https://github.example.com/organizations/octo-org/settings/installations/{installation_id}",
                "account": {
                    "login": "octo-org",
                    "avatar_url": "https://avatars.example.com/u/1",
                    "html_url": "https://github.example.com/octo-org",
                    "type": "Organization",
                },
            })
        return httpx.Response(404, json={"message": "Not Found"})


class FakeAppStore:
    def __init__(self, cipher: Optional[SecretCipher] = None):
        self.cipher = cipher or SecretCipher()
        self.apps: Dict[int, GitHubApp] = {}
        self.installations = []
        self.fetched: List[int] = []

    async def create(self, app: ConvertedApp) -> int:
        id = len(self.apps) + 1
        self.apps[id] = GitHubApp(
            id=id,
            app_id=app.app_id,
            name=app.name,
            slug=app.slug,
            base_url=app.base_url,
            app_url=app.app_url,
            client_id=app.client_id,
            client_secret=self.cipher.encrypt(app.client_secret),
            webhook_secret=self.cipher.encrypt(app.webhook_secret),
            private_key=self.cipher.encrypt(app.private_key),
            logo=app.logo,
            domain=app.domain,
        )
        return id

    async def get_by_id(self, id: int) -> GitHubApp:
        self.fetched.append(id)
        if id not in self.apps:
            raise RecordNotFound(f"GitHub App {id} not found")
        return self.apps[id]

    async def install(self, installation) -> int:
        self.installations.append(installation)
        return len(self.installations)


class FakeWebhookStore:
    def __init__(self):
        self.hooks: Dict[str, Webhook] = {}
        self.updated: List[Webhook] = []

    async def get_by_uuid(self, webhook_uuid: str) -> Webhook:
        if webhook_uuid not in self.hooks:
            raise RecordNotFound(f"webhook {webhook_uuid} not found")
        return self.hooks[webhook_uuid]

    async def update(self, hook: Webhook) -> Webhook:
        self.hooks[hook.uuid] = hook
        self.updated.append(hook)
        return hook


class FakeWebhookService:
    def __init__(self, store: FakeWebhookStore):
        self.store = store
        self.fail_with: Optional[Exception] = None

    async def create_webhook(self, name, code_host_kind, code_host_urn, secret=None) -> Webhook:
        if self.fail_with is not None:
            raise self.fail_with
        hook = Webhook(
            uuid=str(uuid4()), name=name, code_host_kind=code_host_kind,
            code_host_urn=code_host_urn, secret=secret,
        )
        self.store.hooks[hook.uuid] = hook
        return hook


@pytest.fixture
def github_api(rsa_private_key_pem) -> FakeGitHub:
    return FakeGitHub(rsa_private_key_pem)


@pytest.fixture
def state_cache() -> MemoryStateCache:
    return MemoryStateCache(ttl_seconds=3600)


@pytest.fixture
def app_store() -> FakeAppStore:
    return FakeAppStore()


@pytest.fixture
def webhook_store() -> FakeWebhookStore:
    return FakeWebhookStore()


@pytest.fixture
def webhook_service(webhook_store) -> FakeWebhookService:
    return FakeWebhookService(webhook_store)


@pytest.fixture
def handshake(state_cache, github_api, app_store, webhook_store, webhook_service) -> GitHubAppHandshake:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(github_api.handler))
    return GitHubAppHandshake(
        state_tokens=StateTokens(state_cache, entropy_bytes=128),
        github=GitHubAppsClient(http_client),
        apps=app_store,
        webhooks=webhook_store,
        webhook_service=webhook_service,
        install_page_delay=0,
        installation_delay=0,
        landing_pages=LandingPages(github_apps=APPS_PATH, workflow_automation=AUTOMATION_PATH),
        route_prefix=ROUTE_PREFIX,
    )


@pytest.fixture
def handshake_app(handshake) -> FastAPI:
    app = FastAPI()
    app.include_router(api_router, prefix=ROUTE_PREFIX)
    app.add_exception_handler(HandshakeError, handshake_error_handler)
    app.state.github_app_handshake = handshake
    return app


@pytest.fixture
def client(handshake_app) -> TestClient:
    handshake_app.dependency_overrides[require_site_admin] = lambda: {"email": "admin@example.com", "is_admin": True}
    return TestClient(handshake_app)


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield create_session_factory(engine)
    await engine.dispose()
