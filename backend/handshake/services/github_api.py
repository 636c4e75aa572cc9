"""
GitHub REST client for the app manifest conversion and installation lookups
"""
from typing import Optional, Dict
from dataclasses import dataclass
from urllib.parse import urlparse, quote
import logging
import time

import httpx
import jwt
from cryptography.hazmat.primitives import serialization

from handshake.models.github_app import GitHubAppDomain
from handshake.schemas.github_app import ManifestConversion, RemoteInstallation

logger = logging.getLogger(__name__)

GITHUB_DOTCOM_HOST = "github.com"
GITHUB_DOTCOM_API = "https://api.github.com"

# GitHub rejects app JWTs that live longer than 10 minutes
APP_JWT_TTL_SECONDS = 10 * 60
APP_JWT_CLOCK_DRIFT_SECONDS = 60


class GitHubAPIError(Exception):
    """GitHub answered with an unexpected status code"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def api_root(base_url: str) -> str:
    """
    Return the REST API root for a GitHub instance: api.github.com for
    github.com, <base>/api/v3 for GitHub Enterprise Server.
    """
    parsed = urlparse(base_url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"invalid GitHub base URL: {base_url!r}")
    host = parsed.netloc.lower()
    if host in (GITHUB_DOTCOM_HOST, f"www.{GITHUB_DOTCOM_HOST}", "api.github.com"):
        return GITHUB_DOTCOM_API
    return f"{parsed.scheme}://{parsed.netloc}/api/v3"


@dataclass
class ConvertedApp:
    """Fields of a newly converted app, ready to be stored"""

    app_id: int
    name: str
    slug: str
    client_id: str
    client_secret: str
    webhook_secret: Optional[str]
    private_key: str
    base_url: str
    app_url: str
    logo: str
    domain: GitHubAppDomain


class GitHubAppAuthenticator:
    """Signs requests as the GitHub App itself (RS256 JWT, iss = app ID)"""

    def __init__(self, app_id: int, private_key: bytes):
        self.app_id = app_id
        # Fails fast on a malformed key instead of on the first request
        self._key = serialization.load_pem_private_key(private_key, password=None)

    def create_jwt(self, now: Optional[int] = None) -> str:
        issued_at = int(now if now is not None else time.time()) - APP_JWT_CLOCK_DRIFT_SECONDS
        claims = {
            "iat": issued_at,
            "exp": issued_at + APP_JWT_TTL_SECONDS,
            "iss": str(self.app_id),
        }
        return jwt.encode(claims, self._key, algorithm="RS256")

    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.create_jwt()}"}


class GitHubAppsClient:
    """Thin wrapper around an httpx.AsyncClient for the GitHub Apps endpoints"""

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client
        self.headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def convert_manifest(self, base_url: str, code: str, domain: GitHubAppDomain) -> ConvertedApp:
        """
        Exchange the one-time manifest code for the new app's credentials.
        GitHub answers 201 Created on success.
        """
        url = f"{api_root(base_url)}/app-manifests/{quote(code, safe='')}/conversions"
        response = await self.http_client.post(url, headers=self.headers)
        if response.status_code != httpx.codes.CREATED:
            logger.error(f"GitHub App manifest conversion failed: {response.status_code} - {response.text}")
            raise GitHubAPIError(f"expected 201 statusCode, got: {response.status_code}", response.status_code)

        conversion = ManifestConversion.model_validate(response.json())
        html_url = urlparse(conversion.html_url)
        if not html_url.scheme or not html_url.netloc:
            raise GitHubAPIError(f"invalid html_url in manifest conversion: {conversion.html_url!r}")
        app_base_url = f"{html_url.scheme}://{html_url.netloc}"

        logger.info(f"Converted GitHub App manifest into app {conversion.slug} ({conversion.id}) at {app_base_url}")
        return ConvertedApp(
            app_id=conversion.id,
            name=conversion.name,
            slug=conversion.slug,
            client_id=conversion.client_id,
            client_secret=conversion.client_secret,
            webhook_secret=conversion.webhook_secret,
            private_key=conversion.pem,
            base_url=app_base_url,
            app_url=conversion.html_url,
            logo=f"{app_base_url}/identicons/app/app/{conversion.slug}",
            domain=domain,
        )

    async def get_app_installation(
        self,
        base_url: str,
        authenticator: GitHubAppAuthenticator,
        installation_id: int,
    ) -> RemoteInstallation:
        """Fetch an installation of the authenticated app"""
        url = f"{api_root(base_url)}/app/installations/{installation_id}"
        response = await self.http_client.get(url, headers={**self.headers, **authenticator.headers()})
        if response.status_code != httpx.codes.OK:
            logger.error(f"Fetching GitHub App installation {installation_id} failed: {response.status_code} - {response.text}")
            raise GitHubAPIError(
                f"unexpected status fetching installation {installation_id}: {response.status_code}",
                response.status_code,
            )
        return RemoteInstallation.model_validate(response.json())
