"""
GitHub App creation and installation handshake.

1. The admin UI asks for a state token (/state or /new-app-state) and sends the
   browser to GitHub with it. For a new app, /new-app-manifest gives it the
   manifest and the GitHub form to post it to.
2. GitHub sends the browser back to /redirect with the state and a one-time
   manifest code. We convert the code into app credentials, store the app and
   send the browser to the app's installation page with a fresh state token.
3. GitHub sends the browser back to /setup with that state and the
   installation ID. We fetch the installation and store it.

State tokens are the only link between the legs, and each one is consumed
exactly once.
"""
from typing import Optional
import asyncio
import logging
import uuid

import httpx
from fastapi import HTTPException, status
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse

from handshake.core.security import SecretCipher
from handshake.models.github_app import GitHubApp, GitHubAppDomain, GitHubAppInstallation
from handshake.schemas.github_app import InvalidState, NewAppManifestResponse, NewAppStateResponse, StateDetails
from handshake.services.domain_router import (
    DEFAULT_LANDING_PAGES,
    InvalidAppID,
    LandingPages,
    UnknownDomain,
    generate_redirect_url,
    parse_domain,
    unmarshal_app_id,
)
from handshake.services.github_api import GitHubAPIError, GitHubAppAuthenticator, GitHubAppsClient
from handshake.services.manifest import build_manifest, new_app_url, webhook_url
from handshake.services.state_store import STATE_LENGTH, StateNotFound, StateTokens
from handshake.services.storage import CODE_HOST_KIND_GITHUB, GitHubAppStore, WebhookService, WebhookStore

logger = logging.getLogger(__name__)


class HandshakeError(HTTPException):
    """Terminates a handshake request with a plain-text error"""


async def handshake_error_handler(request, exc: HandshakeError) -> PlainTextResponse:
    return PlainTextResponse(str(exc.detail), status_code=exc.status_code)


def _bad_request(message: str) -> HandshakeError:
    return HandshakeError(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def _server_error(message: str) -> HandshakeError:
    return HandshakeError(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


class GitHubAppHandshake:
    """Request handlers for the handshake routes"""

    def __init__(
        self,
        state_tokens: StateTokens,
        github: GitHubAppsClient,
        apps: GitHubAppStore,
        webhooks: WebhookStore,
        webhook_service: WebhookService,
        install_page_delay: float = 3.0,
        installation_delay: float = 3.0,
        default_base_url: str = "https://github.com",
        landing_pages: LandingPages = DEFAULT_LANDING_PAGES,
        cipher: Optional[SecretCipher] = None,
        route_prefix: str = "/.auth/githubapp",
        external_url: str = "",
    ):
        self.state_tokens = state_tokens
        self.github = github
        self.apps = apps
        self.webhooks = webhooks
        self.webhook_service = webhook_service
        self.install_page_delay = install_page_delay
        self.installation_delay = installation_delay
        self.default_base_url = default_base_url
        self.landing_pages = landing_pages
        self.cipher = cipher or SecretCipher()
        self.route_prefix = route_prefix
        # Empty means "the URL the admin reached us on"
        self.external_url = external_url

    def _landing_url(self, domain: Optional[str], *args, **kwargs) -> str:
        return generate_redirect_url(domain, *args, pages=self.landing_pages, **kwargs)

    async def _issue(self, details: StateDetails) -> str:
        try:
            return await self.state_tokens.issue(details)
        except Exception as e:
            logger.error(f"Failed to store GitHub App state: {e}", exc_info=True)
            raise _server_error(f"Unexpected error when generating state parameter: {e}") from e

    async def state(
        self,
        id: Optional[str] = None,
        domain: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> PlainTextResponse:
        """Issue a state token, optionally bound to an existing app"""
        if not id:
            # Store the empty context so every stored value has the same structure
            state = await self._issue(StateDetails())
            return PlainTextResponse(state)

        try:
            app_id = unmarshal_app_id(id)
        except InvalidAppID as e:
            logger.warning(f"Rejected GitHub App state request: {e}")
            raise _bad_request(f"Unexpected error while unmarshalling App ID: {e}") from e

        state = await self._issue(StateDetails(app_id=app_id, domain=domain or "", base_url=base_url or ""))
        return PlainTextResponse(state)

    async def new_app_state(
        self,
        webhook_urn: Optional[str] = None,
        app_name: Optional[str] = None,
        domain: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> JSONResponse:
        """Issue a state token for an app that does not exist yet, registering its webhook first"""
        webhook_uuid = ""
        if webhook_urn:
            try:
                hook = await self.webhook_service.create_webhook(app_name or "", CODE_HOST_KIND_GITHUB, webhook_urn)
            except Exception as e:
                logger.error(f"Failed to create webhook for new GitHub App: {e}", exc_info=True)
                raise _server_error(f"Unexpected error while setting up webhook endpoint: {e}") from e
            webhook_uuid = hook.uuid

        state = await self._issue(
            StateDetails(webhook_uuid=webhook_uuid, domain=domain or "", base_url=base_url or "")
        )
        body = NewAppStateResponse(state=state, webhook_uuid=webhook_uuid or None)
        return JSONResponse(body.model_dump(by_alias=True, exclude_none=True))

    async def new_app_manifest(
        self,
        state: Optional[str] = None,
        app_name: Optional[str] = None,
        webhook_uuid: Optional[str] = None,
        base_url: Optional[str] = None,
        org: Optional[str] = None,
        request_url: str = "",
    ) -> JSONResponse:
        """
        Manifest for a new app and the GitHub form it is posted to.

        The state is not consumed here; GitHub hands it back to /redirect.
        ``request_url`` is where the admin reached us, used when no external
        URL is configured.
        """
        if not state or not app_name or not app_name.strip():
            raise _bad_request("Bad request, state and appName query params must be present")
        if len(state) != STATE_LENGTH:
            raise _bad_request("Bad request, state query param is wrong length")

        external_url = self.external_url or request_url
        hook_url = None
        if webhook_uuid:
            try:
                hook_url = webhook_url(external_url, str(uuid.UUID(webhook_uuid)))
            except ValueError as e:
                raise _bad_request(f"Bad request, could not parse webhook UUID: {e}") from e

        body = NewAppManifestResponse(
            url=new_app_url(base_url or self.default_base_url, state, org),
            manifest=build_manifest(app_name, external_url, hook_url, route_prefix=self.route_prefix),
        )
        return JSONResponse(body.model_dump())

    async def redirect(self, state: Optional[str] = None, code: Optional[str] = None) -> RedirectResponse:
        """GitHub created the app from our manifest; convert it and send the admin on to install it"""
        if not state or not code:
            raise _bad_request("Bad request, code and state query params must be present")

        # Reject malformed state before it reaches the store
        if len(state) != STATE_LENGTH:
            raise _bad_request("Bad request, state query param is wrong length")

        try:
            details = await self.state_tokens.consume(state)
        except StateNotFound:
            logger.warning(f"GitHub App redirect with unknown state {state[:8]}...")
            raise _bad_request("Bad request, state query param does not match") from None
        except InvalidState:
            raise _bad_request("Bad request, invalid state") from None

        webhook_uuid: Optional[str] = None
        if details.webhook_uuid:
            try:
                webhook_uuid = str(uuid.UUID(details.webhook_uuid))
            except ValueError as e:
                raise _bad_request(f"Bad request, could not parse webhook UUID: {e}") from e

        base_url = details.base_url or self.default_base_url

        # Bare state tokens carry no domain; those are repository sync apps
        try:
            domain = parse_domain(details.domain) if details.domain else GitHubAppDomain.REPO_SYNC
        except UnknownDomain as e:
            raise _bad_request(f"Unable to parse domain: {e}") from e

        try:
            app = await self.github.convert_manifest(base_url, code, domain)
        except (httpx.HTTPError, GitHubAPIError, ValueError) as e:
            logger.error(f"GitHub App manifest conversion against {base_url} failed: {e}")
            raise _server_error(f"Unexpected error while converting github app: {e}") from e

        try:
            stored_id = await self.apps.create(app)
        except Exception as e:
            logger.error(f"Failed to store GitHub App {app.slug}: {e}", exc_info=True)
            raise _server_error(f"Unexpected error while storing github app in DB: {e}") from e

        # The webhook had to exist before the manifest was submitted, but its
        # secret is only known now. A failure here leaves the stored app in place.
        if webhook_uuid is not None:
            try:
                hook = await self.webhooks.get_by_uuid(webhook_uuid)
            except Exception as e:
                logger.error(f"Failed to fetch webhook {webhook_uuid} for GitHub App {stored_id}: {e}")
                raise _server_error(f"Error while fetching webhook: {e}") from e
            hook.secret = self.cipher.encrypt(app.webhook_secret)
            hook.name = app.name
            try:
                await self.webhooks.update(hook)
            except Exception as e:
                logger.error(f"Failed to bind secret of webhook {webhook_uuid} to GitHub App {stored_id}: {e}", exc_info=True)
                raise _server_error(f"Error while updating webhook secret: {e}") from e

        new_state = await self._issue(StateDetails(domain=domain.value, app_id=stored_id))

        # The installations page often takes a few seconds to become available
        # after the app is first created.
        if self.install_page_delay > 0:
            await asyncio.sleep(self.install_page_delay)

        redirect_url = f"{app.app_url.rstrip('/')}/installations/new?state={new_state}"
        logger.info(f"Created GitHub App {app.slug} ({stored_id}); redirecting to its installation page")
        return RedirectResponse(url=redirect_url, status_code=status.HTTP_303_SEE_OTHER)

    async def setup(
        self,
        state: Optional[str] = None,
        installation_id: Optional[str] = None,
        setup_action: Optional[str] = None,
    ) -> RedirectResponse:
        """GitHub installed the app; record the installation and land on the domain's page"""

        def land(url: str) -> RedirectResponse:
            return RedirectResponse(url=url, status_code=status.HTTP_302_FOUND)

        if not state or not installation_id:
            # The app was installed directly from GitHub rather than through our
            # install link, so there is no state to pick up.
            return land(self.landing_pages.github_apps)

        if len(state) != STATE_LENGTH:
            raise _bad_request("Bad request, state query param is wrong length")

        try:
            details = await self.state_tokens.consume(state)
        except StateNotFound:
            logger.warning(f"GitHub App setup with unknown state {state[:8]}...")
            return land(self._landing_url(None, error="Bad request, state query param does not match"))
        except InvalidState:
            return land(self._landing_url(None, error="Bad request, invalid state"))

        try:
            inst_id = int(installation_id)
        except ValueError:
            return land(self._landing_url(
                details.domain, app_id=details.app_id, error="Bad request, could not parse installation ID",
            ))

        if setup_action != "install":
            raise _bad_request(f"Bad request; unsupported setup action: {setup_action}")

        return land(await self._install(details, inst_id))

    async def _install(self, details: StateDetails, installation_id: int) -> str:
        """Record an installation and return where to send the admin"""
        domain = details.domain
        if details.app_id is None:
            return self._landing_url(domain, installation_id, error="Bad request, state is missing the app ID")

        try:
            app: GitHubApp = await self.apps.get_by_id(details.app_id)
        except Exception as e:
            logger.error(f"Failed to load GitHub App {details.app_id}: {e}")
            return self._landing_url(
                domain, installation_id, details.app_id,
                error=f"Unexpected error while fetching GitHub App from DB: {e}",
            )

        try:
            authenticator = GitHubAppAuthenticator(app.app_id, self.cipher.decrypt(app.private_key).encode("utf-8"))
        except (ValueError, TypeError) as e:
            logger.error(f"Failed to build authenticator for GitHub App {app.id}: {e}")
            return self._landing_url(
                domain, installation_id, details.app_id,
                error=f"Unexpected error while creating GitHubAppAuthenticator: {e}",
            )

        # The installation often takes a few seconds to become available after
        # the app is first installed.
        if self.installation_delay > 0:
            await asyncio.sleep(self.installation_delay)

        try:
            remote = await self.github.get_app_installation(app.base_url, authenticator, installation_id)
        except (httpx.HTTPError, GitHubAPIError, ValueError) as e:
            logger.error(f"Failed to fetch installation {installation_id} of GitHub App {app.id}: {e}")
            return self._landing_url(
                domain, installation_id, details.app_id,
                error=f"Unexpected error while fetching App installation details from GitHub: {e}",
            )

        try:
            await self.apps.install(GitHubAppInstallation(
                installation_id=installation_id,
                app_id=app.id,
                url=remote.html_url,
                account_login=remote.account.login,
                account_avatar_url=remote.account.avatar_url,
                account_url=remote.account.html_url,
                account_type=remote.account.type,
            ))
        except Exception as e:
            logger.error(f"Failed to store installation {installation_id} of GitHub App {app.id}: {e}", exc_info=True)
            return self._landing_url(
                domain, installation_id, details.app_id, app.name,
                error=f"Unexpected error while creating GitHub App installation: {e}",
            )

        logger.info(f"GitHub App {app.slug} installed on {remote.account.login} ({installation_id})")
        return self._landing_url(domain, installation_id, app.id, app.name)
