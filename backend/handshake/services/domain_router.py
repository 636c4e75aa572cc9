"""
Landing pages for the end of the GitHub App handshake, per domain
"""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, quote_plus
import base64
import binascii

from handshake.models.github_app import GitHubAppDomain

APP_ID_KIND = "GitHubApp"


@dataclass(frozen=True)
class LandingPages:
    """Admin pages the handshake finishes on, one per domain"""

    github_apps: str = "/site-admin/github-apps"
    workflow_automation: str = "/site-admin/workflow-automation"


DEFAULT_LANDING_PAGES = LandingPages()


class UnknownDomain(ValueError):
    """Domain tag is not one of GitHubAppDomain"""


class InvalidAppID(ValueError):
    """Opaque GitHub App ID could not be decoded"""


def parse_domain(domain: Optional[str]) -> GitHubAppDomain:
    if domain is None:
        raise UnknownDomain("missing domain")
    try:
        return GitHubAppDomain(domain)
    except ValueError:
        raise UnknownDomain(f"unknown domain {domain!r}") from None


def marshal_app_id(app_id: int) -> str:
    """Encode a GitHub App row ID as the opaque ID the admin UI uses"""
    return base64.b64encode(f"{APP_ID_KIND}:{app_id}".encode("utf-8")).decode("ascii")


def unmarshal_app_id(opaque_id: str) -> int:
    try:
        decoded = base64.b64decode(opaque_id, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise InvalidAppID(f"invalid GitHub App ID {opaque_id!r}") from e

    kind, sep, raw_id = decoded.partition(":")
    if not sep or kind != APP_ID_KIND:
        raise InvalidAppID(f"expected ID of kind {APP_ID_KIND}, got {decoded!r}")
    try:
        return int(raw_id)
    except ValueError:
        raise InvalidAppID(f"invalid GitHub App ID {opaque_id!r}") from None


def _failure(path: str, message: str) -> str:
    return f"{path}?success=false&error={quote_plus(message)}"


def generate_redirect_url(
    domain: Optional[str],
    installation_id: Optional[int] = None,
    app_id: Optional[int] = None,
    app_name: Optional[str] = None,
    error: Optional[str] = None,
    pages: LandingPages = DEFAULT_LANDING_PAGES,
) -> str:
    """
    Pick the page an admin lands on once the handshake has finished, successfully
    or not. Never raises: anything unroutable goes to the GitHub Apps admin page.
    """
    apps_path = pages.github_apps
    automation_path = pages.workflow_automation

    # We may have failed before a domain was known; still send the admin somewhere useful
    if not domain and error is not None:
        return _failure(apps_path, error)

    try:
        parsed = parse_domain(domain)
    except UnknownDomain:
        if error is not None:
            return _failure(apps_path, error)
        return _failure(apps_path, f"invalid domain: {domain}" if domain else "invalid domain")

    if parsed is GitHubAppDomain.REPO_SYNC:
        if error is not None:
            return _failure(apps_path, error)
        if installation_id is None or app_id is None:
            return _failure(apps_path, "missing installation ID or app ID")
        return f"{apps_path}/{quote(marshal_app_id(app_id), safe='=')}?installation_id={installation_id}"

    if parsed is GitHubAppDomain.WORKFLOW_AUTOMATION:
        if error is not None:
            return _failure(automation_path, error)
        # Should only happen alongside an error, handled just in case
        if not app_name:
            return f"{automation_path}?success=true"
        return f"{automation_path}?success=true&app_name={quote_plus(app_name)}"

    return _failure(apps_path, f"unsupported github apps domain: {parsed.value}")
