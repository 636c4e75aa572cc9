"""
GitHub App manifest for apps created through the handshake
"""
from typing import Any, Dict, List, Optional
from urllib.parse import quote

DEFAULT_PERMISSIONS = {
    "contents": "read",
    "emails": "read",
    "members": "read",
    "metadata": "read",
}

DEFAULT_EVENTS = [
    "repository",
    "public",
    "member",
    "membership",
    "organization",
    "team",
    "team_add",
    "meta",
    "push",
]


def webhook_url(external_url: str, webhook_uuid: str) -> str:
    return f"{external_url.rstrip('/')}/.api/webhooks/{webhook_uuid}"


def build_manifest(
    name: str,
    external_url: str,
    hook_url: Optional[str] = None,
    route_prefix: str = "/.auth/githubapp",
    permissions: Optional[Dict[str, str]] = None,
    events: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Manifest GitHub uses to create the app. GitHub sends the admin back to our
    redirect route with a conversion code, and to the setup route after install.
    Without a hook URL the app is created with no webhook.
    """
    external_url = external_url.rstrip("/")
    prefix = route_prefix.rstrip("/")
    manifest: Dict[str, Any] = {
        "name": name.strip(),
        "url": external_url,
        "redirect_url": f"{external_url}{prefix}/redirect",
        "setup_url": f"{external_url}{prefix}/setup",
        "callback_urls": [f"{external_url}/.auth/github/callback"],
        "setup_on_update": True,
        "public": False,
        "default_permissions": dict(permissions or DEFAULT_PERMISSIONS),
        "default_events": list(events or DEFAULT_EVENTS),
    }
    if hook_url:
        manifest["hook_attributes"] = {"url": hook_url}
    return manifest


def new_app_url(base_url: str, state: str, org: Optional[str] = None) -> str:
    """URL of GitHub's "create app from manifest" form, for a user or an organization"""
    prefix = "settings/apps/new"
    if org and org.strip():
        prefix = f"organizations/{quote(org.strip(), safe='')}/settings/apps/new"
    return f"{base_url.strip().rstrip('/')}/{prefix}?state={quote(state, safe='')}"
