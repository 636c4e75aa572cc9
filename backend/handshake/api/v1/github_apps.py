"""
GitHub App handshake routes - site admins only
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from handshake.core.dependencies import require_site_admin
from handshake.services.handshake import GitHubAppHandshake

router = APIRouter(dependencies=[Depends(require_site_admin)])


def get_handshake(request: Request) -> GitHubAppHandshake:
    """The handshake is built once at startup by the application lifespan"""
    return request.app.state.github_app_handshake


@router.get("/state")
async def state(
    id: Optional[str] = Query(None, description="Opaque ID of an existing GitHub App"),
    domain: Optional[str] = Query(None),
    base_url: Optional[str] = Query(None, alias="baseURL"),
    handshake: GitHubAppHandshake = Depends(get_handshake),
):
    """Issue a state token for a GitHub App flow"""
    return await handshake.state(id=id, domain=domain, base_url=base_url)


@router.get("/new-app-state")
async def new_app_state(
    webhook_urn: Optional[str] = Query(None, alias="webhookURN"),
    app_name: Optional[str] = Query(None, alias="appName"),
    domain: Optional[str] = Query(None),
    base_url: Optional[str] = Query(None, alias="baseURL"),
    handshake: GitHubAppHandshake = Depends(get_handshake),
):
    """Register the webhook for a new GitHub App and issue a state token for it"""
    return await handshake.new_app_state(
        webhook_urn=webhook_urn, app_name=app_name, domain=domain, base_url=base_url,
    )


@router.get("/new-app-manifest")
async def new_app_manifest(
    request: Request,
    state: Optional[str] = Query(None),
    app_name: Optional[str] = Query(None, alias="appName"),
    webhook_uuid: Optional[str] = Query(None, alias="webhookUUID"),
    base_url: Optional[str] = Query(None, alias="baseURL"),
    org: Optional[str] = Query(None),
    handshake: GitHubAppHandshake = Depends(get_handshake),
):
    """Manifest for a new GitHub App and the GitHub form URL to post it to"""
    return await handshake.new_app_manifest(
        state=state, app_name=app_name, webhook_uuid=webhook_uuid,
        base_url=base_url, org=org, request_url=str(request.base_url),
    )


@router.get("/redirect")
async def redirect(
    state: Optional[str] = Query(None),
    code: Optional[str] = Query(None),
    handshake: GitHubAppHandshake = Depends(get_handshake),
):
    """GitHub redirects here after creating an app from our manifest"""
    return await handshake.redirect(state=state, code=code)


@router.get("/setup")
async def setup(
    state: Optional[str] = Query(None),
    installation_id: Optional[str] = Query(None),
    setup_action: Optional[str] = Query(None),
    handshake: GitHubAppHandshake = Depends(get_handshake),
):
    """GitHub redirects here after an app has been installed"""
    return await handshake.setup(state=state, installation_id=installation_id, setup_action=setup_action)
