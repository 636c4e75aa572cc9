"""
FastAPI dependencies for the site admin gate
"""
from typing import Optional, Dict
from fastapi import Depends, HTTPException, status, Request
from handshake.core.security import decode_access_token
from handshake.core.config import settings


def get_token_from_request(request: Request) -> Optional[str]:
    """
    Access token from the ``access_token`` cookie set by the login flow, or from
    the Authorization header for API clients.
    """
    cookie = request.cookies.get("access_token")
    if cookie:
        return cookie

    header = request.headers.get("authorization")
    if not header:
        return None
    scheme, _, credentials = header.partition(" ")
    if credentials and scheme.lower() == "bearer":
        return credentials.strip()
    return header


async def get_current_user(request: Request) -> Optional[Dict]:
    """Claims of the signed-in user, or None for anonymous requests"""
    token = get_token_from_request(request)
    claims = decode_access_token(token) if token else None
    if not claims or not claims.get("sub"):
        return None

    email: str = claims["sub"]
    is_super_admin = email.lower() in settings.super_admin_emails_list
    return {
        "email": email,
        "name": claims.get("name"),
        "is_admin": is_super_admin or bool(claims.get("is_admin")),
        "is_super_admin": is_super_admin,
    }


async def require_site_admin(current_user: Optional[Dict] = Depends(get_current_user)) -> Dict:
    """Creating and installing GitHub Apps is restricted to site admins"""
    if current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not current_user["is_admin"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User must be site admin")
    return current_user
