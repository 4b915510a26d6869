"""
auth/dependencies.py -- FastAPI Depends() helpers for the admin session.

The session cookie is the only auth method. Its name comes from
Settings.session_cookie_name; the raw cookie value is passed opaquely to
AuthManager.verify_session().

get_auth_manager() returns the shared AuthManager from app.state.
session_token() extracts the cookie value (None if absent).
is_authenticated() is the soft check (never raises).
require_session() wraps it and raises HTTP 401 for JSON endpoints.

Layer rule: no imports from web/ or registry/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request

from auth.manager import AuthManager
from core.config import get_settings


def get_auth_manager(request: Request) -> AuthManager:
    return request.app.state.auth


def session_token(request: Request) -> Optional[str]:
    return request.cookies.get(get_settings().session_cookie_name)


def is_secure_request(request: Request) -> bool:
    """True if the Secure cookie attribute should be set for this request."""
    return request.url.scheme == "https" or get_settings().secure_cookies


def is_authenticated(request: Request) -> bool:
    """Return True if the request carries a valid admin session cookie."""
    return get_auth_manager(request).verify_session(session_token(request))


def require_session(request: Request) -> None:
    """Require a valid admin session. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.post("/admin/api/programs", dependencies=[Depends(require_session)])
    """
    if not is_authenticated(request):
        raise HTTPException(
            status_code=401,
            detail={"code": "not_authenticated", "message": "Not authenticated."},
        )
