"""
api/routes/admin.py -- Admin setup, login and registry write endpoints.

Routes:
  POST /admin/setup           -- one-time admin setup (JSON {"password"})
  POST /admin/login           -- password login (form field "password"); sets session cookie
  POST /admin/api/password    -- change the admin password (session required)
  POST /admin/api/programs    -- insert or update a registry program (session required)

The HTML pages for the same paths (GET /admin/setup, GET /admin/login,
GET /admin/logout, GET /admin) live in web/routes.py.

Security:
  Failed login says only "Invalid password." -- there is one account, so there
  is nothing else to distinguish. Setup failures return the specific reason.
  Cache-Control: no-store on login and setup responses.
  Session cookie: HttpOnly, SameSite=Strict, Path=/, Max-Age = session TTL,
  Secure when the request is HTTPS (or SECURE_COOKIES is set).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.models import ChangePasswordRequest, ErrorDetail, ProgramModel, SetupRequest, SuccessResponse
from auth.dependencies import get_auth_manager, is_secure_request, require_session
from auth.models import ChangePasswordResult, SetupResult
from auth.tokens import set_session_cookie
from core.config import get_settings
from registry.store import RegistryStore

logger = logging.getLogger("registry.api.admin")

router = APIRouter()

_NO_STORE = {"Cache-Control": "no-store"}

# (status, message) per failure result; the error code is the result's value.
_SETUP_ERRORS: dict[SetupResult, tuple[int, str]] = {
    SetupResult.already_configured: (400, "Admin is already set up"),
    SetupResult.weak_password: (400, "Password must be at least {min} characters long"),
    SetupResult.persistence_failure: (500, "Failed to complete setup"),
}

_CHANGE_PASSWORD_ERRORS: dict[ChangePasswordResult, tuple[int, str]] = {
    ChangePasswordResult.not_configured: (409, "Admin is not set up"),
    ChangePasswordResult.invalid_old_password: (401, "Invalid password."),
    ChangePasswordResult.weak_password: (400, "Password must be at least {min} characters long"),
    ChangePasswordResult.persistence_failure: (500, "Failed to change password"),
}


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": ErrorDetail(code=code, message=message).model_dump(exclude_none=True)},
        headers=_NO_STORE,
    )


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/admin/setup", response_model=SuccessResponse)
def setup(request: Request, body: SetupRequest) -> JSONResponse:
    """Create the admin credential record. Succeeds exactly once."""
    result = get_auth_manager(request).setup(body.password)
    if result is SetupResult.success:
        return JSONResponse(content=SuccessResponse().model_dump(), headers=_NO_STORE)
    status_code, message = _SETUP_ERRORS[result]
    return _error(status_code, result.value, message.format(min=get_settings().min_password_length))


@router.post("/admin/login", response_model=SuccessResponse)
def login(request: Request, password: str = Form("")):
    """Verify the admin password and set the session cookie."""
    auth = get_auth_manager(request)
    if not auth.is_configured():
        return RedirectResponse("/admin/setup", status_code=303)

    if not auth.verify_password(password):
        return _error(401, "invalid_password", "Invalid password.")

    settings = get_settings()
    resp = JSONResponse(content=SuccessResponse().model_dump(), headers=_NO_STORE)
    set_session_cookie(
        resp,
        auth.create_session(),
        cookie_name=settings.session_cookie_name,
        max_age=int(auth.session_ttl.total_seconds()),
        secure=is_secure_request(request),
    )
    logger.info("Admin session created for %s", request.client.host if request.client else "unknown")
    return resp


# ---------------------------------------------------------------------------
# Session-protected endpoints
# ---------------------------------------------------------------------------


@router.post("/admin/api/password", response_model=SuccessResponse, dependencies=[Depends(require_session)])
def change_password(request: Request, body: ChangePasswordRequest) -> JSONResponse:
    """Replace the admin password. Existing sessions stay valid."""
    result = get_auth_manager(request).change_password(body.old_password, body.new_password)
    if result is ChangePasswordResult.success:
        return JSONResponse(content=SuccessResponse().model_dump(), headers=_NO_STORE)
    status_code, message = _CHANGE_PASSWORD_ERRORS[result]
    return _error(status_code, result.value, message.format(min=get_settings().min_password_length))


@router.post("/admin/api/programs", response_model=SuccessResponse, dependencies=[Depends(require_session)])
def insert_program(request: Request, body: ProgramModel) -> SuccessResponse:
    """Insert or update a program and replace its vulnerability list."""
    registry: RegistryStore = request.app.state.registry
    try:
        registry.upsert_program(body.to_domain())
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail=ErrorDetail(code="invalid_program", message=str(exc)).model_dump(),
        ) from exc
    return SuccessResponse()
