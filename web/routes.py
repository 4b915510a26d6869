"""
web/routes.py -- Jinja2 template routes for the registry admin UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same AuthManager, same registry) but return pages and redirects
instead of JSON. Form submissions from the pages go to the JSON endpoints in
api/routes/admin.py.

Routes:
  GET /admin/setup   -- first-run setup page (303 to /admin/login once configured)
  GET /admin/login   -- login page (303 to /admin/setup until configured)
  GET /admin/logout  -- clear the session cookie, 303 to /admin/login
  GET /admin         -- admin page (session required, else 303 to /admin/login)

Session failures never surface an error: the user is sent back to the login
page.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import get_auth_manager, is_authenticated, is_secure_request
from auth.tokens import clear_session_cookie
from core.config import get_settings

logger = logging.getLogger("registry.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()


def _setup_redirect(request: Request) -> Optional[RedirectResponse]:
    """Return a redirect to /admin/setup while no admin exists, None otherwise."""
    if not get_auth_manager(request).is_configured():
        return RedirectResponse("/admin/setup", status_code=303)
    return None


@router.get("/admin/setup", response_class=HTMLResponse)
def setup_page(request: Request):
    """Render the first-run setup page, or send configured installs to login."""
    if get_auth_manager(request).is_configured():
        return RedirectResponse("/admin/login", status_code=303)
    return templates.TemplateResponse(
        request,
        "setup.html",
        {"min_password_length": get_settings().min_password_length},
    )


@router.get("/admin/login", response_class=HTMLResponse)
def login_page(request: Request):
    if redirect := _setup_redirect(request):
        return redirect
    return templates.TemplateResponse(request, "login.html", {})


@router.get("/admin/logout")
def logout(request: Request) -> RedirectResponse:
    """Clear the session cookie. The token itself stays valid until it expires."""
    resp = RedirectResponse("/admin/login", status_code=303)
    clear_session_cookie(
        resp,
        cookie_name=get_settings().session_cookie_name,
        secure=is_secure_request(request),
    )
    return resp


@router.get("/admin", response_class=HTMLResponse)
def admin_page(request: Request):
    if redirect := _setup_redirect(request):
        return redirect
    if not is_authenticated(request):
        return RedirectResponse("/admin/login", status_code=303)
    return templates.TemplateResponse(
        request,
        "admin.html",
        {"program_count": request.app.state.registry.count_programs()},
    )
