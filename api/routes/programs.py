"""
api/routes/programs.py -- Public read endpoints for the program registry.

Routes:
  GET /api/programs/search?q=  -- case-insensitive substring search on name
  GET /api/programs/get?q=     -- exact (case-insensitive) lookup by name

Both are public: the registry is published data. Writes live in
api/routes/admin.py behind the admin session.

Responses carry Cache-Control: public, max-age=3600 -- registry data changes
rarely and only through the admin endpoint.
"""

from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ProgramModel, ProgramSearchResponse
from registry.store import RegistryStore

router = APIRouter()

_CACHE_HEADERS = {"Cache-Control": "public, max-age=3600"}


def _clean_query(raw: str) -> str:
    """Strip whitespace and one pair of surrounding single or double quotes."""
    query = raw.strip()
    if len(query) >= 2 and query[0] == query[-1] and query[0] in ("'", '"'):
        query = query[1:-1]
    return query


def _require_query(raw: str) -> str:
    query = _clean_query(raw)
    if not query:
        raise HTTPException(
            status_code=400,
            detail=ErrorDetail(code="missing_query", message='Query parameter "q" is required').model_dump(),
        )
    return query


@router.get("/programs/search", response_model=ProgramSearchResponse)
def search_programs(request: Request, q: Annotated[str, Query(max_length=255)] = "") -> JSONResponse:
    """Return every program whose name contains q."""
    query = _require_query(q)
    registry: RegistryStore = request.app.state.registry
    programs = [ProgramModel.from_domain(p) for p in registry.search_programs(query)]
    return JSONResponse(
        content=ProgramSearchResponse(programs=programs).model_dump(),
        headers=_CACHE_HEADERS,
    )


@router.get("/programs/get", response_model=ProgramModel)
def get_program(request: Request, q: Annotated[str, Query(max_length=255)] = "") -> JSONResponse:
    """Return one program by name, or 404."""
    query = _require_query(q)
    registry: RegistryStore = request.app.state.registry
    program = registry.get_program(query)
    if program is None:
        raise HTTPException(
            status_code=404,
            detail=ErrorDetail(code="not_found", message="Program not found").model_dump(),
        )
    return JSONResponse(content=ProgramModel.from_domain(program).model_dump(), headers=_CACHE_HEADERS)
