from __future__ import annotations

from pathlib import Path
import sqlite3

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..config import DB_PATH
from ..constants import APP_NAME, SCHEMA_VERSION
from ..errors import (
    AuthorizationError,
    DomainError,
    NotFoundError,
    PreconditionError,
    ReferentialError,
    ValidationError,
)
from ..utils.loggers import get_logger
from .routes import documents, organizations, payments, settings, statuses

log = get_logger("sales_management")

STATUS_BY_ERROR: dict[type[DomainError], int] = {
    ValidationError: 400,
    AuthorizationError: 403,
    NotFoundError: 404,
    PreconditionError: 409,
    ReferentialError: 422,
}


def _status_for(exc: DomainError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return 400


def _field_from_loc(loc) -> str | None:
    """('body', 'items', 0, 'quantity') -> 'items[0].quantity'"""
    parts = [p for p in loc if p not in ("body", "query", "path")]
    out = ""
    for p in parts:
        if isinstance(p, int):
            out += f"[{p}]"
        else:
            out += f".{p}" if out else str(p)
    return out or None


def create_app(db_path: Path | str | None = None) -> FastAPI:
    app = FastAPI(title=APP_NAME, version=SCHEMA_VERSION)
    app.state.db_path = db_path if db_path is not None else DB_PATH

    @app.exception_handler(DomainError)
    async def _domain_error(request: Request, exc: DomainError) -> JSONResponse:
        status = _status_for(exc)
        log.info("%s %s -> %s %s", request.method, request.url.path, status, exc.message)
        return JSONResponse(status_code=status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def _request_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        field = _field_from_loc(first.get("loc", ()))
        payload = {"error": first.get("msg", "Invalid request"), "field": field}
        return JSONResponse(status_code=400, content=payload)

    @app.exception_handler(sqlite3.IntegrityError)
    async def _integrity_error(request: Request, exc: sqlite3.IntegrityError) -> JSONResponse:
        log.warning("%s %s integrity error: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=409, content={"error": f"Conflicting write: {exc}"})

    app.include_router(organizations.router)
    app.include_router(statuses.router)
    app.include_router(settings.router)
    app.include_router(payments.router)
    app.include_router(documents.router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "schema_version": SCHEMA_VERSION}

    return app


app = create_app()
