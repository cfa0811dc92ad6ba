"""AI Mode Queries — FastAPI application entry point.

Records search queries posted by the browser extension and serves
per-user listings, a redacted global listing and aggregate statistics.
There is no authentication; access is limited by the CORS origin list.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from aimode.config import Settings, settings as default_settings
from aimode.database import Storage
from aimode.errors import AppError, StorageUnavailable, ValidationError
from aimode.schemas import (
    AllQueriesResponse,
    HealthResponse,
    StatsResponse,
    StoreResponse,
    UserQueriesResponse,
    redact_uid,
)
from aimode.services.reader import QueryRecordReader, parse_pagination
from aimode.services.stats import StatisticsAggregator
from aimode.services.writer import QueryRecordWriter, validate_event

logging.basicConfig(
    level=default_settings.log_level.upper(),
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("aimode")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
}


def client_address(request: Request, trust_proxy: bool) -> str | None:
    """Caller's network address, or None when the transport has none."""
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if forwarded:
            return forwarded
    return request.client.host if request.client else None


# ═══════════════ APP FACTORY ═══════════════

def create_app(settings: Settings | None = None, storage: Storage | None = None) -> FastAPI:
    """Build the app. An injected storage is used as-is and not closed on shutdown."""
    settings = settings or default_settings
    owns_storage = storage is None

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("AI Mode Queries starting | environment=%s", settings.environment)
        if owns_storage:
            app.state.storage = Storage(settings.database_url, settings.create_tables)
            try:
                await app.state.storage.connect()
            except StorageUnavailable as e:
                logger.critical("Database connection error: %s", e.message)
                await app.state.storage.close()
                raise SystemExit(1) from e
        _wire(app, app.state.storage)
        logger.info("Server running on port %d", settings.port)

        yield

        if owns_storage:
            await app.state.storage.close()
        logger.info("AI Mode Queries shutting down")

    app = FastAPI(
        title="AI Mode Queries API",
        description="Search-query telemetry from the AI Mode browser extension",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    if storage is not None:
        app.state.storage = storage
        _wire(app, storage)

    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=settings.cors_origin_regex,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    _register_error_handlers(app, settings)
    _register_routes(app, settings)
    return app


def _wire(app: FastAPI, storage: Storage):
    app.state.writer = QueryRecordWriter(storage)
    app.state.reader = QueryRecordReader(storage)
    app.state.aggregator = StatisticsAggregator(storage)


# ═══════════════ ERRORS ═══════════════

def _register_error_handlers(app: FastAPI, settings: Settings):

    @app.exception_handler(AppError)
    async def app_error(request: Request, exc: AppError):
        if isinstance(exc, ValidationError):
            logger.warning("Bad request | %s %s | %s", request.method, request.url.path, exc.error)
        else:
            logger.error("Request failed | %s %s | %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (404, 405):
            logger.info("Not found | %s %s", request.method, request.url.path)
            return JSONResponse(
                status_code=404,
                content={"error": "Not found", "message": "The requested endpoint does not exist"},
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error | %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc) if settings.is_development else "Something went wrong",
            },
        )


# ═══════════════ ENDPOINTS ═══════════════

def _register_routes(app: FastAPI, settings: Settings):

    @app.get("/")
    async def health():
        return HealthResponse(timestamp=datetime.now(timezone.utc))

    @app.post("/api/ai-search", status_code=201)
    async def store_query(request: Request):
        """Store one search query reported by the extension."""
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError("Invalid JSON body") from None

        event = validate_event(body)
        stored = await request.app.state.writer.store(
            event, client_address(request, settings.trust_proxy),
        )
        return StoreResponse(id=stored.id, timestamp=stored.created_at)

    @app.get("/api/queries/{uid}")
    async def user_queries(request: Request, uid: str):
        """A single user's queries, newest first."""
        params = request.query_params
        page = parse_pagination(
            params.get("limit"), params.get("skip"),
            settings.default_user_limit, settings.max_page_limit,
        )
        result = await request.app.state.reader.list_by_user(uid, page)
        return UserQueriesResponse(
            queries=result.records,
            total=result.total,
            count=result.count,
            uid=redact_uid(uid) + "...",
        )

    @app.get("/api/queries")
    async def all_queries(request: Request):
        """All queries with uids cut to their prefix, optionally filtered by `search`."""
        params = request.query_params
        page = parse_pagination(
            params.get("limit"), params.get("skip"),
            settings.default_list_limit, settings.max_page_limit,
        )
        result = await request.app.state.reader.list_all(page, params.get("search"))
        return AllQueriesResponse(
            queries=result.records,
            total=result.total,
            count=result.count,
        )

    @app.get("/api/stats")
    async def stats(request: Request):
        result = await request.app.state.aggregator.compute_stats()
        return StatsResponse(stats=result)


app = create_app()
