"""
FastAPI application factory.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from prosync.api.dependencies import get_state
from prosync.api.middleware import setup_compression, setup_cors, setup_request_size_limit, setup_security_headers
from prosync.api.models import HealthResponse
from prosync.api.observability import ObservabilityMiddleware, generate_request_id, get_request_id
from prosync.api.routes import ai as ai_routes
from prosync.api.routes import clients as clients_routes
from prosync.api.routes import dashboard as dashboard_routes
from prosync.api.routes import expenses as expenses_routes
from prosync.api.routes import knowledge as knowledge_routes
from prosync.api.routes import notifications as notifications_routes
from prosync.api.routes import resources as resources_routes
from prosync.api.routes import risks as risks_routes
from prosync.api.routes import service_desk as service_desk_routes
from prosync.api.routes import settings as settings_routes
from prosync.api.routes import tasks as tasks_routes
from prosync.api.routes import time_tracking as time_routes
from prosync.api.routes import validation as validation_routes
from prosync.api.state import AppState
from prosync.config import get_settings
from prosync.exceptions import ProSyncError, exception_to_http_status, handle_exception
from prosync.logging_config import get_logger
from prosync.repository import RecordStore, SQLiteRecordStore, open_store
from prosync.services import build_services

logger = get_logger(__name__)

ROUTERS = (
    tasks_routes.router,
    time_routes.router,
    expenses_routes.router,
    clients_routes.router,
    resources_routes.router,
    risks_routes.router,
    notifications_routes.router,
    knowledge_routes.router,
    service_desk_routes.router,
    settings_routes.router,
    dashboard_routes.router,
    ai_routes.router,
    validation_routes.router,
)


def create_app(
    *,
    db_path: Path | str | None = None,
    store: RecordStore | None = None,
    ai_client_factory: Callable[..., Any] | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        owned = store is None
        if store is not None:
            active = store
        elif db_path is not None:
            active = SQLiteRecordStore(db_path)
        else:
            active = open_store(settings)
        app.state.state = AppState(
            store=active,
            services=build_services(active, settings, ai_client_factory=ai_client_factory),
        )
        logger.info("app_started", extra={"backend": active.backend})
        try:
            yield
        finally:
            if owned:
                active.close()

    app = FastAPI(
        title="ProSync Suite API",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    setup_compression(app)
    setup_cors(app)
    setup_security_headers(app)
    setup_request_size_limit(app)

    # Observability middleware (must be added last to wrap all others)
    app.add_middleware(ObservabilityMiddleware)

    @app.get("/v1/health", response_model=HealthResponse)
    def health(request: Request, response: Response) -> HealthResponse:
        response.headers["Cache-Control"] = "no-store"
        return HealthResponse(ok=True, backend=get_state(request).store.backend)

    for router in ROUTERS:
        app.include_router(router)

    def _error_headers(request: Request) -> dict[str, str]:
        rid = request.headers.get("x-request-id") or get_request_id() or generate_request_id()
        return {"X-Request-ID": rid, "Cache-Control": "no-store"}

    @app.exception_handler(ProSyncError)
    def _prosync_error(request: Request, exc: ProSyncError) -> JSONResponse:
        headers = _error_headers(request)
        status = exception_to_http_status(exc)
        exc.request_id = headers["X-Request-ID"]
        if status >= 500:
            exc.log()
        return JSONResponse(status_code=status, content=exc.to_dict(), headers=headers)

    @app.exception_handler(Exception)
    def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        headers = _error_headers(request)
        content = handle_exception(exc, request_id=headers["X-Request-ID"])
        return JSONResponse(status_code=500, content={"error": content["error"]}, headers=headers)

    return app


app = create_app()
