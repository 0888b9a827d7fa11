import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from pydantic import BaseModel

from zaffa import __version__
from zaffa.api.v1.router import api_v1_router
from zaffa.db.base import Base
from zaffa.db.migrations import upgrade_schema
from zaffa.db.seed import seed_demo_data
from zaffa.db.session import DATABASE_URL, ZAFFA_ENV, SessionLocal, engine
from zaffa.exception_handlers import register_exception_handlers
from zaffa.observability import (
    configure_logging,
    log_structured,
    reset_active_request_id,
    set_active_request_id,
)
from zaffa.security_headers import SecurityHeadersMiddleware

SERVICE_VERSION = os.getenv("APP_VERSION") or __version__
SEED_ON_STARTUP = os.getenv("SEED_ON_STARTUP", "0").strip() == "1"

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
DEFAULT_ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

logger = configure_logging()


def init_db() -> None:
    if ZAFFA_ENV == "prod":
        upgrade_schema(DATABASE_URL)
    else:
        Base.metadata.create_all(bind=engine)


def reset_db() -> None:
    """Drop and recreate every table. Only available in the test environment."""
    if ZAFFA_ENV != "test":
        return
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def seed_if_empty() -> None:
    session = SessionLocal()
    try:
        seed_demo_data(session)
    finally:
        session.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_structured(logging.INFO, "startup", message="Zaffa API initializing", env=ZAFFA_ENV)
    init_db()
    if ZAFFA_ENV == "dev" and SEED_ON_STARTUP:
        logger.info("SEED_ON_STARTUP enabled; seeding demo data")
        seed_if_empty()
    try:
        yield
    finally:
        log_structured(logging.INFO, "shutdown", message="Zaffa API closing", env=ZAFFA_ENV)


def _split_env_list(name: str) -> List[str]:
    return [value.strip() for value in os.getenv(name, "").split(",") if value.strip()]


def _build_allowed_origins() -> List[str]:
    origins = _split_env_list("ALLOWED_ORIGINS")
    if any(origin == "*" for origin in origins):
        raise ValueError("ALLOWED_ORIGINS cannot contain '*' when allow_credentials=True")
    return list(dict.fromkeys(origins or DEFAULT_ALLOWED_ORIGINS))


def _build_allowed_hosts() -> List[str]:
    hosts = _split_env_list("ALLOWED_HOSTS")
    if not hosts and ZAFFA_ENV == "prod":
        raise RuntimeError("ALLOWED_HOSTS must be defined when ZAFFA_ENV=prod")
    return list(dict.fromkeys(hosts or DEFAULT_ALLOWED_HOSTS))


app = FastAPI(
    title="Zaffa API",
    version=SERVICE_VERSION,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "meta", "description": "Metadata and discovery endpoints"},
        {"name": "auth", "description": "Registration, login and token refresh"},
        {"name": "profile", "description": "Current user, partner and theme preference"},
        {"name": "households", "description": "Household setup and hero settings"},
        {"name": "invitations", "description": "Partner invitations"},
        {"name": "categories", "description": "Sections, sub-categories and totals"},
        {"name": "items", "description": "Checklist items and purchases"},
        {"name": "analyses", "description": "Saved category analyses and statistics"},
        {"name": "import", "description": "CSV import of checklist items"},
        {"name": "activity", "description": "Activity log, change feed and revert"},
        {"name": "observability", "description": "Client error reporting"},
    ],
)

app.add_middleware(SecurityHeadersMiddleware, app_env=ZAFFA_ENV)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=_build_allowed_hosts())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_build_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
    expose_headers=["X-Request-Id"],
)

register_exception_handlers(app)
app.include_router(api_v1_router, prefix="/api/v1")

_original_openapi = app.openapi


def _custom_openapi() -> dict[str, Any]:
    if app.openapi_schema:
        return app.openapi_schema
    schema = _original_openapi()
    openapi_path = schema.get("paths", {}).get("/openapi.json", {}).get("get")
    if openapi_path is not None:
        openapi_path.setdefault("summary", "OpenAPI contract")
    schema.setdefault("info", {}).setdefault(
        "description",
        "Shared household checklist: categories, items, analyses and an activity change feed.",
    )
    app.openapi_schema = schema
    return schema


app.openapi = _custom_openapi


@app.middleware("http")
async def request_logger(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    token = set_active_request_id(request_id)
    request.state.request_id = request_id
    start = time.perf_counter()
    status_code = 500
    error_type: Optional[str] = None
    response = None

    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    except Exception as exc:
        error_type = type(exc).__name__
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * 1000.0
        level = logging.INFO
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        fields = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
            "client_ip": request.client.host if request.client else None,
            "env": ZAFFA_ENV,
            "message": "request complete",
        }
        if error_type:
            fields["error_type"] = error_type
        log_structured(level, "request", **fields)
        if response is not None:
            response.headers["X-Request-Id"] = request_id
        reset_active_request_id(token)


class HealthzResponse(BaseModel):
    status: str
    version: str


@app.get(
    "/healthz",
    response_model=HealthzResponse,
    summary="Service health check",
    description="Returns the current health and service version.",
)
def healthz() -> HealthzResponse:
    return HealthzResponse(status="ok", version=SERVICE_VERSION)
