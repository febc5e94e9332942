"""
api/main.py -- FastAPI application entry point for cratehold.

Serves a private crate registry over HTTP: the sparse index, the registry
config, and the publish/download/yank/owners web API the package manager
speaks. State lives in an S3-compatible bucket; access is decided per crate
by a YAML rules file evaluated against GitHub identities.

Run with:      python main.py --objstore my-bucket --rules rules.yaml
               uvicorn asgi:app --reload

Lifespan builds the object store, registry, rules table, identity provider
and policy once, and runs one store health check before serving. A failed
check aborts startup; it is not retried.

Router order matters: the /api/v1 router and the health route are
registered before the index router, whose /{prefix1}/{prefix2}/{name} shape
would otherwise capture any three-segment path.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse, HealthResponse
from api.routes.index import router as index_router
from api.routes.v1.crates import router as crates_router
from auth.github import GitHubIdentityProvider
from auth.policy import AuthPolicy
from auth.rules import load_rules
from core.config import get_settings
from core.errors import RegistryError
from registry.store import Registry
from storage.s3 import S3ObjectStore

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("cratehold.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Wire the registry and policy into app.state.

    Startup order:
      1. Settings -- a missing bucket or rules path fails here.
      2. Rules -- a malformed rules file fails before any network call.
      3. Object store + health check -- the only startup network call.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level.upper())
    logger.info("cratehold %s starting up", VERSION)

    rules = load_rules(settings.rules)

    store = S3ObjectStore(settings.objstore, endpoint=settings.objstore_endpoint)
    registry = Registry(store)
    await registry.health_check()
    logger.info("store health check passed")

    app.state.registry = registry
    app.state.policy = AuthPolicy(rules, GitHubIdentityProvider(settings.github_api_url))

    yield

    app.state.policy.read_cache.clear()
    app.state.policy.write_cache.clear()
    logger.info("cratehold shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="cratehold",
    description="Private sparse-index crate registry backed by object storage.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s%s %d %.1fms",
        request.method,
        request.url.path,
        f"?{request.url.query}" if request.url.query else "",
        response.status_code,
        ms,
    )
    return response


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {type, message, contexts} envelope the
# package manager prints to the user.
# ---------------------------------------------------------------------------


def _error(status: int, message: str, contexts: list[str] | None = None) -> JSONResponse:
    body = ErrorResponse(type=status, message=message, contexts=contexts or [])
    return JSONResponse(status_code=status, content=body.model_dump())


@app.exception_handler(RegistryError)
async def registry_error_handler(request: Request, exc: RegistryError) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, "%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.verbose_message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and query params are client errors like any other: 400."""
    contexts = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
    return _error(400, "invalid request", contexts)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected errors. The traceback goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal server error")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is always reachable, and before the index
# router so /api/v1/health is not read as an index path.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return liveness plus one object-store check. No token required."""
    components = {"app": "ok"}
    try:
        await request.app.state.registry.health_check()
        components["store"] = "ok"
    except RegistryError as exc:
        logger.warning("store health check failed: %s", exc.verbose_message)
        components["store"] = "error"
    status = "healthy" if components["store"] == "ok" else "degraded"
    return HealthResponse(status=status, version=VERSION, components=components)


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(crates_router, prefix="/api/v1", tags=["Crates"])
app.include_router(index_router, tags=["Index"])
