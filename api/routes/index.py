"""
api/routes/index.py -- Sparse index and registry config routes.

The package manager fetches an index file per crate from a path derived
from the crate name's length:

  GET /config.json                 -- {dl, api, auth-required}; no token
  GET /1/{name}                    -- one-character names
  GET /2/{name}                    -- two-character names
  GET /3/{prefix}/{name}           -- three-character names
  GET /{prefix1}/{prefix2}/{name}  -- everything longer

The prefix segments are not checked against the name; the name alone
selects the crate. The body is one IndexRecord JSON object per line, ordered
by semver precedence.

This router is registered after the /api/v1 routers so that the catch-all
two-prefix shape never shadows an API path.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from api.models import ConfigResponse
from auth.dependencies import get_token
from core import pipeline
from core.errors import UpstreamError
from core.models import CrateName
from core.schema import IndexRecord

router = APIRouter()

_PROTOCOLS = ("http", "https")


def render_index(records: list[IndexRecord]) -> str:
    ordered = sorted(records, key=lambda r: r.version)
    return "".join(r.to_json().decode("utf-8") + "\n" for r in ordered)


async def _index(request: Request, token: str, name: str) -> PlainTextResponse:
    records = await pipeline.fetch_index(
        token,
        CrateName.parse(name),
        request.app.state.policy,
        request.app.state.registry,
    )
    return PlainTextResponse(render_index(records))


# ---------------------------------------------------------------------------
# GET /config.json
# ---------------------------------------------------------------------------


@router.get("/config.json", response_model=ConfigResponse, response_model_by_alias=True)
async def registry_config(request: Request) -> ConfigResponse:
    """Tell the package manager where downloads and the web API live.

    Behind a reverse proxy the public host and scheme come from the
    X-Forwarded-* headers.
    """
    host = request.headers.get("X-Forwarded-Host") or request.headers.get("Host", "")
    proto = request.headers.get("X-Forwarded-Proto", "http").lower()
    if proto not in _PROTOCOLS:
        raise UpstreamError("unknown protocol", contexts=[proto[:16]], status_code=502)
    base = f"{proto}://{host}"
    return ConfigResponse(dl=f"{base}/api/v1/crates", api=base)


# ---------------------------------------------------------------------------
# Sparse index
# ---------------------------------------------------------------------------


@router.get("/1/{name}", response_class=PlainTextResponse)
async def index_one(name: str, request: Request, token: str = Depends(get_token)) -> PlainTextResponse:
    return await _index(request, token, name)


@router.get("/2/{name}", response_class=PlainTextResponse)
async def index_two(name: str, request: Request, token: str = Depends(get_token)) -> PlainTextResponse:
    return await _index(request, token, name)


@router.get("/3/{prefix}/{name}", response_class=PlainTextResponse)
async def index_three(
    prefix: str, name: str, request: Request, token: str = Depends(get_token)
) -> PlainTextResponse:
    return await _index(request, token, name)


@router.get("/{prefix1}/{prefix2}/{name}", response_class=PlainTextResponse)
async def index_long(
    prefix1: str, prefix2: str, name: str, request: Request, token: str = Depends(get_token)
) -> PlainTextResponse:
    return await _index(request, token, name)
