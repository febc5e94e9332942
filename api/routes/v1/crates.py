"""
api/routes/v1/crates.py -- Registry web API consumed by the package manager.

Routes (in registration order to avoid FastAPI path capture conflicts):
  PUT    /crates/new                        -- publish (binary envelope body)
  GET    /crates                            -- search (always 404 unsupported)
  GET    /crates/{name}/owners              -- list owners
  PUT    /crates/{name}/owners              -- add owners
  DELETE /crates/{name}/owners              -- remove owners
  DELETE /crates/{name}/{version}/yank      -- yank a version
  PUT    /crates/{name}/{version}/unyank    -- unyank a version
  PUT    /crates/{name}/{version}/yank      -- unyank a version (alias)
  GET    /crates/{name}/{version}/download  -- archive bytes
  GET    /crates/{name}/{version}           -- archive bytes (the `dl` template)

Every route requires a token. Reads go through policy.readable, mutations
through policy.writable; a denial is a 403 before the registry is touched.
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from api.models import OkResponse, OwnersRequest, OwnersResponse, OwnerUser, SearchMeta, SearchResponse
from auth.dependencies import get_token
from auth.policy import AuthPolicy
from core import pipeline
from core.errors import AuthError
from core.models import CrateName
from core.pipeline import gather_all
from core.schema import PublishResponse, SearchQuery
from registry.store import Registry

router = APIRouter()

_ARCHIVE_MEDIA_TYPE = "application/gzip"


def natural_human_names(names: list[str]) -> str:
    """Join names the way a sentence would: "a", "a and b", "a, b and c"."""
    if not names:
        raise ValueError("at least one name is required")
    if len(names) == 1:
        return names[0]
    return f"{', '.join(names[:-1])} and {names[-1]}"


def _deps(request: Request) -> tuple[AuthPolicy, Registry]:
    return request.app.state.policy, request.app.state.registry


# ---------------------------------------------------------------------------
# PUT /crates/new -- publish
# ---------------------------------------------------------------------------


@router.put("/crates/new", response_model=PublishResponse)
async def publish_crate(request: Request, token: str = Depends(get_token)) -> PublishResponse:
    """Publish one crate version from the package manager's binary envelope."""
    policy, registry = _deps(request)
    body = await request.body()
    await pipeline.publish(body, token, policy, registry)
    return PublishResponse()


# ---------------------------------------------------------------------------
# GET /crates -- search
# ---------------------------------------------------------------------------


@router.get("/crates", response_model=SearchResponse)
async def search_crates(
    request: Request,
    q: str = Query(default=""),
    per_page: int = Query(default=10, ge=1, le=100),
    token: str = Depends(get_token),
) -> SearchResponse:
    policy, registry = _deps(request)
    packages, total = await registry.search(SearchQuery(q=q, per_page=per_page))

    async def visible(name: str) -> bool:
        try:
            await policy.readable(token, CrateName.parse(name))
        except AuthError:
            return False
        return True

    allowed = await gather_all(visible(p.name) for p in packages)
    crates = [p.model_dump() for p, ok in zip(packages, allowed) if ok]
    return SearchResponse(crates=crates, meta=SearchMeta(total=total))


# ---------------------------------------------------------------------------
# Owners
# ---------------------------------------------------------------------------


@router.get("/crates/{name}/owners", response_model=OwnersResponse)
async def list_owners(name: str, request: Request, token: str = Depends(get_token)) -> OwnersResponse:
    policy, registry = _deps(request)
    crate = CrateName.parse(name)
    await policy.readable(token, crate)
    logins = await registry.get_owners(crate)
    users = await gather_all(policy.as_registry_user(token, login) for login in logins)
    return OwnersResponse(users=[OwnerUser.from_user(u) for u in users])


@router.put("/crates/{name}/owners", response_model=OkResponse)
async def add_owners(
    name: str,
    body: OwnersRequest,
    request: Request,
    token: str = Depends(get_token),
) -> OkResponse:
    policy, registry = _deps(request)
    crate = CrateName.parse(name)
    await policy.writable(token, crate)
    await registry.add_owner(crate, body.users)
    return OkResponse(msg=f"user {natural_human_names(body.users)} has been added to {crate.original}")


@router.delete("/crates/{name}/owners", response_model=OkResponse)
async def remove_owners(
    name: str,
    body: OwnersRequest,
    request: Request,
    token: str = Depends(get_token),
) -> OkResponse:
    policy, registry = _deps(request)
    crate = CrateName.parse(name)
    await policy.writable(token, crate)
    await registry.delete_owner(crate, body.users)
    return OkResponse(msg=f"user {natural_human_names(body.users)} has been removed from {crate.original}")


# ---------------------------------------------------------------------------
# Yank / unyank
# ---------------------------------------------------------------------------


async def _set_yank(request: Request, token: str, name: str, version: str, yanked: bool) -> OkResponse:
    policy, registry = _deps(request)
    crate = CrateName.parse(name)
    await policy.writable(token, crate)
    await registry.set_yank(crate, version, yanked)
    return OkResponse()


@router.delete("/crates/{name}/{version}/yank", response_model=OkResponse, response_model_exclude_none=True)
async def yank(name: str, version: str, request: Request, token: str = Depends(get_token)) -> OkResponse:
    return await _set_yank(request, token, name, version, True)


@router.put("/crates/{name}/{version}/unyank", response_model=OkResponse, response_model_exclude_none=True)
@router.put("/crates/{name}/{version}/yank", response_model=OkResponse, response_model_exclude_none=True)
async def unyank(name: str, version: str, request: Request, token: str = Depends(get_token)) -> OkResponse:
    return await _set_yank(request, token, name, version, False)


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------


@router.get("/crates/{name}/{version}/download")
@router.get("/crates/{name}/{version}")
async def download(name: str, version: str, request: Request, token: str = Depends(get_token)) -> Response:
    policy, registry = _deps(request)
    data = await pipeline.fetch_crate(token, CrateName.parse(name), version, policy, registry)
    return Response(content=data, media_type=_ARCHIVE_MEDIA_TYPE)
