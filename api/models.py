"""
API request and response models for cratehold REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the api/
layer. Publish payloads and index records are wire formats of the package
manager itself and live in core/schema.py; this module only holds shapes the
HTTP handlers add on top.

Separation of concerns: core/ models = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import RegistryUser

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response.

    `type` is the HTTP status code. Operator-only detail is logged, never
    placed here.
    """

    model_config = ConfigDict(frozen=True)

    type: int
    message: str
    contexts: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Registry config
# ---------------------------------------------------------------------------


class ConfigResponse(BaseModel):
    """Body of GET /config.json, read by the package manager on first contact."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    dl: str
    api: str
    auth_required: bool = Field(default=True, alias="auth-required")


# ---------------------------------------------------------------------------
# Owners
# ---------------------------------------------------------------------------


class OwnersRequest(BaseModel):
    """Body of PUT/DELETE /api/v1/crates/{name}/owners."""

    model_config = ConfigDict(str_strip_whitespace=True)

    users: list[str] = Field(min_length=1)


class OwnerUser(BaseModel):
    id: int
    login: str
    name: Optional[str] = None

    @classmethod
    def from_user(cls, user: RegistryUser) -> "OwnerUser":
        return cls(id=user.id, login=user.login, name=user.name)


class OwnersResponse(BaseModel):
    users: list[OwnerUser]


class OkResponse(BaseModel):
    ok: bool = True
    msg: Optional[str] = None


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class SearchMeta(BaseModel):
    total: int


class SearchResponse(BaseModel):
    crates: list[dict]
    meta: SearchMeta


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
