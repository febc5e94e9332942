"""
core/schema.py -- Pydantic v2 models for the publish payload and index records.

PublishRequest is what the package manager sends inside the publish envelope.
IndexRecord is what cratehold stores under index/{name}/{version} and serves,
one JSON object per line, from the sparse index routes.

IndexRecord.from_publish() is the only place a record is built from a publish.
Everything except `yanked` is fixed at that point.

Versions are validated and canonicalized with the `semver` package so the
string that lands in a storage key is the same one the package manager would
print for that version.
"""

from __future__ import annotations

import hashlib
from enum import Enum
from typing import Any, Optional

import semver
from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.models import CrateName, InvalidCrateName

INDEX_SCHEMA_VERSION = 2


def _crate_name(value: str) -> str:
    try:
        CrateName.parse(value)
    except InvalidCrateName as exc:
        raise ValueError(exc.message) from exc
    return value


def canonical_version(value: str) -> str:
    """Return the canonical semver string for `value`. Raises ValueError."""
    return str(semver.Version.parse(value))


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DependencyKind(str, Enum):
    dev = "dev"
    build = "build"
    normal = "normal"


# ---------------------------------------------------------------------------
# Publish payload (request shape)
# ---------------------------------------------------------------------------


class PublishDependency(BaseModel):
    """One dependency as declared by the publisher."""

    name: str
    version_req: str
    features: list[str] = Field(default_factory=list)
    default_features: bool = True
    optional: bool = False
    target: Optional[str] = None
    kind: DependencyKind = DependencyKind.normal
    explicit_name_in_toml: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _crate_name(value)


class PublishRequest(BaseModel):
    """Metadata JSON block of the publish envelope.

    Only name, vers, deps, features, links and rust_version are persisted.
    The presentation fields are accepted so a real publish body validates,
    then dropped.
    """

    name: str
    vers: str
    deps: list[PublishDependency]
    features: dict[str, list[str]]
    authors: list[str] = Field(default_factory=list)
    description: Optional[str] = None
    documentation: Optional[str] = None
    homepage: Optional[str] = None
    readme: Optional[str] = None
    readme_file: Optional[str] = None
    keywords: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    license: Optional[str] = None
    license_file: Optional[str] = None
    links: Optional[str] = None
    rust_version: Optional[str] = None
    badges: dict[str, Any] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _crate_name(value)

    @field_validator("vers")
    @classmethod
    def validate_vers(cls, value: str) -> str:
        return canonical_version(value)

    @property
    def crate_name(self) -> CrateName:
        return CrateName.parse(self.name)


class PublishWarnings(BaseModel):
    invalid_categories: list[str] = Field(default_factory=list)
    invalid_badges: list[str] = Field(default_factory=list)
    other: list[str] = Field(default_factory=list)


class PublishResponse(BaseModel):
    """Body returned by PUT /api/v1/crates/new. cratehold never emits warnings."""

    warnings: PublishWarnings = Field(default_factory=PublishWarnings)


# ---------------------------------------------------------------------------
# Index records (index shape)
# ---------------------------------------------------------------------------


class IndexDependency(BaseModel):
    name: str
    req: str
    features: list[str]
    default_features: bool
    optional: bool
    target: Optional[str] = None
    kind: DependencyKind
    # Alternate-registry overrides are not supported on write; always None.
    package: Optional[str] = None
    registry: Optional[str] = None


class IndexRecord(BaseModel):
    """One published version, exactly as served in the sparse index."""

    model_config = ConfigDict(frozen=True)

    name: str
    vers: str
    deps: list[IndexDependency]
    features: dict[str, list[str]]
    links: Optional[str] = None
    cksum: str
    yanked: bool = False
    v: int = INDEX_SCHEMA_VERSION
    rust_version: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _crate_name(value)

    @field_validator("vers")
    @classmethod
    def validate_vers(cls, value: str) -> str:
        return canonical_version(value)

    @property
    def version(self) -> semver.Version:
        return semver.Version.parse(self.vers)

    @classmethod
    def from_publish(cls, request: PublishRequest, archive: bytes) -> IndexRecord:
        """Project a publish request onto the index shape.

        cksum is the lowercase hex SHA-256 of the archive bytes exactly as
        received. Dependency override fields are always dropped.
        """
        return cls(
            name=request.name,
            vers=request.vers,
            deps=[
                IndexDependency(
                    name=dep.name,
                    req=dep.version_req,
                    features=list(dep.features),
                    default_features=dep.default_features,
                    optional=dep.optional,
                    target=dep.target,
                    kind=dep.kind,
                    package=None,
                    registry=None,
                )
                for dep in request.deps
            ],
            features={k: list(v) for k, v in request.features.items()},
            links=request.links,
            cksum=hashlib.sha256(archive).hexdigest(),
            yanked=False,
            v=INDEX_SCHEMA_VERSION,
            rust_version=request.rust_version,
        )

    def with_yanked(self, yanked: bool) -> IndexRecord:
        return self.model_copy(update={"yanked": yanked})

    def to_json(self) -> bytes:
        return self.model_dump_json().encode("utf-8")


# ---------------------------------------------------------------------------
# Search (kept for the wire contract; the registry has no search backend)
# ---------------------------------------------------------------------------


class SearchQuery(BaseModel):
    q: str = ""
    per_page: int = Field(default=10, ge=1, le=100)


class QueriedPackage(BaseModel):
    name: str
    max_version: str
    description: str = ""
