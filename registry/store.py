"""
registry/store.py -- Object-store-backed crate registry.

Pattern: Repository. Registry is the only code that knows the key layout;
route handlers and the pipeline never build a key themselves.

Key layout (changing it breaks every existing bucket):

    index/{normalized-name}/{semver}   IndexRecord JSON
    crate/{normalized-name}/{semver}   archive bytes
    owner/{normalized-name}/{login}    empty marker; existence is the fact

Consistency notes:
  The object store has no compare-and-swap, so:
  - put() checks for an existing index record, then writes the record, then
    the archive. Two concurrent publishes of one version can both pass the
    check. A crash between the two writes leaves a record with no archive.
  - set_yank() is read-modify-write; last write wins.
  - add_owner()/delete_owner() fan out one call per login and report the
    first failure. Logins that already succeeded are not rolled back.

Usage:
    registry = Registry(S3ObjectStore("bucket"))
    await registry.put(request, archive)
    records = await registry.get_index(CrateName.parse("serde"))
    await registry.set_yank(name, "1.0.0", True)
"""

from __future__ import annotations

import logging

import pydantic
import semver

from core.errors import Conflict, NotFound, UpstreamError, ValidationError
from core.models import CrateName
from core.pipeline import gather_all
from core.schema import IndexRecord, PublishRequest, QueriedPackage, SearchQuery, canonical_version
from storage.base import ObjectNotFound, ObjectStore

logger = logging.getLogger("cratehold.registry")

_INDEX_CONTENT_TYPE = "application/json"
_CRATE_CONTENT_TYPE = "application/gzip"
_OWNER_CONTENT_TYPE = "application/octet-stream"

# ---------------------------------------------------------------------------
# Key helpers
# ---------------------------------------------------------------------------


def index_prefix(name: CrateName) -> str:
    return f"index/{name.normalized}/"


def index_key(name: CrateName, version: str) -> str:
    return f"index/{name.normalized}/{version}"


def crate_key(name: CrateName, version: str) -> str:
    return f"crate/{name.normalized}/{version}"


def owner_prefix(name: CrateName) -> str:
    return f"owner/{name.normalized}/"


def owner_key(name: CrateName, login: str) -> str:
    return f"owner/{name.normalized}/{login}"


def _version(version: str | semver.Version) -> str:
    if isinstance(version, semver.Version):
        return str(version)
    try:
        return canonical_version(version)
    except ValueError as exc:
        raise ValidationError("invalid version", verbose_message=str(exc), contexts=[str(version)[:64]]) from exc


def _check_logins(logins: list[str]) -> None:
    for login in logins:
        if not login or "/" in login:
            raise ValidationError("invalid owner login", contexts=[login[:64]])


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class Registry:
    def __init__(self, store: ObjectStore) -> None:
        self.store = store

    async def health_check(self) -> None:
        await self.store.health_check()

    # ------------------------------------------------------------------
    # Publish
    # ------------------------------------------------------------------

    async def put(self, request: PublishRequest, archive: bytes) -> IndexRecord:
        """Store a new version. Raises Conflict if the version already exists.

        The archive bytes do not matter for the conflict check: re-publishing
        identical content is still a duplicate.
        """
        name = request.crate_name
        key = index_key(name, request.vers)
        if await self.store.head(key):
            raise Conflict(
                "already exists",
                verbose_message=f"{name.original}/{request.vers} already exists",
                contexts=[f"{name.original}@{request.vers}"],
            )
        record = IndexRecord.from_publish(request, archive)
        await self._put_record(name, record)
        await self.store.put(crate_key(name, record.vers), archive, _CRATE_CONTENT_TYPE)
        return record

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    async def get_index(self, name: CrateName) -> list[IndexRecord]:
        """Return every published record for `name`, in listing order.

        Every key suffix must parse as a version; one stray object under the
        prefix fails the whole call rather than serving a partial index.
        """
        prefix = index_prefix(name)
        keys = await self.store.list(prefix)
        logger.debug("index keys for %s: %s", name.normalized, keys)
        if not keys:
            raise NotFound("no index", contexts=[name.original])

        versions: list[str] = []
        for key in keys:
            if not key.startswith(prefix):
                raise UpstreamError("invalid object store prefix", verbose_message=f"{key!r} not under {prefix!r}")
            suffix = key[len(prefix) :]
            try:
                versions.append(str(semver.Version.parse(suffix)))
            except ValueError as exc:
                raise UpstreamError(
                    "invalid version in index",
                    verbose_message=f"{key}: {exc}",
                    contexts=[suffix[:64]],
                ) from exc

        return await gather_all(self._get_record(name, v) for v in versions)

    async def set_yank(self, name: CrateName, version: str | semver.Version, yanked: bool) -> IndexRecord:
        record = await self._get_record(name, _version(version))
        updated = record.with_yanked(yanked)
        await self._put_record(name, updated)
        return updated

    async def _get_record(self, name: CrateName, version: str) -> IndexRecord:
        try:
            raw = await self.store.get(index_key(name, version))
        except ObjectNotFound as exc:
            raise NotFound("version not found", contexts=[f"{name.original}@{version}"]) from exc
        try:
            return IndexRecord.model_validate_json(raw)
        except pydantic.ValidationError as exc:
            raise UpstreamError(
                "corrupt index record",
                verbose_message=f"{index_key(name, version)}: {exc}",
            ) from exc

    async def _put_record(self, name: CrateName, record: IndexRecord) -> None:
        await self.store.put(index_key(name, record.vers), record.to_json(), _INDEX_CONTENT_TYPE)

    # ------------------------------------------------------------------
    # Archives
    # ------------------------------------------------------------------

    async def get_crate(self, name: CrateName, version: str | semver.Version) -> bytes:
        vers = _version(version)
        try:
            return await self.store.get(crate_key(name, vers))
        except ObjectNotFound as exc:
            raise NotFound("crate not found", contexts=[f"{name.original}@{vers}"]) from exc

    # ------------------------------------------------------------------
    # Owners
    # ------------------------------------------------------------------

    async def get_owners(self, name: CrateName) -> list[str]:
        prefix = owner_prefix(name)
        keys = await self.store.list(prefix)
        return [key[len(prefix) :] for key in keys if key.startswith(prefix) and len(key) > len(prefix)]

    async def add_owner(self, name: CrateName, logins: list[str]) -> None:
        _check_logins(logins)
        await gather_all(self.store.put(owner_key(name, login), b"", _OWNER_CONTENT_TYPE) for login in logins)

    async def delete_owner(self, name: CrateName, logins: list[str]) -> None:
        _check_logins(logins)
        await gather_all(self.store.delete(owner_key(name, login)) for login in logins)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, query: SearchQuery) -> tuple[list[QueriedPackage], int]:
        raise NotFound("search is unsupported", contexts=[query.q[:64]] if query.q else [])
