"""
tests/conftest.py -- Shared fakes and fixtures for cratehold tests.

This module provides:
  - FakeObjectStore: in-memory ObjectStore with call counting and failure
    injection, standing in for S3
  - FakeIdentityProvider: scripted logins, org memberships and users with
    per-method round-trip counters, standing in for GitHub
  - rules / identity / store / registry / policy fixtures
  - publish_body: factory for binary publish envelopes
  - api_client: TestClient whose lifespan is patched to wire the fakes into
    app.state, so no test touches the network

Identities used throughout:
  tok-alice -> alice  (member of acme)
  tok-carol -> carol  (member of acme)
  tok-bob   -> bob    (no orgs)
"""

from __future__ import annotations

import json
import struct
from collections import Counter
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.github import IdentityError, IdentityProvider
from auth.models import AuthRules, RegistryUser
from auth.policy import AuthPolicy
from auth.rules import parse_rules
from core.errors import UpstreamError
from registry.store import Registry
from storage.base import ObjectNotFound, ObjectStore

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeObjectStore(ObjectStore):
    """Dict-backed store. Keys listed in `failing` raise UpstreamError on any access."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.failing: set[str] = set()
        self.healthy = True
        self.calls: Counter[str] = Counter()

    def _check(self, op: str, key: str) -> None:
        self.calls[op] += 1
        if key in self.failing:
            raise UpstreamError("object store request failed", verbose_message=f"{op} {key}: injected")

    async def list(self, prefix: str) -> list[str]:
        self._check("list", prefix)
        return sorted(k for k in self.objects if k.startswith(prefix))

    async def get(self, key: str) -> bytes:
        self._check("get", key)
        if key not in self.objects:
            raise ObjectNotFound(key)
        return self.objects[key]

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        self._check("put", key)
        self.objects[key] = data
        self.content_types[key] = content_type

    async def delete(self, key: str) -> None:
        self._check("delete", key)
        self.objects.pop(key, None)
        self.content_types.pop(key, None)

    async def head(self, key: str) -> bool:
        self._check("head", key)
        return key in self.objects

    async def health_check(self) -> None:
        self.calls["health_check"] += 1
        if not self.healthy:
            raise UpstreamError("object store unreachable", verbose_message="list_buckets: injected")


class FakeIdentityProvider(IdentityProvider):
    """Scripted identity provider. Set `error` to make every call fail."""

    def __init__(
        self,
        logins: dict[str, str],
        orgs: dict[str, list[str]],
        users: Optional[dict[str, RegistryUser]] = None,
    ) -> None:
        self.logins = logins
        self.orgs = orgs
        self.users = users or {}
        self.error: Optional[Exception] = None
        self.calls: Counter[str] = Counter()

    def _maybe_fail(self, op: str) -> None:
        self.calls[op] += 1
        if self.error is not None:
            raise self.error

    async def current_login(self, token: str) -> str:
        self._maybe_fail("current_login")
        if token not in self.logins:
            raise IdentityError("GitHub answered 401 for /user", status=401)
        return self.logins[token]

    async def org_members(self, token: str, org: str) -> list[str]:
        self._maybe_fail("org_members")
        if org not in self.orgs:
            raise IdentityError(f"GitHub answered 404 for /orgs/{org}/members", status=404)
        return list(self.orgs[org])

    async def get_user(self, token: str, login: str) -> RegistryUser:
        self._maybe_fail("get_user")
        if login not in self.users:
            raise IdentityError(f"GitHub answered 404 for /users/{login}", status=404)
        return self.users[login]

    @property
    def round_trips(self) -> int:
        return sum(self.calls.values())


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

RULES = {
    "my_crate": {"read": {"in_orgs": {"org": "acme"}}, "write": {"is": {"user": "alice"}}},
    "bob-only": {"read": {"is": {"user": "bob"}}, "write": {"is": {"user": "bob"}}},
    "a": {"read": {"in_orgs": {"org": "acme"}}, "write": {"is": {"user": "alice"}}},
    "ab": {"read": {"in_orgs": {"org": "acme"}}, "write": {"is": {"user": "alice"}}},
    "abc": {"read": {"in_orgs": {"org": "acme"}}, "write": {"is": {"user": "alice"}}},
}


@pytest.fixture
def rules() -> AuthRules:
    return parse_rules(RULES)


@pytest.fixture
def identity() -> FakeIdentityProvider:
    return FakeIdentityProvider(
        logins={"tok-alice": "alice", "tok-carol": "carol", "tok-bob": "bob"},
        orgs={"acme": ["alice", "carol"]},
        users={
            "alice": RegistryUser(id=1, login="alice", name="Alice"),
            "carol": RegistryUser(id=3, login="carol"),
            "bob": RegistryUser(id=2, login="bob", name="Bob"),
        },
    )


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def registry(store: FakeObjectStore) -> Registry:
    return Registry(store)


@pytest.fixture
def policy(rules: AuthRules, identity: FakeIdentityProvider) -> AuthPolicy:
    return AuthPolicy(rules, identity)


def encode_envelope(index_json: bytes, archive: bytes) -> bytes:
    """Frame metadata and archive the way cargo publish does: u32 LE length before each part."""
    return struct.pack("<I", len(index_json)) + index_json + struct.pack("<I", len(archive)) + archive


def make_metadata(name: str = "my_crate", vers: str = "1.0.0", **extra) -> dict:
    meta = {
        "name": name,
        "vers": vers,
        "deps": [
            {
                "name": "serde",
                "version_req": "^1.0",
                "features": ["derive"],
                "optional": False,
                "default_features": True,
                "target": None,
                "kind": "normal",
                "registry": "https://github.com/rust-lang/crates.io-index",
                "explicit_name_in_toml": None,
            }
        ],
        "features": {"default": ["std"], "std": []},
        "authors": ["Alice <alice@example.com>"],
        "description": "test crate",
        "license": "MIT",
        "links": None,
        "rust_version": "1.70",
    }
    meta.update(extra)
    return meta


@pytest.fixture
def publish_body() -> Callable[..., bytes]:
    """Return a factory: publish_body(name, vers, archive=b"...", **metadata_overrides)."""

    def _make(name: str = "my_crate", vers: str = "1.0.0", archive: bytes = b"\x1f\x8barchive", **extra) -> bytes:
        meta = make_metadata(name, vers, **extra)
        return encode_envelope(json.dumps(meta).encode("utf-8"), archive)

    return _make


@dataclass
class ApiHarness:
    client: TestClient
    store: FakeObjectStore
    identity: FakeIdentityProvider

    @staticmethod
    def auth(token: str) -> dict[str, str]:
        return {"Authorization": token}


def _patch_lifespan(store: FakeObjectStore, rules: AuthRules, identity: FakeIdentityProvider):
    """Return a lifespan that wires the fakes into app.state instead of S3 and GitHub."""

    @asynccontextmanager
    async def test_lifespan(app):
        registry = Registry(store)
        await registry.health_check()
        app.state.registry = registry
        app.state.policy = AuthPolicy(rules, identity)
        yield

    return test_lifespan


@pytest.fixture
def api_client(
    store: FakeObjectStore, rules: AuthRules, identity: FakeIdentityProvider
) -> Generator[ApiHarness, None, None]:
    """Yield an ApiHarness over the real app with fake storage and identity."""
    original = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(store, rules, identity)
    try:
        with TestClient(app, raise_server_exceptions=True) as client:
            yield ApiHarness(client=client, store=store, identity=identity)
    finally:
        app.router.lifespan_context = original
