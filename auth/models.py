"""
auth/models.py -- Domain dataclasses for authorization entities.

Pattern: Data class (pure data container, zero logic). Rule evaluation lives
in auth/policy.py; loading from YAML lives in auth/rules.py.

Rule is a closed tagged union of two frozen dataclasses. Evaluation switches
on the variant type in one function instead of giving each variant its own
method, so the identity lookups stay in a single place.

Layer rule: no imports from api/, registry/, storage/, or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional, Union


@dataclass(frozen=True)
class Is:
    """Pass iff the caller's login equals `user`."""

    user: str


@dataclass(frozen=True)
class InOrgs:
    """Pass iff the caller's login is a member of organization `org`."""

    org: str


Rule = Union[Is, InOrgs]


@dataclass(frozen=True)
class CrateRule:
    read: Rule
    write: Rule


# Keyed by normalized crate name. Built once at startup, never mutated.
AuthRules = Mapping[str, CrateRule]


def freeze_rules(rules: dict[str, CrateRule]) -> AuthRules:
    return MappingProxyType(dict(rules))


@dataclass(frozen=True)
class RegistryUser:
    """A crate owner as reported to the package manager."""

    id: int
    login: str
    name: Optional[str] = None
