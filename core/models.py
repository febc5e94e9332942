"""
core/models.py -- Crate identifier value type.

CrateName is the one domain rule every layer shares: the registry uses
`normalized` for every storage key and every rule lookup, the API echoes
`original` back to clients. Wire and record shapes live in core/schema.py.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import ValidationError

# ---------------------------------------------------------------------------
# Parse errors
# ---------------------------------------------------------------------------


class InvalidCrateName(ValidationError):
    """Base class for every CrateName.parse failure."""


class EmptyCrateName(InvalidCrateName):
    def __init__(self) -> None:
        super().__init__("empty crate name is not allowed")


class FirstCharNotAlphabetic(InvalidCrateName):
    def __init__(self, name: str) -> None:
        super().__init__("first character must be alphabetic", contexts=[name[:64]])


class InvalidRestChar(InvalidCrateName):
    def __init__(self, name: str) -> None:
        super().__init__("characters must be alphanumeric, '_' or '-'", contexts=[name[:64]])


# ---------------------------------------------------------------------------
# CrateName
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CrateName:
    """A validated crate identifier.

    Two names that differ only in `_` vs `-` are distinct values (equality
    covers both fields) but share one normalized form, and therefore one set
    of storage keys. Always key storage and caches by `normalized`.
    """

    original: str
    normalized: str

    @classmethod
    def parse(cls, value: str) -> CrateName:
        if not value:
            raise EmptyCrateName()
        if not value[0].isalpha():
            raise FirstCharNotAlphabetic(value)
        for ch in value[1:]:
            if not (ch.isalnum() or ch in "-_"):
                raise InvalidRestChar(value)
        return cls(original=value, normalized=value.replace("_", "-"))

    def __str__(self) -> str:
        return self.original
