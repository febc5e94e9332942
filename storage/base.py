"""
storage/base.py -- Abstract object-store interface.

Every method is a coroutine. Implementations surface transport and service
failures as core.errors.UpstreamError and never swallow them. The single
exception is head(), which answers False for a genuine "no such key".
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from core.errors import NotFound


class ObjectNotFound(NotFound):
    def __init__(self, key: str) -> None:
        super().__init__("not found", verbose_message=f"no object at {key}", contexts=[key])
        self.key = key


class ObjectStore(ABC):
    @abstractmethod
    async def list(self, prefix: str) -> list[str]:
        """Return every key under `prefix`, following pagination to the end."""

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Return the object body. Raises ObjectNotFound if absent."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> None: ...

    @abstractmethod
    async def delete(self, key: str) -> None: ...

    @abstractmethod
    async def head(self, key: str) -> bool: ...

    @abstractmethod
    async def health_check(self) -> None:
        """One lightweight store-level check. Raises UpstreamError on failure."""
