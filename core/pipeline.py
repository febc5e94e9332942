"""
core/pipeline.py -- Request flows shared by the HTTP handlers.

Publish:  decode envelope -> policy.writable -> registry.put
Fetch:    policy.readable -> registry.get_index / registry.get_crate

Handlers in api/ only marshal request parameters and call into here. The
policy and registry are passed in rather than imported so core/ stays free of
auth/ and registry/ imports.

gather_all() is the one fan-out combinator used across the codebase: run
every awaitable to completion, then raise the first failure in submission
order. There is no partial-success result; work that already succeeded is
left in place.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from typing import TypeVar

from core.envelope import decode_publish
from core.models import CrateName
from core.schema import IndexRecord, PublishRequest

logger = logging.getLogger("cratehold.pipeline")

T = TypeVar("T")


async def gather_all(aws: Iterable[Awaitable[T]]) -> list[T]:
    """Await every item concurrently; raise the first error after all finish."""
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


async def publish(body: bytes, token: str, policy, registry) -> PublishRequest:
    """Decode, authorize and store one publish. Returns the decoded request.

    Decoding happens before authorization because the crate name the caller
    must be allowed to write lives inside the envelope.
    """
    request, archive = decode_publish(body)
    name = request.crate_name
    await policy.writable(token, name)
    await registry.put(request, archive)
    logger.info("publish name=%s version=%s size=%d", name.original, request.vers, len(archive))
    return request


async def fetch_index(token: str, name: CrateName, policy, registry) -> list[IndexRecord]:
    await policy.readable(token, name)
    return await registry.get_index(name)


async def fetch_crate(token: str, name: CrateName, version: str, policy, registry) -> bytes:
    await policy.readable(token, name)
    return await registry.get_crate(name, version)
