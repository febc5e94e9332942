"""
storage/s3.py -- boto3-backed ObjectStore for AWS S3 and S3-compatible stores.

boto3 is a blocking SDK. Each call runs on the default thread pool through
asyncio.to_thread so concurrent fan-out from the registry (one get per index
version, one put per owner) overlaps instead of serializing on the event loop.
The low-level client is thread-safe; one instance is shared for the process.

Custom endpoints (MinIO, Ceph, R2, ...) get path-style addressing because most
of them do not serve virtual-host style bucket names.

Usage:
    store = S3ObjectStore("my-registry-bucket")
    store = S3ObjectStore("crates", endpoint="http://localhost:9000")
    await store.health_check()
    keys = await store.list("index/serde/")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from core.errors import UpstreamError
from storage.base import ObjectNotFound, ObjectStore

logger = logging.getLogger("cratehold.storage.s3")

_MISSING_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def create_s3_client(endpoint: Optional[str] = None):
    """Build the boto3 S3 client. Credentials and region come from the usual AWS chain."""
    if endpoint:
        return boto3.client(
            "s3",
            endpoint_url=endpoint,
            config=Config(s3={"addressing_style": "path"}),
        )
    return boto3.client("s3")


class S3ObjectStore(ObjectStore):
    def __init__(self, bucket: str, endpoint: Optional[str] = None, client: Any = None) -> None:
        self.bucket = bucket
        self.endpoint = endpoint
        self._client = client if client is not None else create_s3_client(endpoint)
        logger.info("S3 store initialized (bucket=%s endpoint=%s)", bucket, endpoint or "default")

    async def _run(self, op: str, key: str, fn: Callable[..., Any], **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except ClientError as exc:
            raise UpstreamError(
                "object store request failed",
                verbose_message=f"{op} {self.bucket}/{key}: {exc}",
                contexts=[op],
            ) from exc
        except BotoCoreError as exc:
            raise UpstreamError(
                "object store unreachable",
                verbose_message=f"{op} {self.bucket}/{key}: {exc}",
                contexts=[op],
            ) from exc

    # ------------------------------------------------------------------
    # ObjectStore
    # ------------------------------------------------------------------

    async def list(self, prefix: str) -> list[str]:
        return await self._run("list", prefix, self._list_all, prefix=prefix)

    def _list_all(self, prefix: str) -> list[str]:
        # Keep requesting pages until S3 stops handing out continuation
        # tokens. A partial listing would silently hide published versions.
        keys: list[str] = []
        params: dict[str, str] = {"Bucket": self.bucket, "Prefix": prefix}
        while True:
            response = self._client.list_objects_v2(**params)
            keys.extend(obj["Key"] for obj in response.get("Contents", []))
            token = response.get("NextContinuationToken")
            if not token:
                return keys
            params["ContinuationToken"] = token

    async def get(self, key: str) -> bytes:
        try:
            return await asyncio.to_thread(self._get_body, key)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                raise ObjectNotFound(key) from exc
            raise UpstreamError(
                "object store request failed",
                verbose_message=f"get {self.bucket}/{key}: {exc}",
                contexts=["get"],
            ) from exc
        except BotoCoreError as exc:
            raise UpstreamError(
                "object store unreachable",
                verbose_message=f"get {self.bucket}/{key}: {exc}",
                contexts=["get"],
            ) from exc

    def _get_body(self, key: str) -> bytes:
        response = self._client.get_object(Bucket=self.bucket, Key=key)
        return response["Body"].read()

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        await self._run(
            "put",
            key,
            self._client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )

    async def delete(self, key: str) -> None:
        await self._run("delete", key, self._client.delete_object, Bucket=self.bucket, Key=key)

    async def head(self, key: str) -> bool:
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=self.bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                return False
            raise UpstreamError(
                "object store request failed",
                verbose_message=f"head {self.bucket}/{key}: {exc}",
                contexts=["head"],
            ) from exc
        except BotoCoreError as exc:
            raise UpstreamError(
                "object store unreachable",
                verbose_message=f"head {self.bucket}/{key}: {exc}",
                contexts=["head"],
            ) from exc
        return True

    async def health_check(self) -> None:
        await self._run("list_buckets", "", self._client.list_buckets)
