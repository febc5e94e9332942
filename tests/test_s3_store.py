"""
tests/test_s3_store.py -- S3ObjectStore against a MagicMock boto3 client.

No network: every test injects the client. Covers pagination, the 404 vs
failure split for get/head, content types on put, and the health check.
"""

from __future__ import annotations

import asyncio
import io
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from core.errors import UpstreamError
from storage.base import ObjectNotFound
from storage.s3 import S3ObjectStore, create_s3_client


def _client_error(code: str, op: str = "GetObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, op)


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def s3(client: MagicMock) -> S3ObjectStore:
    return S3ObjectStore("crates", client=client)


class TestList:
    def test_follows_continuation_tokens(self, s3, client) -> None:
        client.list_objects_v2.side_effect = [
            {"Contents": [{"Key": "index/a/1.0.0"}], "NextContinuationToken": "t1"},
            {"Contents": [{"Key": "index/a/1.1.0"}], "NextContinuationToken": "t2"},
            {"Contents": [{"Key": "index/a/2.0.0"}]},
        ]
        keys = asyncio.run(s3.list("index/a/"))
        assert keys == ["index/a/1.0.0", "index/a/1.1.0", "index/a/2.0.0"]
        assert client.list_objects_v2.call_count == 3
        last_call = client.list_objects_v2.call_args_list[-1]
        assert last_call.kwargs == {"Bucket": "crates", "Prefix": "index/a/", "ContinuationToken": "t2"}

    def test_empty_listing(self, s3, client) -> None:
        client.list_objects_v2.return_value = {"KeyCount": 0}
        assert asyncio.run(s3.list("owner/a/")) == []

    def test_failure_is_upstream_error(self, s3, client) -> None:
        client.list_objects_v2.side_effect = _client_error("AccessDenied", "ListObjectsV2")
        with pytest.raises(UpstreamError):
            asyncio.run(s3.list("index/a/"))


class TestGet:
    def test_returns_body(self, s3, client) -> None:
        client.get_object.return_value = {"Body": io.BytesIO(b"payload")}
        assert asyncio.run(s3.get("crate/a/1.0.0")) == b"payload"
        client.get_object.assert_called_once_with(Bucket="crates", Key="crate/a/1.0.0")

    @pytest.mark.parametrize("code", ["NoSuchKey", "404", "NotFound"])
    def test_missing_key(self, s3, client, code: str) -> None:
        client.get_object.side_effect = _client_error(code)
        with pytest.raises(ObjectNotFound) as exc_info:
            asyncio.run(s3.get("crate/a/1.0.0"))
        assert exc_info.value.key == "crate/a/1.0.0"

    def test_other_error(self, s3, client) -> None:
        client.get_object.side_effect = _client_error("InternalError")
        with pytest.raises(UpstreamError):
            asyncio.run(s3.get("crate/a/1.0.0"))

    def test_connection_error(self, s3, client) -> None:
        client.get_object.side_effect = EndpointConnectionError(endpoint_url="http://localhost:9000")
        with pytest.raises(UpstreamError) as exc_info:
            asyncio.run(s3.get("crate/a/1.0.0"))
        assert exc_info.value.message == "object store unreachable"


class TestHead:
    def test_present(self, s3, client) -> None:
        client.head_object.return_value = {}
        assert asyncio.run(s3.head("index/a/1.0.0")) is True

    def test_absent(self, s3, client) -> None:
        client.head_object.side_effect = _client_error("404", "HeadObject")
        assert asyncio.run(s3.head("index/a/1.0.0")) is False

    def test_forbidden_is_not_absent(self, s3, client) -> None:
        client.head_object.side_effect = _client_error("403", "HeadObject")
        with pytest.raises(UpstreamError):
            asyncio.run(s3.head("index/a/1.0.0"))


def test_put_sets_content_type(s3, client) -> None:
    asyncio.run(s3.put("index/a/1.0.0", b"{}", "application/json"))
    client.put_object.assert_called_once_with(
        Bucket="crates", Key="index/a/1.0.0", Body=b"{}", ContentType="application/json"
    )


def test_delete(s3, client) -> None:
    asyncio.run(s3.delete("owner/a/alice"))
    client.delete_object.assert_called_once_with(Bucket="crates", Key="owner/a/alice")


def test_health_check_lists_buckets(s3, client) -> None:
    asyncio.run(s3.health_check())
    client.list_buckets.assert_called_once_with()


def test_health_check_failure(s3, client) -> None:
    client.list_buckets.side_effect = _client_error("InvalidAccessKeyId", "ListBuckets")
    with pytest.raises(UpstreamError):
        asyncio.run(s3.health_check())


class TestClientFactory:
    def test_default_endpoint(self) -> None:
        with patch("storage.s3.boto3.client") as factory:
            create_s3_client()
        factory.assert_called_once_with("s3")

    def test_custom_endpoint_forces_path_style(self) -> None:
        with patch("storage.s3.boto3.client") as factory:
            create_s3_client("http://localhost:9000")
        _, kwargs = factory.call_args
        assert kwargs["endpoint_url"] == "http://localhost:9000"
        assert kwargs["config"].s3 == {"addressing_style": "path"}
