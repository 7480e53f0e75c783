"""Tests for the relay HTTP client."""

from __future__ import annotations

import base64
import json
from typing import Any

import httpx
import pytest

from agent.errors import SyncError
from agent.models import FileRecord
from agent.protocol import RelayClient, record_from_wire, record_to_wire


def _client(handler: Any) -> RelayClient:
    http_client = httpx.Client(
        transport=httpx.MockTransport(handler), base_url="https://relay.example"
    )
    return RelayClient("https://relay.example", "tok-1", http_client=http_client)


class TestWireFormat:
    def test_content_is_base64_and_omitted_when_empty(self) -> None:
        with_content = record_to_wire(FileRecord("a.txt", "h", 100, 5, b"hello"))
        assert with_content["content"] == base64.b64encode(b"hello").decode()
        assert with_content["hash"] == "h"

        without = record_to_wire(FileRecord("a.txt", "h", 100, 5))
        assert "content" not in without

    def test_from_wire_decodes(self) -> None:
        record = record_from_wire(
            {"path": "a.txt", "hash": "h", "mod_time": 100, "size": 5, "content": "aGVsbG8="}
        )
        assert record == FileRecord("a.txt", "h", 100, 5, b"hello")

    def test_from_wire_missing_content(self) -> None:
        record = record_from_wire({"path": "a.txt", "hash": "h", "mod_time": 100})
        assert record.content is None
        assert record.size == 0

    @pytest.mark.parametrize(
        "data",
        [
            {"hash": "h", "mod_time": 1},
            {"path": "a", "hash": "h", "mod_time": "soon"},
            {"path": "a", "hash": "h", "mod_time": 1, "content": "%%%"},
        ],
    )
    def test_from_wire_malformed(self, data: dict[str, Any]) -> None:
        with pytest.raises(SyncError, match="Malformed"):
            record_from_wire(data)


class TestSync:
    def test_sends_manifest_with_bearer_token(self) -> None:
        seen: dict[str, Any] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "message": "OK",
                    "files": [
                        {
                            "path": "b.txt",
                            "hash": "h2",
                            "mod_time": 200,
                            "size": 2,
                            "content": "aGk=",
                        }
                    ],
                },
            )

        with _client(handler) as client:
            returned = client.sync("m1", "host", [FileRecord("a.txt", "h", 100, 5, b"hello")])

        assert seen["auth"] == "Bearer tok-1"
        assert seen["path"] == "/sync"
        assert seen["body"]["machine_id"] == "m1"
        assert seen["body"]["machine_name"] == "host"
        assert seen["body"]["files"][0]["path"] == "a.txt"
        assert returned == [FileRecord("b.txt", "h2", 200, 2, b"hi")]

    def test_missing_files_field_is_empty(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True, "message": "OK"})

        with _client(handler) as client:
            assert client.sync("m1", "host", []) == []

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(401, json={"detail": "Invalid token"}),
            httpx.Response(500, text="boom"),
            httpx.Response(200, text="not json"),
            httpx.Response(200, json=[1, 2]),
            httpx.Response(200, json={"success": False, "message": "nope"}),
        ],
    )
    def test_failures_become_sync_error(self, response: httpx.Response) -> None:
        with _client(lambda request: response) as client, pytest.raises(SyncError):
            client.sync("m1", "host", [])

    def test_connection_error_becomes_sync_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with _client(handler) as client, pytest.raises(SyncError, match="failed"):
            client.sync("m1", "host", [])

    def test_relay_failure_message_is_surfaced(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False, "message": "disk full"})

        with _client(handler) as client, pytest.raises(SyncError, match="disk full"):
            client.sync("m1", "host", [])


class TestHealthAndStats:
    def test_health_ok(self) -> None:
        with _client(lambda request: httpx.Response(200, json={"status": "ok"})) as client:
            assert client.health() is True

    def test_health_non_200(self) -> None:
        with _client(lambda request: httpx.Response(503)) as client:
            assert client.health() is False

    def test_health_connection_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timeout", request=request)

        with _client(handler) as client:
            assert client.health() is False

    def test_stats(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/stats"
            return httpx.Response(200, json={"id": "default", "file_count": 3})

        with _client(handler) as client:
            assert client.stats()["file_count"] == 3
