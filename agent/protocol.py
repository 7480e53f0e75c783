"""HTTP client for the relay's sync protocol."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any

import httpx

from agent.errors import SyncError
from agent.models import FileRecord

logger = logging.getLogger(__name__)

SYNC_TIMEOUT = 60.0
HEALTH_TIMEOUT = 5.0


def record_to_wire(record: FileRecord) -> dict[str, Any]:
    """Encode a record as a ``FileInfo`` JSON object."""
    wire: dict[str, Any] = {
        "path": record.path,
        "hash": record.content_hash,
        "mod_time": record.mod_time,
        "size": record.size,
    }
    if record.content:
        wire["content"] = base64.b64encode(record.content).decode("ascii")
    return wire


def record_from_wire(data: dict[str, Any]) -> FileRecord:
    """Decode a ``FileInfo`` JSON object."""
    try:
        raw_content = data.get("content")
        content = base64.b64decode(raw_content, validate=True) if raw_content else None
        return FileRecord(
            path=str(data["path"]),
            content_hash=str(data.get("hash", "")),
            mod_time=int(data.get("mod_time", 0)),
            size=int(data.get("size", 0)),
            content=content,
        )
    except (KeyError, TypeError, ValueError, binascii.Error) as exc:
        raise SyncError(f"Malformed file entry in relay response: {exc}") from exc


class RelayClient:
    """Client for one relay and one tenant token.

    Every failure (connection error, timeout, non-2xx status including
    authentication, malformed body, or ``success: false``) surfaces as a
    single ``SyncError``.
    """

    def __init__(
        self,
        server_url: str,
        token: str,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.client = http_client or httpx.Client(
            base_url=self.server_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=SYNC_TIMEOUT,
        )
        if http_client is not None:
            self.client.headers["Authorization"] = f"Bearer {token}"

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self) -> RelayClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            resp = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise SyncError(f"Request to {url} failed: {exc}") from exc
        if resp.status_code != 200:
            raise SyncError(f"HTTP {resp.status_code}: {resp.text.strip()}")
        try:
            return resp.json()
        except ValueError as exc:
            raise SyncError(f"Invalid JSON from relay: {exc}") from exc

    def sync(
        self,
        machine_id: str,
        machine_name: str,
        records: list[FileRecord],
    ) -> list[FileRecord]:
        """Send a full manifest and return the records the relay wants adopted."""
        payload = {
            "machine_id": machine_id,
            "machine_name": machine_name,
            "files": [record_to_wire(r) for r in records],
        }
        body = self._request("POST", "/sync", json=payload, timeout=SYNC_TIMEOUT)
        if not isinstance(body, dict):
            raise SyncError("Invalid sync response from relay")
        if not body.get("success", False):
            raise SyncError(body.get("message") or "Relay reported sync failure")
        return [record_from_wire(item) for item in body.get("files") or []]

    def health(self) -> bool:
        """Probe ``/health``. Returns False instead of raising."""
        try:
            resp = self.client.get("/health", timeout=HEALTH_TIMEOUT)
        except httpx.HTTPError as exc:
            logger.debug("Health check against %s failed: %s", self.server_url, exc)
            return False
        return resp.status_code == 200

    def stats(self) -> dict[str, Any]:
        """Fetch the calling tenant's summary from ``/stats``."""
        body = self._request("GET", "/stats")
        if not isinstance(body, dict):
            raise SyncError("Invalid stats response from relay")
        return body
