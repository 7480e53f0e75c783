"""Tenant store: per-tenant file index, client sessions, and reconciliation."""

from __future__ import annotations

import hashlib
import logging
import threading
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from relay.exceptions import TenantNotFoundError
from relay.filesystem.content_store import validate_canonical_path
from relay.services.datetime_service import now_utc

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from relay.filesystem.content_store import ContentStore

logger = logging.getLogger(__name__)


@dataclass
class FileRecord:
    """A file's state as known to the relay."""

    path: str
    content_hash: str
    mod_time: int
    size: int
    content: bytes | None = None


@dataclass
class ClientSession:
    """The most recent request seen from one machine."""

    machine_id: str
    machine_name: str
    last_seen_at: datetime
    source_ip: str
    file_count: int


@dataclass
class ReconcileResult:
    """Outcome of reconciling one submitted manifest."""

    accepted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    to_return: list[FileRecord] = field(default_factory=list)


@dataclass
class TenantStats:
    """Point-in-time summary of a tenant."""

    id: str
    name: str
    file_count: int
    total_size: int
    client_count: int
    clients: list[ClientSession]
    last_active_at: datetime | None


def hash_bytes(data: bytes) -> str:
    """Compute SHA-256 hash of raw bytes."""
    return hashlib.sha256(data).hexdigest()


class TenantStore:
    """Owns one tenant's file index and client sessions.

    All reads and mutations of ``files`` and ``clients`` go through this class
    and are serialized by a single per-tenant lock. Reconciliation holds the
    lock for its whole duration, so concurrent requests from machines of the
    same tenant run one after another. Different tenants never contend.
    """

    def __init__(
        self,
        tenant_id: str,
        name: str,
        token: str,
        content: ContentStore,
        *,
        created_at: datetime | None = None,
        last_active_at: datetime | None = None,
    ) -> None:
        self.id = tenant_id
        self.name = name
        self.token = token
        self.created_at = created_at or now_utc()
        self.last_active_at = last_active_at
        self._content = content
        self._files: dict[str, FileRecord] = {}
        self._clients: dict[str, ClientSession] = {}
        self._closed = False
        self._lock = threading.Lock()

    @property
    def content(self) -> ContentStore:
        return self._content

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def close(self) -> None:
        """Refuse further reconciliation. Waits for an in-flight one to finish."""
        with self._lock:
            self._closed = True

    def load_index(self) -> int:
        """Rebuild the in-memory index from the persisted content area.

        Hashes are recomputed from the stored bytes; modification time and size
        come from the filesystem. Returns the number of indexed files.
        """
        files: dict[str, FileRecord] = {}
        for stored in self._content.walk():
            files[stored.path] = FileRecord(
                path=stored.path,
                content_hash=hash_bytes(stored.data),
                mod_time=stored.mod_time,
                size=stored.size,
            )
        with self._lock:
            self._files = files
        logger.info("Loaded %d file(s) for tenant %s", len(files), self.id)
        return len(files)

    def touch(self) -> None:
        """Record activity on any authenticated request."""
        with self._lock:
            self.last_active_at = now_utc()

    def get(self, file_path: str) -> FileRecord | None:
        """Return a copy of the indexed record for a path, without content."""
        with self._lock:
            record = self._files.get(file_path)
            return replace(record) if record is not None else None

    def reconcile(
        self,
        manifest: Iterable[FileRecord],
        *,
        machine_id: str,
        machine_name: str,
        source_ip: str,
    ) -> ReconcileResult:
        """Reconcile a submitted manifest against the stored index.

        - Submitted content is accepted when the path is unknown or the
          submitted ``mod_time`` is strictly newer than the stored one.
        - A stored record is returned when its hash differs from the submitted
          one and its ``mod_time`` is strictly newer.
        - Every stored path absent from the manifest is returned.
        - Equal ``mod_time`` with differing hashes keeps the stored record and
          returns nothing.

        A record whose content cannot be stored is logged and skipped; the
        rest of the batch is still reconciled. Raises ``TenantNotFoundError``
        once the tenant has been closed.
        """
        records = list(manifest)
        for record in records:
            validate_canonical_path(record.path)

        result = ReconcileResult()
        with self._lock:
            if self._closed:
                raise TenantNotFoundError(self.id)
            self.last_active_at = now_utc()
            self._clients[machine_id] = ClientSession(
                machine_id=machine_id,
                machine_name=machine_name,
                last_seen_at=self.last_active_at,
                source_ip=source_ip,
                file_count=len(records),
            )

            queued: set[str] = set()
            for record in records:
                existing = self._files.get(record.path)

                if record.content and (existing is None or record.mod_time > existing.mod_time):
                    try:
                        self._content.write(record.path, record.content, record.mod_time)
                    except OSError as exc:
                        logger.warning(
                            "Tenant %s: cannot store %s: %s", self.id, record.path, exc
                        )
                        result.failed.append(record.path)
                    else:
                        self._files[record.path] = FileRecord(
                            path=record.path,
                            content_hash=record.content_hash,
                            mod_time=record.mod_time,
                            size=len(record.content),
                        )
                        result.accepted.append(record.path)

                if (
                    existing is not None
                    and existing.content_hash != record.content_hash
                    and existing.mod_time > record.mod_time
                    and record.path not in queued
                ):
                    outgoing = self._load_for_return(existing)
                    if outgoing is not None:
                        result.to_return.append(outgoing)
                        queued.add(record.path)

            submitted = {record.path for record in records}
            for path, stored in self._files.items():
                if path in submitted:
                    continue
                outgoing = self._load_for_return(stored)
                if outgoing is not None:
                    result.to_return.append(outgoing)

        if result.accepted:
            logger.info(
                "Tenant %s: accepted %d file(s) from %s",
                self.id,
                len(result.accepted),
                machine_name,
            )
        if result.to_return:
            logger.info(
                "Tenant %s: sending %d file(s) to %s",
                self.id,
                len(result.to_return),
                machine_name,
            )
        return result

    def _load_for_return(self, stored: FileRecord) -> FileRecord | None:
        try:
            data = self._content.read(stored.path)
        except OSError as exc:
            logger.warning(
                "Tenant %s: cannot read stored file %s: %s", self.id, stored.path, exc
            )
            return None
        return replace(stored, size=len(data), content=data)

    def stats(self) -> TenantStats:
        """Return a snapshot of the tenant's size and connected clients."""
        with self._lock:
            return TenantStats(
                id=self.id,
                name=self.name,
                file_count=len(self._files),
                total_size=sum(f.size for f in self._files.values()),
                client_count=len(self._clients),
                clients=[replace(c) for c in self._clients.values()],
                last_active_at=self.last_active_at,
            )
