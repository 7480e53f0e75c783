"""Tenant registry: token resolution, tenant lifecycle, and metadata persistence."""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from relay.exceptions import (
    DuplicateTenantIdError,
    DuplicateTenantTokenError,
    TenantNotFoundError,
)
from relay.filesystem.content_store import ContentStore
from relay.services.datetime_service import format_iso, parse_timestamp
from relay.services.tenant_store import TenantStats, TenantStore

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

REGISTRY_FILE = "config.json"
TENANTS_DIR = "tenants"
DEFAULT_TENANT_ID = "default"
DEFAULT_TENANT_NAME = "Default User"

TENANT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


@dataclass
class RelayStats:
    """Aggregate statistics across all tenants."""

    total_tenants: int
    total_files: int
    total_size: int
    tenants: list[TenantStats] = field(default_factory=list)


class TenantRegistry:
    """Owns the set of tenants and their persisted metadata.

    Metadata (id, name, token, timestamps) lives in ``<data_dir>/config.json``.
    File contents live under ``<data_dir>/tenants/<id>/`` and double as the
    source of truth for each tenant's index after a restart.
    """

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir
        self.registry_path = data_dir / REGISTRY_FILE
        self._by_token: dict[str, TenantStore] = {}
        self._by_id: dict[str, TenantStore] = {}
        self._lock = threading.Lock()

    def _content_store(self, tenant_id: str) -> ContentStore:
        return ContentStore(self.data_dir / TENANTS_DIR / tenant_id)

    def load(self) -> int:
        """Load tenant metadata and rebuild every tenant's file index.

        Returns the number of tenants loaded. A missing registry file means an
        empty registry.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        if not self.registry_path.exists():
            logger.info("No tenant registry at %s, starting empty", self.registry_path)
            return 0

        data = json.loads(self.registry_path.read_text(encoding="utf-8"))
        raw_tenants = data.get("tenants") or []
        if not isinstance(raw_tenants, list):
            msg = f"Malformed tenant registry {self.registry_path}: 'tenants' must be a list"
            raise ValueError(msg)

        by_token: dict[str, TenantStore] = {}
        by_id: dict[str, TenantStore] = {}
        for entry in raw_tenants:
            tenant = self._tenant_from_json(entry)
            if tenant.id in by_id or tenant.token in by_token:
                logger.warning("Skipping duplicate tenant entry %s in registry", tenant.id)
                continue
            tenant.load_index()
            by_token[tenant.token] = tenant
            by_id[tenant.id] = tenant

        with self._lock:
            self._by_token = by_token
            self._by_id = by_id
        logger.info("Loaded %d tenant(s) from %s", len(by_id), self.registry_path)
        return len(by_id)

    def _tenant_from_json(self, entry: dict[str, Any]) -> TenantStore:
        tenant_id = str(entry.get("id", ""))
        token = str(entry.get("token", ""))
        if not TENANT_ID_PATTERN.match(tenant_id) or not token:
            msg = f"Malformed tenant entry in registry: id={tenant_id!r}"
            raise ValueError(msg)
        return TenantStore(
            tenant_id,
            str(entry.get("name", tenant_id)),
            token,
            self._content_store(tenant_id),
            created_at=parse_timestamp(entry.get("created_at")),
            last_active_at=parse_timestamp(entry.get("last_active")),
        )

    def save(self) -> None:
        """Persist the full registry snapshot atomically."""
        with self._lock:
            self._save_locked()

    def _save_locked(self) -> None:
        tenants: list[dict[str, Any]] = []
        for tenant in self._by_id.values():
            tenants.append(
                {
                    "id": tenant.id,
                    "name": tenant.name,
                    "token": tenant.token,
                    "created_at": format_iso(tenant.created_at),
                    "last_active": (
                        format_iso(tenant.last_active_at)
                        if tenant.last_active_at is not None
                        else None
                    ),
                }
            )
        self.data_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = self.registry_path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps({"tenants": tenants}, indent=2), encoding="utf-8")
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self.registry_path)

    def resolve(self, token: str) -> TenantStore | None:
        """Return the tenant owning a token, or None."""
        if not token:
            return None
        with self._lock:
            return self._by_token.get(token)

    def get(self, tenant_id: str) -> TenantStore | None:
        """Return the tenant with the given id, or None."""
        with self._lock:
            return self._by_id.get(tenant_id)

    def tenants(self) -> list[TenantStore]:
        """Return all tenants in creation order."""
        with self._lock:
            return list(self._by_id.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)

    def create(self, tenant_id: str, name: str, token: str) -> TenantStore:
        """Create a tenant, its content area, and persist the registry."""
        if not TENANT_ID_PATTERN.match(tenant_id):
            msg = f"Invalid tenant ID: {tenant_id!r}"
            raise ValueError(msg)
        if not token:
            raise ValueError("Tenant token must not be empty")

        with self._lock:
            if token in self._by_token:
                raise DuplicateTenantTokenError()
            if tenant_id in self._by_id:
                raise DuplicateTenantIdError(tenant_id)

            tenant = TenantStore(
                tenant_id, name or tenant_id, token, self._content_store(tenant_id)
            )
            tenant.content.ensure()
            self._by_token[token] = tenant
            self._by_id[tenant_id] = tenant
            self._save_locked()

        logger.info("Created tenant %s (%s)", tenant_id, tenant.name)
        return tenant

    def delete(self, tenant_id: str) -> None:
        """Delete a tenant, erase its content area, and persist the registry."""
        with self._lock:
            tenant = self._by_id.pop(tenant_id, None)
            if tenant is None:
                raise TenantNotFoundError(tenant_id)
            del self._by_token[tenant.token]
            self._save_locked()

        tenant.close()
        tenant.content.erase()
        logger.info("Deleted tenant %s", tenant_id)

    def ensure_default_tenant(self, token: str) -> TenantStore | None:
        """Create the default tenant from a bootstrap token when none exist."""
        if not token or len(self) > 0:
            return None
        return self.create(DEFAULT_TENANT_ID, DEFAULT_TENANT_NAME, token)

    def stats(self) -> RelayStats:
        """Aggregate statistics across all tenants."""
        per_tenant = [tenant.stats() for tenant in self.tenants()]
        return RelayStats(
            total_tenants=len(per_tenant),
            total_files=sum(s.file_count for s in per_tenant),
            total_size=sum(s.total_size for s in per_tenant),
            tenants=per_tenant,
        )
