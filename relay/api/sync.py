"""Sync API endpoints: manifest exchange and per-tenant stats."""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from relay.api.deps import client_ip, require_tenant
from relay.exceptions import TenantNotFoundError
from relay.filesystem.content_store import InvalidPathError
from relay.schemas.sync import (
    ClientInfo,
    FileInfo,
    SyncRequest,
    SyncResponse,
    TenantStatsResponse,
)
from relay.services.tenant_store import FileRecord, TenantStats, TenantStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sync"])


def _to_record(info: FileInfo) -> FileRecord:
    return FileRecord(
        path=info.path,
        content_hash=info.hash,
        mod_time=info.mod_time,
        size=info.size,
        content=info.content,
    )


def _to_info(record: FileRecord) -> FileInfo:
    return FileInfo(
        path=record.path,
        hash=record.content_hash,
        mod_time=record.mod_time,
        size=record.size,
        content=record.content,
    )


def tenant_stats_response(stats: TenantStats) -> TenantStatsResponse:
    """Convert a tenant stats snapshot into its wire form."""
    return TenantStatsResponse(
        id=stats.id,
        name=stats.name,
        file_count=stats.file_count,
        total_size=stats.total_size,
        client_count=stats.client_count,
        clients=[
            ClientInfo(
                machine_id=c.machine_id,
                machine_name=c.machine_name,
                last_seen=c.last_seen_at,
                file_count=c.file_count,
                ip=c.source_ip,
            )
            for c in stats.clients
        ],
        last_active=stats.last_active_at,
    )


@router.post("/sync", response_model=SyncResponse, response_model_exclude_none=True)
async def sync(
    body: SyncRequest,
    request: Request,
    tenant: Annotated[TenantStore, Depends(require_tenant)],
) -> SyncResponse:
    """Exchange a manifest and return the files the client should adopt."""
    source_ip = client_ip(request)
    logger.info(
        "[%s] sync request from %s (%s) @ %s, %d file(s)",
        tenant.name,
        body.machine_name,
        body.machine_id,
        source_ip,
        len(body.files),
    )

    records = [_to_record(info) for info in body.files]
    try:
        result = await asyncio.to_thread(
            tenant.reconcile,
            records,
            machine_id=body.machine_id,
            machine_name=body.machine_name,
            source_ip=source_ip,
        )
    except InvalidPathError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except TenantNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    return SyncResponse(
        success=True,
        message="OK",
        files=[_to_info(record) for record in result.to_return],
    )


@router.get("/stats", response_model=TenantStatsResponse)
async def tenant_stats(
    tenant: Annotated[TenantStore, Depends(require_tenant)],
) -> TenantStatsResponse:
    """File, size, and client summary for the calling tenant."""
    return tenant_stats_response(tenant.stats())
