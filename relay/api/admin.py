"""Tenant administration API endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from relay.api.deps import get_registry, require_admin
from relay.api.sync import tenant_stats_response
from relay.exceptions import (
    DuplicateTenantIdError,
    DuplicateTenantTokenError,
    InternalServerError,
    TenantNotFoundError,
)
from relay.schemas.admin import (
    AdminStatsResponse,
    SuccessResponse,
    TenantCreate,
    TenantCreatedResponse,
    TenantRef,
    TenantSummary,
)
from relay.services.tenant_registry import TenantRegistry

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/tenants", response_model=list[TenantSummary])
async def list_tenants(
    registry: Annotated[TenantRegistry, Depends(get_registry)],
) -> list[TenantSummary]:
    """List all tenants without their credentials."""
    summaries: list[TenantSummary] = []
    for tenant in registry.tenants():
        stats = tenant.stats()
        summaries.append(
            TenantSummary(
                id=stats.id,
                name=stats.name,
                file_count=stats.file_count,
                total_size=stats.total_size,
                client_count=stats.client_count,
                last_active=stats.last_active_at,
            )
        )
    return summaries


@router.post("/tenants", response_model=TenantCreatedResponse, status_code=201)
async def create_tenant(
    body: TenantCreate,
    registry: Annotated[TenantRegistry, Depends(get_registry)],
) -> TenantCreatedResponse:
    """Create a tenant."""
    try:
        tenant = registry.create(body.id, body.name, body.token)
    except (DuplicateTenantIdError, DuplicateTenantTokenError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except OSError as exc:
        raise InternalServerError(f"Failed to create tenant {body.id}: {exc}") from exc
    return TenantCreatedResponse(success=True, tenant=TenantRef(id=tenant.id, name=tenant.name))


@router.delete("/tenants", response_model=SuccessResponse)
async def delete_tenant(
    registry: Annotated[TenantRegistry, Depends(get_registry)],
    tenant_id: Annotated[str, Query(alias="id", min_length=1)],
) -> SuccessResponse:
    """Delete a tenant and erase its stored files."""
    try:
        registry.delete(tenant_id)
    except TenantNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except OSError as exc:
        raise InternalServerError(f"Failed to delete tenant {tenant_id}: {exc}") from exc
    return SuccessResponse(success=True)


@router.get("/stats", response_model=AdminStatsResponse)
async def relay_stats(
    registry: Annotated[TenantRegistry, Depends(get_registry)],
) -> AdminStatsResponse:
    """Aggregate statistics across all tenants."""
    stats = registry.stats()
    return AdminStatsResponse(
        total_tenants=stats.total_tenants,
        total_files=stats.total_files,
        total_size=stats.total_size,
        tenants=[tenant_stats_response(t) for t in stats.tenants],
    )
