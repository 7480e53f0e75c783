"""Tenant administration request/response schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from relay.schemas.sync import TenantStatsResponse


class TenantCreate(BaseModel):
    """Request to create a new tenant."""

    id: str = Field(min_length=1, max_length=64, pattern=r"^[A-Za-z0-9][A-Za-z0-9_-]*$")
    name: str = Field(default="", max_length=200)
    token: str = Field(min_length=8, max_length=512)


class TenantRef(BaseModel):
    """Identity of a tenant, without its credential."""

    id: str
    name: str


class TenantCreatedResponse(BaseModel):
    """Response after creating a tenant."""

    success: bool
    tenant: TenantRef


class TenantSummary(BaseModel):
    """Tenant row in the admin listing."""

    id: str
    name: str
    file_count: int
    total_size: int
    client_count: int
    last_active: datetime | None = None


class SuccessResponse(BaseModel):
    """Generic acknowledgement."""

    success: bool


class AdminStatsResponse(BaseModel):
    """Aggregate statistics across all tenants."""

    total_tenants: int
    total_files: int
    total_size: int
    tenants: list[TenantStatsResponse] = Field(default_factory=list)
