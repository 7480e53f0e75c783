"""Health check endpoint."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from relay import __version__
from relay.api.deps import get_registry
from relay.services.datetime_service import now_utc
from relay.services.tenant_registry import TenantRegistry

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    time: datetime
    tenant_count: int


@router.get("/health", response_model=HealthResponse)
async def health_check(
    registry: Annotated[TenantRegistry, Depends(get_registry)],
) -> HealthResponse:
    """Health check endpoint for monitoring and connection probes. No auth."""
    return HealthResponse(
        status="ok",
        version=__version__,
        time=now_utc(),
        tenant_count=len(registry),
    )
