"""Shared API dependencies: settings, registry, tenant and admin auth."""

from __future__ import annotations

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from relay.config import Settings
from relay.services.tenant_registry import TenantRegistry
from relay.services.tenant_store import TenantStore

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_registry(request: Request) -> TenantRegistry:
    """Get the tenant registry from app state."""
    registry: TenantRegistry = request.app.state.registry
    return registry


def client_ip(request: Request) -> str:
    """Best-effort source address, honouring X-Forwarded-For from a reverse proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


async def require_tenant(
    registry: Annotated[TenantRegistry, Depends(get_registry)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> TenantStore:
    """Resolve the bearer token to a tenant. Raises 401 if missing or unknown."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    tenant = registry.resolve(credentials.credentials)
    if tenant is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    tenant.touch()
    return tenant


async def require_admin(
    settings: Annotated[Settings, Depends(get_settings)],
    admin_token: Annotated[str | None, Query()] = None,
) -> None:
    """Require the relay's admin credential, passed as the ``admin_token`` query parameter.

    Tenant tokens never grant admin access. Raises 403 when no admin token is
    configured and 401 when the supplied one is missing or wrong.
    """
    if not settings.admin_token:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API disabled",
        )
    if not admin_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin token required",
        )
    if not secrets.compare_digest(admin_token.encode(), settings.admin_token.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )
