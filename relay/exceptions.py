"""Application-level exception types.

Convention:
- ``InternalServerError``: for errors whose details must never reach clients.
  The global handler logs the full message at ERROR and returns a generic
  "Internal server error" (500) to the client.
- ``TenantError`` subclasses: tenant administration failures. Each condition
  has its own class so callers can tell a duplicate id from a duplicate token
  from a missing tenant without parsing messages.
- ``ValueError``: for validation errors that are safe to forward to clients.
  The global ``ValueError`` handler returns ``str(exc)`` as the 422 detail.
"""

from __future__ import annotations


class InternalServerError(Exception):
    """Raised for internal errors whose details must not be exposed to clients.

    The global exception handler in ``relay/main.py`` catches this, logs
    the full message server-side, and returns HTTP 500 with a generic
    ``"Internal server error"`` detail.
    """


class TenantError(Exception):
    """Base class for tenant administration failures."""


class DuplicateTenantIdError(TenantError):
    """A tenant with the requested id already exists."""

    def __init__(self, tenant_id: str) -> None:
        super().__init__(f"Tenant ID already exists: {tenant_id}")
        self.tenant_id = tenant_id


class DuplicateTenantTokenError(TenantError):
    """The requested token is already assigned to another tenant."""

    def __init__(self) -> None:
        super().__init__("Token already exists")


class TenantNotFoundError(TenantError):
    """No tenant with the requested id exists."""

    def __init__(self, tenant_id: str) -> None:
        super().__init__(f"Tenant not found: {tenant_id}")
        self.tenant_id = tenant_id
