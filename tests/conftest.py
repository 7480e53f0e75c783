"""Shared test fixtures for relaysync."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient

from relay.config import Settings
from relay.main import create_app, init_registry
from relay.services.tenant_registry import TenantRegistry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

TEST_ADMIN_TOKEN = "test-admin-token-0123456789"
TEST_TENANT_TOKEN = "tenant-token-alice"


@asynccontextmanager
async def create_test_client(settings: Settings) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with an initialized tenant registry.

    Performs the registry part of the application lifespan by hand because
    ASGITransport does not trigger it.
    """
    app = create_app(settings)
    app.state.registry = init_registry(settings)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Empty relay data directory."""
    path = tmp_path / "relay-data"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(data_dir: Path) -> Settings:
    """Relay settings with an admin token and one bootstrap tenant."""
    return Settings(
        debug=True,
        data_dir=data_dir,
        admin_token=TEST_ADMIN_TOKEN,
        bootstrap_token=TEST_TENANT_TOKEN,
    )


@pytest.fixture
def registry(data_dir: Path) -> TenantRegistry:
    """Loaded, empty tenant registry."""
    reg = TenantRegistry(data_dir)
    reg.load()
    return reg
