"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Relay server settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False

    # Storage
    data_dir: Path = Path("./relaysync-data")

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)

    # Auth
    admin_token: str = ""
    bootstrap_token: str = ""

    # Request limits
    max_request_bytes: int = Field(default=256 * 1024 * 1024, ge=1024)

    def validate_runtime_security(self) -> None:
        """Validate security-critical production settings."""
        if self.debug:
            return

        violations: list[str] = []
        if self.admin_token and len(self.admin_token) < 16:
            violations.append("ADMIN_TOKEN must be at least 16 characters")
        if self.bootstrap_token and self.bootstrap_token == self.admin_token:
            violations.append("BOOTSTRAP_TOKEN must differ from ADMIN_TOKEN")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Insecure production configuration: {joined}")
