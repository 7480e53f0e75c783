"""Agent configuration record and its JSON persistence."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import platform
import socket
import time
from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

from agent.path_mapper import PathMapper

logger = logging.getLogger(__name__)

CONFIG_FILE = "sync-config.json"
DEFAULT_SYNC_INTERVAL = 30
_LOCALHOST_HOSTS = {"localhost", "127.0.0.1", "::1"}


def default_base_dir() -> Path:
    """Directory whose subtree is replicated (``~/.claude``)."""
    return Path.home() / ".claude"


def default_config_path() -> Path:
    """Location of the agent's configuration file."""
    return default_base_dir() / CONFIG_FILE


def generate_machine_id() -> str:
    """Derive a short, stable-once-saved identifier for this machine."""
    data = f"{socket.gethostname()}-{platform.system()}-{time.time_ns()}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]


class AgentConfig(BaseModel):
    """Everything the sync client needs from its configuration collaborator."""

    server_url: str = ""
    token: str = ""
    machine_id: str = Field(default_factory=generate_machine_id)
    machine_name: str = Field(default_factory=socket.gethostname)
    sync_interval: int = Field(default=DEFAULT_SYNC_INTERVAL, ge=1)
    # canonical prefix -> local prefix, in declaration order
    path_mappings: dict[str, str] = Field(default_factory=dict)
    anchored_mappings: bool = False
    paused: bool = False
    base_dir: Path = Field(default_factory=default_base_dir)
    watch_subdir: str = "projects"

    @field_validator("server_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("machine_id")
    @classmethod
    def fill_machine_id(cls, value: str) -> str:
        return value or generate_machine_id()

    @field_validator("machine_name")
    @classmethod
    def fill_machine_name(cls, value: str) -> str:
        return value or socket.gethostname()

    @field_validator("sync_interval", mode="before")
    @classmethod
    def unset_interval_as_default(cls, value: object) -> object:
        return DEFAULT_SYNC_INTERVAL if value in (None, 0) else value

    @field_validator("path_mappings", mode="before")
    @classmethod
    def null_mappings_as_empty(cls, value: object) -> object:
        return {} if value is None else value

    @field_validator("path_mappings")
    @classmethod
    def non_empty_prefixes(cls, value: dict[str, str]) -> dict[str, str]:
        for canonical, local in value.items():
            if not canonical or not local:
                raise ValueError("Path mapping prefixes must be non-empty")
        return value

    def is_configured(self) -> bool:
        """Whether a server URL and token are both present."""
        return bool(self.server_url) and bool(self.token)

    @property
    def watch_dir(self) -> Path:
        return self.base_dir / self.watch_subdir

    def mapper(self) -> PathMapper:
        """Build the path mapper for this configuration."""
        return PathMapper(self.path_mappings, anchored=self.anchored_mappings)


def validate_server_url(server_url: str, allow_insecure_http: bool = False) -> str:
    """Validate server URL and enforce HTTPS for non-localhost hosts by default."""
    normalized = server_url.strip().rstrip("/")
    parsed = urlparse(normalized)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError("Server URL must include scheme and host (e.g. https://example.com)")

    hostname = parsed.hostname
    if parsed.scheme == "http" and not allow_insecure_http and hostname not in _LOCALHOST_HOSTS:
        raise ValueError(
            "HTTPS is required for non-localhost servers. "
            "Use --allow-insecure-http only on trusted networks."
        )

    return normalized


def load_config(path: Path | None = None) -> AgentConfig:
    """Load the agent config, returning defaults when the file does not exist.

    A freshly generated machine id is not persisted here; callers that want it
    to stick should call :func:`save_config`.
    """
    config_path = path or default_config_path()
    if not config_path.exists():
        return AgentConfig()
    data = json.loads(config_path.read_text(encoding="utf-8"))
    config = AgentConfig.model_validate(data)
    if not data.get("machine_id"):
        logger.info("No machine id in %s, generated %s", config_path, config.machine_id)
    return config


def save_config(config: AgentConfig, path: Path | None = None) -> None:
    """Write the agent config with owner-only permissions."""
    config_path = path or default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = config_path.with_suffix(".json.tmp")
    tmp_path.write_text(config.model_dump_json(indent=2), encoding="utf-8")
    os.chmod(tmp_path, 0o600)
    os.replace(tmp_path, config_path)
