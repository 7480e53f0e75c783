"""Sync protocol request/response schemas."""

from __future__ import annotations

import base64
import binascii
from datetime import datetime

from pydantic import BaseModel, Field, field_serializer, field_validator


class FileInfo(BaseModel):
    """One file in a manifest or in the relay's reply.

    ``content`` travels as standard base64 and is omitted when empty.
    """

    path: str = Field(min_length=1, max_length=4096)
    hash: str = Field(max_length=128)
    mod_time: int
    size: int = Field(default=0, ge=0)
    content: bytes | None = None

    @field_validator("content", mode="before")
    @classmethod
    def decode_content(cls, value: object) -> object:
        if value is None or value in ("", b""):
            return None
        if isinstance(value, str):
            try:
                return base64.b64decode(value, validate=True)
            except binascii.Error as exc:
                raise ValueError("content must be base64-encoded") from exc
        return value

    @field_serializer("content")
    def encode_content(self, value: bytes | None) -> str | None:
        if not value:
            return None
        return base64.b64encode(value).decode("ascii")


class SyncRequest(BaseModel):
    """Full manifest submitted by one machine."""

    machine_id: str = Field(min_length=1, max_length=256)
    machine_name: str = Field(default="", max_length=256)
    files: list[FileInfo] = Field(default_factory=list)

    @field_validator("files", mode="before")
    @classmethod
    def null_files_as_empty(cls, value: object) -> object:
        # Clients with nothing to report may send null instead of [].
        return [] if value is None else value


class SyncResponse(BaseModel):
    """Files the relay wants the client to adopt."""

    success: bool
    message: str
    files: list[FileInfo] = Field(default_factory=list)


class ClientInfo(BaseModel):
    """Most recent request seen from one machine."""

    machine_id: str
    machine_name: str
    last_seen: datetime
    file_count: int
    ip: str


class TenantStatsResponse(BaseModel):
    """Per-tenant file, size, and client summary."""

    id: str
    name: str
    file_count: int
    total_size: int
    client_count: int
    clients: list[ClientInfo] = Field(default_factory=list)
    last_active: datetime | None = None
