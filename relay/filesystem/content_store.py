"""Per-tenant raw file storage on the local filesystem."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

_TMP_SUFFIX = ".relaysync-tmp"


class InvalidPathError(ValueError):
    """Raised when a canonical path would escape the tenant's content area."""

    def __init__(self, file_path: str) -> None:
        super().__init__(f"Invalid file path: {file_path}")
        self.file_path = file_path


@dataclass
class StoredFile:
    """A file found while walking the content area."""

    path: str
    data: bytes
    mod_time: int
    size: int


def validate_canonical_path(file_path: str) -> str:
    """Check that a canonical path is relative, '/'-separated and traversal-free."""
    if not file_path or "\\" in file_path or "\x00" in file_path:
        raise InvalidPathError(file_path)
    pure = PurePosixPath(file_path)
    if pure.is_absolute() or any(part in ("..", ".") for part in file_path.split("/")):
        raise InvalidPathError(file_path)
    if any(part == "" for part in file_path.split("/")):
        raise InvalidPathError(file_path)
    return file_path


class ContentStore:
    """Stores raw file bytes in a directory tree that mirrors canonical paths."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def ensure(self) -> None:
        """Create the content area if it does not exist."""
        self.root.mkdir(parents=True, exist_ok=True)

    def resolve(self, file_path: str) -> Path:
        """Resolve a canonical path inside the content area."""
        validate_canonical_path(file_path)
        full_path = (self.root / file_path).resolve()
        if not full_path.is_relative_to(self.root.resolve()):
            raise InvalidPathError(file_path)
        return full_path

    def write(self, file_path: str, data: bytes, mod_time: int) -> None:
        """Write bytes and stamp the file with the record's modification time."""
        full_path = self.resolve(file_path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = full_path.with_name(f".{full_path.name}{_TMP_SUFFIX}")
        tmp_path.write_bytes(data)
        os.utime(tmp_path, (mod_time, mod_time))
        os.replace(tmp_path, full_path)

    def read(self, file_path: str) -> bytes:
        """Read the stored bytes for a canonical path."""
        return self.resolve(file_path).read_bytes()

    def walk(self) -> Iterator[StoredFile]:
        """Yield every stored file. Unreadable entries are skipped."""
        if not self.root.is_dir():
            return
        for root, _dirs, files in os.walk(self.root):
            for filename in files:
                if filename.endswith(_TMP_SUFFIX):
                    continue
                full = Path(root) / filename
                try:
                    stat = full.stat()
                    data = full.read_bytes()
                except OSError as exc:
                    logger.warning("Skipping unreadable stored file %s: %s", full, exc)
                    continue
                yield StoredFile(
                    path=full.relative_to(self.root).as_posix(),
                    data=data,
                    mod_time=int(stat.st_mtime),
                    size=stat.st_size,
                )

    def erase(self) -> None:
        """Remove the whole content area."""
        if self.root.exists():
            shutil.rmtree(self.root)
            logger.info("Erased content area %s", self.root)
