"""Local scanner: walks the watched subtree and builds manifest records."""

from __future__ import annotations

import logging
import os
import stat
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from agent.errors import ScanError
from agent.models import FileRecord, hash_bytes
from agent.path_mapper import PathMapper

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    """Records for every file seen in one scan."""

    records: list[FileRecord] = field(default_factory=list)
    total_size: int = 0

    @property
    def changed(self) -> list[FileRecord]:
        return [r for r in self.records if r.content is not None]


class LocalScanner:
    """Scan ``base_dir/watch_subdir`` and remember the last hash per canonical path.

    A record carries ``content`` only when its hash differs from the remembered
    one. The remembered hash is updated as soon as a change is seen, so a cycle
    that fails after scanning will not resend the same bytes on retry.
    """

    def __init__(
        self,
        base_dir: Path,
        watch_subdir: str = "projects",
        mapper: PathMapper | None = None,
    ) -> None:
        self.base_dir = base_dir
        self.watch_subdir = watch_subdir
        self.mapper = mapper or PathMapper()
        self._hashes: dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self.base_dir / self.watch_subdir

    def known_hashes(self) -> dict[str, str]:
        """Snapshot of the remembered hash per canonical path."""
        with self._lock:
            return dict(self._hashes)

    def remember(self, canonical_path: str, content_hash: str) -> None:
        """Record a hash for a file written locally from relay content."""
        with self._lock:
            self._hashes[canonical_path] = content_hash

    def forget(self) -> None:
        """Drop all remembered hashes so the next scan sends every file."""
        with self._lock:
            self._hashes.clear()

    def _iter_files(self) -> Iterator[Path]:
        root = self.root
        try:
            with os.scandir(root):
                pass
        except FileNotFoundError:
            logger.debug("Watched directory %s does not exist yet", root)
            return
        except OSError as exc:
            raise ScanError(f"Cannot read watched directory {root}: {exc}") from exc

        def on_error(exc: OSError) -> None:
            logger.debug("Skipping unreadable directory %s: %s", exc.filename, exc)

        for dirpath, _dirs, files in os.walk(root, onerror=on_error):
            for filename in files:
                yield Path(dirpath) / filename

    def scan(self) -> ScanResult:
        """Walk the subtree, hash every regular file, and build records.

        Unreadable files are skipped and a missing subtree root scans as empty.
        Raises ``ScanError`` if the root exists but cannot be read.
        """
        result = ScanResult()
        for full in self._iter_files():
            try:
                st = full.lstat()
                if not stat.S_ISREG(st.st_mode):
                    continue
                data = full.read_bytes()
            except OSError as exc:
                logger.debug("Skipping unreadable file %s: %s", full, exc)
                continue

            local_rel = full.relative_to(self.base_dir).as_posix()
            canonical = self.mapper.to_canonical(local_rel)
            content_hash = hash_bytes(data)

            record = FileRecord(
                path=canonical,
                content_hash=content_hash,
                mod_time=int(st.st_mtime),
                size=st.st_size,
            )
            with self._lock:
                changed = self._hashes.get(canonical) != content_hash
                if changed:
                    self._hashes[canonical] = content_hash
            if changed:
                record.content = self.mapper.content_to_canonical(data)

            result.records.append(record)
            result.total_size += st.st_size

        logger.debug(
            "Scanned %d file(s) under %s, %d changed",
            len(result.records),
            self.root,
            len(result.changed),
        )
        return result
