"""Sync client: runs scan → exchange → apply cycles against the relay."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from agent.errors import ConfigurationError, SyncError
from agent.models import FileRecord, SyncState, SyncStats, hash_bytes
from agent.protocol import RelayClient
from agent.scanner import LocalScanner

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from agent.config import AgentConfig

logger = logging.getLogger(__name__)


class StatusObserver(Protocol):
    """Receives a stats snapshot on every state transition."""

    def status_changed(self, state: SyncState, stats: SyncStats) -> None: ...


def _default_relay(config: AgentConfig) -> RelayClient:
    return RelayClient(config.server_url, config.token)


def _is_safe_local_path(base_dir: Path, file_path: str, watch_dir: Path) -> Path | None:
    """Resolve a relay-provided path, returning None unless it lands under watch_dir."""
    local_path = (base_dir / file_path).resolve()
    root = watch_dir.resolve()
    if local_path == root or not local_path.is_relative_to(root):
        return None
    return local_path


class SyncClient:
    """Orchestrates periodic sync cycles for one machine.

    The timer loop runs in a background thread and never overlaps with itself;
    ``sync_now()`` runs in the caller's thread and is not serialized against
    the timer. Stop requests are observed only between cycles.
    """

    def __init__(
        self,
        config: AgentConfig,
        *,
        relay_factory: Callable[[AgentConfig], RelayClient] | None = None,
    ) -> None:
        self._config = config
        self._relay_factory = relay_factory or _default_relay
        self._relay: RelayClient | None = None
        self.scanner = LocalScanner(
            config.base_dir, config.watch_subdir, config.mapper()
        )
        self._state = SyncState.OFFLINE
        self._stats = SyncStats()
        self._observers: list[StatusObserver] = []
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # ── Status ───────────────────────────────────────

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def state(self) -> SyncState:
        with self._lock:
            return self._state

    @property
    def stats(self) -> SyncStats:
        with self._lock:
            return replace(self._stats)

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def subscribe(self, observer: StatusObserver) -> None:
        """Register an observer for state transitions."""
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

    def unsubscribe(self, observer: StatusObserver) -> None:
        """Remove a previously registered observer."""
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def _set_state(self, state: SyncState) -> None:
        with self._lock:
            self._state = state
            snapshot = replace(self._stats)
            observers = list(self._observers)
        for observer in observers:
            try:
                observer.status_changed(state, snapshot)
            except Exception:
                logger.exception("Status observer %r failed", observer)

    # ── Configuration ────────────────────────────────

    def update_config(self, config: AgentConfig) -> None:
        """Swap in a new configuration. Takes effect from the next cycle."""
        with self._lock:
            self._config = config
            old_relay, self._relay = self._relay, None
        self.scanner.base_dir = config.base_dir
        self.scanner.watch_subdir = config.watch_subdir
        self.scanner.mapper = config.mapper()
        if old_relay is not None:
            old_relay.close()
        logger.info("Configuration updated (server=%s)", config.server_url or "<none>")

    def _relay_client(self) -> RelayClient:
        with self._lock:
            if self._relay is None:
                self._relay = self._relay_factory(self._config)
            return self._relay

    def check_connection(self) -> bool:
        """Probe the relay's health endpoint."""
        if not self._config.server_url:
            return False
        return self._relay_client().health()

    def relay_stats(self) -> dict[str, Any]:
        """Fetch this tenant's summary from the relay."""
        return self._relay_client().stats()

    # ── Lifecycle ────────────────────────────────────

    def start(self) -> None:
        """Start the timer loop. The first cycle runs immediately unless paused."""
        thread = self._thread
        if thread is not None and thread.is_alive():
            if not self._stop_event.is_set() or thread is threading.current_thread():
                return
            # A stop is pending; let the old loop exit before starting anew.
            thread.join()
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="relaysync-timer", daemon=True)
        self._thread.start()

    def stop(self, wait: bool = True, timeout: float | None = None) -> None:
        """Ask the timer loop to exit. An in-flight cycle runs to completion."""
        self._stop_event.set()
        thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        if thread is not None and not thread.is_alive():
            self._thread = None

    def close(self) -> None:
        """Stop the loop and release the HTTP client."""
        self.stop()
        with self._lock:
            relay, self._relay = self._relay, None
        if relay is not None:
            relay.close()

    def _run(self) -> None:
        while True:
            if not self._config.paused:
                self._run_scheduled()
            if self._stop_event.wait(self._config.sync_interval):
                break
        logger.info("Sync loop stopped")

    def _run_scheduled(self) -> None:
        try:
            self.sync_now()
        except SyncError as exc:
            logger.warning("Sync cycle failed: %s", exc)
        except Exception:
            logger.exception("Unexpected error during sync cycle")

    # ── Cycle ────────────────────────────────────────

    def sync_now(self) -> int:
        """Run one full cycle. Returns the number of files written locally.

        Raises ``ConfigurationError`` without touching the network when no
        server or token is configured, and ``SyncError`` when the scan or the
        exchange fails. Per-file write failures are logged and skipped.
        """
        config = self._config
        if not config.is_configured():
            with self._lock:
                self._stats.last_error = "No server URL or token configured"
            self._set_state(SyncState.OFFLINE)
            raise ConfigurationError("No server URL or token configured")

        self._set_state(SyncState.SYNCING)
        try:
            scan = self.scanner.scan()
            with self._lock:
                self._stats.total_files = len(scan.records)
                self._stats.total_size = scan.total_size
            returned = self._relay_client().sync(
                config.machine_id, config.machine_name, scan.records
            )
        except Exception as exc:
            with self._lock:
                self._stats.last_error = str(exc)
            self._set_state(SyncState.ERROR)
            raise

        downloaded = self._apply(returned, config.base_dir, config.watch_dir)
        uploaded = len(scan.changed)

        with self._lock:
            self._stats.last_sync_time = datetime.now(UTC)
            self._stats.downloaded_count += downloaded
            self._stats.uploaded_count += uploaded
            self._stats.last_error = ""
        self._set_state(SyncState.IDLE)

        if uploaded or downloaded:
            logger.info("Sync complete: %d sent, %d received", uploaded, downloaded)
        return downloaded

    def _apply(self, records: list[FileRecord], base_dir: Path, watch_dir: Path) -> int:
        mapper = self.scanner.mapper
        written = 0
        for record in records:
            if not record.content:
                continue
            local_rel = mapper.to_local(record.path)
            dest = _is_safe_local_path(base_dir, local_rel, watch_dir)
            if dest is None:
                logger.warning("Skip (outside watched directory): %s", record.path)
                continue
            data = mapper.content_to_local(record.content)
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                dest.write_bytes(data)
                os.utime(dest, (record.mod_time, record.mod_time))
            except OSError as exc:
                logger.warning("Failed to write %s: %s", dest, exc)
                continue
            self.scanner.remember(mapper.to_canonical(local_rel), hash_bytes(data))
            written += 1
        return written
