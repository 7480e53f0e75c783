"""Tests for the local scanner."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from agent.errors import ScanError
from agent.models import hash_bytes
from agent.path_mapper import PathMapper
from agent.scanner import LocalScanner

if TYPE_CHECKING:
    from pathlib import Path


def _write(base: Path, rel: str, data: bytes, mod_time: int = 100) -> Path:
    path = base / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    os.utime(path, (mod_time, mod_time))
    return path


@pytest.fixture
def base_dir(tmp_path: Path) -> Path:
    base = tmp_path / "claude"
    (base / "projects").mkdir(parents=True)
    return base


class TestScan:
    def test_first_scan_sends_everything(self, base_dir: Path) -> None:
        _write(base_dir, "projects/x/a.jsonl", b"hello", 100)
        _write(base_dir, "projects/y/b.jsonl", b"world!", 200)

        result = LocalScanner(base_dir).scan()
        by_path = {r.path: r for r in result.records}
        assert set(by_path) == {"projects/x/a.jsonl", "projects/y/b.jsonl"}
        a = by_path["projects/x/a.jsonl"]
        assert a.content == b"hello"
        assert a.content_hash == hash_bytes(b"hello")
        assert a.mod_time == 100
        assert a.size == 5
        assert result.total_size == 11
        assert len(result.changed) == 2

    def test_unchanged_files_carry_no_content(self, base_dir: Path) -> None:
        _write(base_dir, "projects/a.jsonl", b"hello")
        scanner = LocalScanner(base_dir)
        scanner.scan()

        result = scanner.scan()
        assert len(result.records) == 1
        assert result.records[0].content is None
        assert result.changed == []

    def test_modified_file_is_resent(self, base_dir: Path) -> None:
        path = _write(base_dir, "projects/a.jsonl", b"hello")
        scanner = LocalScanner(base_dir)
        scanner.scan()

        path.write_bytes(b"hello again")
        result = scanner.scan()
        assert [r.content for r in result.changed] == [b"hello again"]

    def test_only_watched_subtree_is_scanned(self, base_dir: Path) -> None:
        _write(base_dir, "projects/a.jsonl", b"in")
        _write(base_dir, "settings.json", b"out")
        result = LocalScanner(base_dir).scan()
        assert [r.path for r in result.records] == ["projects/a.jsonl"]

    def test_symlinks_are_skipped(self, base_dir: Path, tmp_path: Path) -> None:
        target = _write(tmp_path, "outside.txt", b"secret")
        (base_dir / "projects" / "link.txt").symlink_to(target)
        _write(base_dir, "projects/real.txt", b"real")
        result = LocalScanner(base_dir).scan()
        assert [r.path for r in result.records] == ["projects/real.txt"]

    def test_missing_root_scans_empty(self, tmp_path: Path) -> None:
        result = LocalScanner(tmp_path / "nope").scan()
        assert result.records == []
        assert result.total_size == 0

    def test_unreadable_root_raises(self, tmp_path: Path) -> None:
        base = tmp_path / "claude"
        base.mkdir()
        (base / "projects").write_bytes(b"not a directory")
        with pytest.raises(ScanError, match="Cannot read watched directory"):
            LocalScanner(base).scan()

    def test_empty_root(self, base_dir: Path) -> None:
        result = LocalScanner(base_dir).scan()
        assert result.records == []
        assert result.total_size == 0


class TestMapping:
    def test_paths_and_content_are_canonicalized(self, base_dir: Path) -> None:
        _write(base_dir, "projects/-home-alice-repo/s.jsonl", b'{"cwd": "/home/alice/repo"}')
        mapper = PathMapper({"-Users-alice": "-home-alice", "/Users/alice": "/home/alice"})

        result = LocalScanner(base_dir, mapper=mapper).scan()
        record = result.records[0]
        assert record.path == "projects/-Users-alice-repo/s.jsonl"
        assert record.content == b'{"cwd": "/Users/alice/repo"}'
        assert record.content_hash == hash_bytes(b'{"cwd": "/home/alice/repo"}')


class TestMemory:
    def test_remember_suppresses_resend(self, base_dir: Path) -> None:
        _write(base_dir, "projects/a.jsonl", b"from relay")
        scanner = LocalScanner(base_dir)
        scanner.remember("projects/a.jsonl", hash_bytes(b"from relay"))

        result = scanner.scan()
        assert result.changed == []

    def test_forget_resends_everything(self, base_dir: Path) -> None:
        _write(base_dir, "projects/a.jsonl", b"x")
        scanner = LocalScanner(base_dir)
        scanner.scan()
        scanner.forget()
        assert len(scanner.scan().changed) == 1

    def test_known_hashes_is_a_snapshot(self, base_dir: Path) -> None:
        _write(base_dir, "projects/a.jsonl", b"x")
        scanner = LocalScanner(base_dir)
        scanner.scan()
        snapshot = scanner.known_hashes()
        snapshot.clear()
        assert scanner.known_hashes() == {"projects/a.jsonl": hash_bytes(b"x")}
