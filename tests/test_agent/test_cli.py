"""Tests for the relaysync command-line front end."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from agent import cli
from agent.config import AgentConfig, load_config, save_config

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "sync-config.json"


class TestConfigCommand:
    def test_sets_and_persists_fields(
        self, config_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = cli.main(
            [
                "--config",
                str(config_path),
                "config",
                "--server",
                "https://relay.example/",
                "--token",
                "tok-1",
                "--name",
                "laptop",
                "--interval",
                "15",
                "--pause",
            ]
        )
        assert code == 0
        config = load_config(config_path)
        assert config.server_url == "https://relay.example"
        assert config.token == "tok-1"
        assert config.machine_name == "laptop"
        assert config.sync_interval == 15
        assert config.paused is True
        out = capsys.readouterr().out
        assert "Saved configuration" in out
        assert "tok-1" not in out

    def test_machine_id_is_stable_once_saved(self, config_path: Path) -> None:
        cli.main(["--config", str(config_path), "config", "--name", "laptop"])
        first = load_config(config_path).machine_id
        cli.main(["--config", str(config_path), "config", "--resume"])
        assert load_config(config_path).machine_id == first

    def test_insecure_server_rejected(
        self, config_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        args = ["--config", str(config_path), "config", "--server", "http://relay.example"]
        code = cli.main(args)
        assert code == 1
        assert "HTTPS is required" in capsys.readouterr().out
        assert not config_path.exists()

    def test_insecure_server_allowed_with_flag(self, config_path: Path) -> None:
        code = cli.main(
            [
                "--config",
                str(config_path),
                "config",
                "--server",
                "http://relay.lan",
                "--allow-insecure-http",
            ]
        )
        assert code == 0
        assert load_config(config_path).server_url == "http://relay.lan"

    def test_invalid_interval_rejected(self, config_path: Path) -> None:
        assert cli.main(["--config", str(config_path), "config", "--interval", "0"]) == 1

    def test_show_without_changes(
        self, config_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert cli.main(["--config", str(config_path), "config"]) == 0
        out = capsys.readouterr().out
        assert "(not set)" in out
        assert not config_path.exists()


class TestMappingCommand:
    def test_add_list_remove(self, config_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code = cli.main(
            [
                "--config",
                str(config_path),
                "mapping",
                "--add",
                "/Users/alice=/home/alice",
                "--add=-Users-alice=-home-alice",
            ]
        )
        assert code == 0
        assert load_config(config_path).path_mappings == {
            "/Users/alice": "/home/alice",
            "-Users-alice": "-home-alice",
        }
        assert "/Users/alice -> /home/alice" in capsys.readouterr().out

        assert cli.main(["--config", str(config_path), "mapping", "--remove", "/Users/alice"]) == 0
        assert load_config(config_path).path_mappings == {"-Users-alice": "-home-alice"}

    def test_remove_unknown_fails(self, config_path: Path) -> None:
        assert cli.main(["--config", str(config_path), "mapping", "--remove", "/nope"]) == 1

    def test_anchored_toggle(self, config_path: Path) -> None:
        cli.main(["--config", str(config_path), "mapping", "--anchored"])
        assert load_config(config_path).anchored_mappings is True
        cli.main(["--config", str(config_path), "mapping", "--unanchored"])
        assert load_config(config_path).anchored_mappings is False

    def test_malformed_mapping_is_usage_error(self, config_path: Path) -> None:
        with pytest.raises(SystemExit):
            cli.main(["--config", str(config_path), "mapping", "--add", "no-separator"])


class TestSyncAndStatus:
    def test_sync_unconfigured_fails(
        self, config_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert cli.main(["--config", str(config_path), "sync"]) == 1
        assert "No server URL or token configured" in capsys.readouterr().out

    def test_run_unconfigured_fails(self, config_path: Path) -> None:
        assert cli.main(["--config", str(config_path), "run"]) == 1

    def test_status_unconfigured(
        self, config_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert cli.main(["--config", str(config_path), "status"]) == 0
        assert "offline (not configured)" in capsys.readouterr().out

    def test_sync_reports_counts(
        self,
        config_path: Path,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        base_dir = tmp_path / "claude"
        (base_dir / "projects").mkdir(parents=True)
        (base_dir / "projects" / "a.jsonl").write_bytes(b"hello")
        save_config(
            AgentConfig(server_url="https://relay.example", token="tok", base_dir=base_dir),
            config_path,
        )

        class _StubRelay:
            def sync(self, machine_id: str, machine_name: str, records: list) -> list:
                return []

            def close(self) -> None:
                pass

        monkeypatch.setattr("agent.sync_client._default_relay", lambda config: _StubRelay())
        assert cli.main(["--config", str(config_path), "sync"]) == 0
        assert "1 file(s) sent, 0 file(s) received" in capsys.readouterr().out

    def test_no_command_prints_help(
        self, config_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert cli.main(["--config", str(config_path)]) == 0
        assert "usage:" in capsys.readouterr().out
