"""Tests for the command-line entry point."""

from __future__ import annotations

import json
import logging

import pytest

from oppaggregator.cli import main


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """setup_logging() replaces the root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "observability:\n"
        "  log_format: json\n"
        "search:\n"
        "  sources:\n"
        "    google:\n"
        "      kind: google\n"
        "      api_key: your_api_key_here\n"
    )
    return path


class TestSearchCommand:
    def test_prints_json_result_on_stdout(self, config_file, capsys) -> None:
        main(["--config", str(config_file), "search", "robotics", "--type", "grant", "--limit", "5"])

        out = json.loads(capsys.readouterr().out)
        assert out["total"] == 1
        assert out["opportunities"][0]["type"] == "grant"
        assert out["meta"]["query"] == "robotics"
        assert out["meta"]["cached"] is False

    def test_no_sources_exits_1(self, tmp_path, capsys) -> None:
        empty = tmp_path / "empty.yaml"
        empty.write_text("debug: false\n")

        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(empty), "search", "robotics"])

        assert exc_info.value.code == 1
        assert "at least one source" in capsys.readouterr().err

    def test_invalid_params_exit_2(self, config_file, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(config_file), "search", "--type", "spaceflight"])

        assert exc_info.value.code == 2
        assert "invalid search parameters" in capsys.readouterr().err

    def test_missing_config_exits_1(self, tmp_path, capsys) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(tmp_path / "nope.yaml"), "search"])

        assert exc_info.value.code == 1
        assert "Config file not found" in capsys.readouterr().err


class TestHealthCommand:
    def test_reports_unconfigured_source(self, config_file, capsys) -> None:
        main(["--config", str(config_file), "health"])

        out = json.loads(capsys.readouterr().out)
        assert out["health"]["healthy"] is False
        assert "credentials" in out["health"]["sources"]["google"]["message"]
        assert out["stats"]["cache"]["total_entries"] == 0
