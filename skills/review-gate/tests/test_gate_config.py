"""Tests for review gate configuration loading."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest
import yaml

_scripts_dir = Path(__file__).resolve().parent.parent / "scripts"
if str(_scripts_dir) not in sys.path:
    sys.path.insert(0, str(_scripts_dir))

from gate_config import (
    CONFIG_FILENAME,
    build_settings,
    env_overrides,
    load_settings,
    read_config_file,
    resolve_config_path,
)
from src.schemas import GateSettings


def _write_config(path: Path, data: object) -> Path:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestDefaults:
    def test_missing_file_uses_defaults(self, tmp_path: Path):
        settings = load_settings(repo_root=tmp_path, environ={})
        assert settings.auto_review is True
        assert settings.interactive is True
        assert settings.max_files == 20
        assert settings.reviewer_command is None

    def test_no_repo_root_uses_defaults(self):
        settings = load_settings(environ={})
        assert settings == GateSettings()


class TestConfigFile:
    def test_repo_root_file(self, tmp_path: Path):
        _write_config(tmp_path / CONFIG_FILENAME, {
            "auto_review": False,
            "interactive": False,
            "max_files": 5,
            "reviewer_command": "review-bot --stdin --format json",
        })
        settings = load_settings(repo_root=tmp_path, environ={})
        assert settings.auto_review is False
        assert settings.interactive is False
        assert settings.max_files == 5
        assert settings.reviewer_command == ("review-bot", "--stdin", "--format", "json")

    def test_command_as_list(self, tmp_path: Path):
        path = _write_config(tmp_path / "gate.yaml", {"reviewer_command": ["review-bot", "-q"]})
        settings = load_settings(config_path=path, environ={})
        assert settings.reviewer_command == ("review-bot", "-q")

    def test_unknown_keys_ignored(self, tmp_path: Path):
        path = _write_config(tmp_path / "gate.yaml", {"max_files": 3, "colour": "blue"})
        settings = load_settings(config_path=path, environ={})
        assert settings.max_files == 3
        assert not hasattr(settings, "colour")

    def test_invalid_yaml_uses_defaults(self, tmp_path: Path, caplog):
        path = tmp_path / "gate.yaml"
        path.write_text("auto_review: [unclosed\n", encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            settings = load_settings(config_path=path, environ={})
        assert settings == GateSettings()
        assert "unreadable config" in caplog.text

    def test_non_mapping_uses_defaults(self, tmp_path: Path):
        path = _write_config(tmp_path / "gate.yaml", ["auto_review", False])
        assert read_config_file(path) == {}

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "gate.yaml"
        path.write_text("", encoding="utf-8")
        assert read_config_file(path) == {}

    def test_invalid_value_falls_back_per_key(self, tmp_path: Path, caplog):
        path = _write_config(tmp_path / "gate.yaml", {
            "max_files": "lots",
            "interactive": False,
        })
        with caplog.at_level(logging.WARNING):
            settings = load_settings(config_path=path, environ={})
        assert settings.max_files == 20
        assert settings.interactive is False
        assert "max_files" in caplog.text

    def test_negative_max_files_rejected(self):
        settings = build_settings({"max_files": -1})
        assert settings.max_files == 20


class TestEnvironment:
    def test_env_overrides_file(self, tmp_path: Path):
        path = _write_config(tmp_path / "gate.yaml", {"auto_review": True, "max_files": 3})
        environ = {
            "REVIEW_GATE_AUTO_REVIEW": "false",
            "REVIEW_GATE_MAX_FILES": "12",
            "REVIEW_GATE_COMMAND": "review-bot",
        }
        settings = load_settings(config_path=path, environ=environ)
        assert settings.auto_review is False
        assert settings.max_files == 12
        assert settings.reviewer_command == ("review-bot",)

    def test_blank_env_values_ignored(self):
        assert env_overrides({"REVIEW_GATE_INTERACTIVE": "  "}) == {}

    def test_config_path_from_env(self, tmp_path: Path):
        path = _write_config(tmp_path / "custom.yaml", {"max_files": 9})
        settings = load_settings(repo_root=tmp_path, environ={"REVIEW_GATE_CONFIG": str(path)})
        assert settings.max_files == 9

    def test_explicit_path_wins(self, tmp_path: Path):
        resolved = resolve_config_path("a.yaml", tmp_path, {"REVIEW_GATE_CONFIG": "b.yaml"})
        assert resolved == Path("a.yaml")


def test_settings_are_frozen():
    settings = GateSettings()
    with pytest.raises(Exception):
        settings.max_files = 1  # type: ignore[misc]


def test_example_config_loads():
    path = Path(__file__).resolve().parents[1] / "review-gate.example.yaml"
    settings = load_settings(config_path=path, environ={})
    assert settings.auto_review is False
    assert settings.interactive is True
    assert settings.max_files == 20
    assert settings.reviewer_command is None
