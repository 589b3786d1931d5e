"""Locate and load the review gate configuration.

Configuration never fails the gate: a missing, unreadable or malformed file
falls back to the defaults of ``GateSettings`` and logs a warning.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from src.schemas import GateSettings

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".review-gate.yaml"
CONFIG_PATH_ENV = "REVIEW_GATE_CONFIG"

ENV_OVERRIDES: dict[str, str] = {
    "REVIEW_GATE_AUTO_REVIEW": "auto_review",
    "REVIEW_GATE_INTERACTIVE": "interactive",
    "REVIEW_GATE_MAX_FILES": "max_files",
    "REVIEW_GATE_COMMAND": "reviewer_command",
}


def resolve_config_path(
    explicit: str | Path | None,
    repo_root: Path | None,
    environ: Mapping[str, str] | None = None,
) -> Path | None:
    """Return the config path to read: --config, then env, then repo root."""
    environ = os.environ if environ is None else environ
    if explicit:
        return Path(explicit).expanduser()
    configured = environ.get(CONFIG_PATH_ENV)
    if configured:
        return Path(configured).expanduser()
    if repo_root is not None:
        return repo_root / CONFIG_FILENAME
    return None


def read_config_file(path: Path | None) -> dict[str, Any]:
    """Read the YAML document at ``path``. Problems yield an empty mapping."""
    if path is None or not path.exists():
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return {}

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        logger.warning("Ignoring config %s: top level must be a mapping", path)
        return {}
    return raw


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    environ = os.environ if environ is None else environ
    return {
        key: environ[name]
        for name, key in ENV_OVERRIDES.items()
        if environ.get(name, "").strip()
    }


def build_settings(data: Mapping[str, Any]) -> GateSettings:
    """Validate ``data``, dropping each invalid key back to its default."""
    values = {k: v for k, v in data.items() if k in GateSettings.model_fields}
    try:
        return GateSettings.model_validate(values)
    except ValidationError as e:
        invalid = {str(err["loc"][0]) for err in e.errors() if err["loc"]}
        for key in sorted(invalid):
            logger.warning("Invalid config value for %s=%r, using default", key, values.get(key))
        values = {k: v for k, v in values.items() if k not in invalid}
        return GateSettings.model_validate(values)


def load_settings(
    config_path: str | Path | None = None,
    repo_root: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> GateSettings:
    """Build the settings for one invocation: file values, then env overrides."""
    if environ is None:
        load_dotenv()
    path = resolve_config_path(config_path, repo_root, environ)
    data = read_config_file(path)
    data.update(env_overrides(environ))
    settings = build_settings(data)
    logger.debug("Loaded settings from %s: %s", path, settings)
    return settings
