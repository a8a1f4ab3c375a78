from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

DEFAULT_DB_TIMEOUT = 30.0

_REPO_ROOT = Path(__file__).resolve().parents[3]
_CONFIG_FILE = _REPO_ROOT / "config.json"


def _default_config_path() -> Path:
    override = os.environ.get("TENDERWATCH_CONFIG")
    return Path(override) if override else _CONFIG_FILE


def load_config(config_path: Path | str | None = None) -> Dict[str, Any]:
    """Load ``config.json`` if present and return it as a dictionary."""

    path = Path(config_path) if config_path is not None else _default_config_path()
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def get_path_config(config_path: Path | str | None = None) -> Dict[str, Path]:
    """Return resolved filesystem paths from the project configuration.

    ``TENDERWATCH_DB_PATH`` overrides ``paths.db_path`` from the file.
    """

    resolved_config = Path(config_path) if config_path is not None else _default_config_path()
    cfg = load_config(resolved_config)
    root = resolved_config.parent
    defaults: Dict[str, Any] = {"db_path": root / "tenderwatch.db"}
    paths_cfg = cfg.get("paths", {}) if isinstance(cfg.get("paths", {}), dict) else {}
    resolved: Dict[str, Path] = {}
    for key, default_value in defaults.items():
        resolved_value = Path(paths_cfg.get(key, default_value))
        if not resolved_value.is_absolute():
            resolved_value = (root / resolved_value).resolve()
        resolved[key] = resolved_value
    env_db_path = os.environ.get("TENDERWATCH_DB_PATH")
    if env_db_path:
        resolved["db_path"] = Path(env_db_path).expanduser()
    return resolved


def get_default_timeout(config_path: Path | str | None = None) -> float:
    """Read the preferred database timeout from configuration."""

    cfg = load_config(config_path)
    try:
        return float(cfg.get("db_timeout_seconds", DEFAULT_DB_TIMEOUT))
    except (TypeError, ValueError):
        return DEFAULT_DB_TIMEOUT
