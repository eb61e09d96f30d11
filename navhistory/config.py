from __future__ import annotations

import json
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("~/.config/navhistory/config.json").expanduser()
DEFAULT_DB_PATH = Path.home() / ".navhistory" / "history.sqlite"

STORAGE_BACKENDS = {"sqlite", "json"}

CONFIG_ENV_OVERRIDES = {
    "db_path": "NAVHISTORY_DB",
    "storage": "NAVHISTORY_STORAGE",
    "retention_days": "NAVHISTORY_RETENTION_DAYS",
    "max_entries": "NAVHISTORY_MAX_ENTRIES",
    "search_debounce_ms": "NAVHISTORY_SEARCH_DEBOUNCE_MS",
    "search_limit": "NAVHISTORY_SEARCH_LIMIT",
    "favicon_max_bytes": "NAVHISTORY_FAVICON_MAX_BYTES",
}

_INT_KEYS = {
    "retention_days",
    "max_entries",
    "search_debounce_ms",
    "search_limit",
    "favicon_max_bytes",
}


def get_config_path(path: Path | None = None) -> Path:
    candidate = path or Path(os.getenv("NAVHISTORY_CONFIG", DEFAULT_CONFIG_PATH))
    return candidate.expanduser()


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    config_path = get_config_path(path)
    if not config_path.exists():
        return {}
    raw = config_path.read_text()
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid config json") from exc
    if not isinstance(data, dict):
        raise ValueError("config must be an object")
    return data


def write_config_file(data: dict[str, Any], path: Path | None = None) -> Path:
    config_path = get_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n")
    return config_path


def get_env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for key, env_var in CONFIG_ENV_OVERRIDES.items():
        value = os.getenv(env_var)
        if value is not None:
            overrides[key] = value
    return overrides


@dataclass
class HistoryConfig:
    db_path: str = str(DEFAULT_DB_PATH)
    storage: str = "sqlite"
    retention_days: int = 365
    max_entries: int = 10000
    search_debounce_ms: int = 300
    search_limit: int = 10
    # 0 disables the cap.
    favicon_max_bytes: int = 0


def _parse_int(value: object, default: int, *, key: str) -> int:
    if value is None:
        return default
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        warnings.warn(f"Invalid int for {key}: {value!r}", RuntimeWarning, stacklevel=2)
        return default


def _parse_storage(value: object, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, str) and value.strip().lower() in STORAGE_BACKENDS:
        return value.strip().lower()
    warnings.warn(f"Invalid storage backend: {value!r}", RuntimeWarning, stacklevel=2)
    return default


def load_config(path: Path | None = None) -> HistoryConfig:
    cfg = HistoryConfig()
    config_path = get_config_path(path)
    if config_path.exists():
        try:
            data = json.loads(config_path.read_text() or "{}")
        except json.JSONDecodeError:
            data = {}
        if isinstance(data, dict):
            cfg = _apply_dict(cfg, data)
    cfg = _apply_env(cfg)
    return cfg


def _apply_dict(cfg: HistoryConfig, data: dict[str, Any]) -> HistoryConfig:
    for key, value in data.items():
        if not hasattr(cfg, key):
            continue
        if key in _INT_KEYS:
            setattr(cfg, key, _parse_int(value, getattr(cfg, key), key=key))
            continue
        if key == "storage":
            cfg.storage = _parse_storage(value, cfg.storage)
            continue
        if key == "db_path":
            cfg.db_path = str(Path(str(value)).expanduser())
            continue
        setattr(cfg, key, value)
    return cfg


def _apply_env(cfg: HistoryConfig) -> HistoryConfig:
    overrides = get_env_overrides()
    db_path = overrides.get("db_path")
    if db_path:
        cfg.db_path = str(Path(db_path).expanduser())
    cfg.storage = _parse_storage(overrides.get("storage"), cfg.storage)
    for key in sorted(_INT_KEYS):
        setattr(cfg, key, _parse_int(overrides.get(key), getattr(cfg, key), key=key))
    return cfg
