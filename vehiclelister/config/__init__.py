"""
Configuration module for loading engine, browser and diagnostics settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml


# Config file path (can be overridden by VEHICLELISTER_CONFIG)
PACKAGE_DIR = Path(__file__).parent.parent
DEFAULT_CONFIG_PATH = PACKAGE_DIR / "config.yaml"
CONFIG_ENV_VAR = "VEHICLELISTER_CONFIG"
DEFAULT_DIAGNOSTICS_PATH = PACKAGE_DIR / "storage" / "diagnostics.jsonl"


_settings_cache: Optional[dict] = None


@dataclass(frozen=True)
class EngineConfig:
    """自动填表引擎的时序与容量参数（毫秒 / 次数）。"""

    max_attempts: int = 10
    attempt_delay: int = 500
    slow_max_attempts: int = 15
    slow_attempt_delay: int = 800
    dropdown_delay: int = 800
    match_delay: int = 500
    option_attempts: int = 3
    option_delay: int = 300
    upload_cap: int = 5
    asset_timeout: int = 10000
    cors_proxy_url: str = "https://cors-anywhere.herokuapp.com/"
    form_ready_threshold: int = 5
    form_ready_attempts: int = 20
    form_ready_delay: int = 1000
    status_dismiss_ms: int = 5000
    upload_wait_per_file: int = 1000
    compose_title: bool = False
    compose_description: bool = False
    default_vehicle_type: Optional[str] = None


def get_config_path() -> Path:
    raw = os.environ.get(CONFIG_ENV_VAR, "").strip()
    return Path(raw).expanduser() if raw else DEFAULT_CONFIG_PATH


def load_settings(force_reload: bool = False) -> dict:
    """
    Load settings from YAML file.
    Caches the result; a missing or broken file yields an empty dict.

    Returns:
        dict: Raw settings data
    """
    global _settings_cache

    if _settings_cache is not None and not force_reload:
        return _settings_cache

    config_path = get_config_path()
    if not config_path.exists():
        _settings_cache = {}
        return _settings_cache

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        _settings_cache = loaded if isinstance(loaded, dict) else {}
    except Exception as e:
        print(f"❌ Failed to load config {config_path}: {e}")
        _settings_cache = {}
    return _settings_cache


def _coerce(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "y", "1")
        return bool(value)
    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            return default
    if isinstance(value, str):
        value = value.strip()
        return value or default
    return value


def load_engine_config(settings: Optional[dict] = None) -> EngineConfig:
    """
    Build an EngineConfig from the `engine:` section; unknown keys are ignored
    and bad values fall back to the defaults.
    """
    if settings is None:
        settings = load_settings()
    section = settings.get("engine", {}) if isinstance(settings, dict) else {}
    if not isinstance(section, dict):
        section = {}

    defaults = EngineConfig()
    values: dict[str, Any] = {}
    for f in fields(EngineConfig):
        default = getattr(defaults, f.name)
        values[f.name] = _coerce(section.get(f.name), default)

    values["upload_cap"] = max(1, values["upload_cap"])
    values["max_attempts"] = max(1, values["max_attempts"])
    values["slow_max_attempts"] = max(1, values["slow_max_attempts"])
    return EngineConfig(**values)


def get_browser_settings() -> dict:
    """
    Get the `browser:` section used by BrowserManager.

    Returns:
        dict: headless / slow_mo / user_data_dir / executable_path
    """
    section = load_settings().get("browser", {})
    return section if isinstance(section, dict) else {}


def get_diagnostics_log_path() -> Path:
    """
    Get the JSONL path that receives field-level diagnostics.

    Returns:
        Path: configured path, or the default under storage/
    """
    section = load_settings().get("diagnostics", {})
    raw = section.get("log_path") if isinstance(section, dict) else None
    if raw:
        return Path(str(raw)).expanduser()
    return DEFAULT_DIAGNOSTICS_PATH
