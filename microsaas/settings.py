"""Load application settings from config/settings.yaml, then environment overrides."""

import os
from pathlib import Path
from typing import Any

import yaml

_DEFAULTS: dict[str, Any] = {
    "app": {
        "name": "MicroSaaS",
    },
    "mail": {
        "application_name": "",
        "no_reply_address": "",
        # Empty address: sends are logged and skipped
        "smtp_address": "",
        "smtp_port": 587,
        "smtp_user": "",
        "timeout": 30,
    },
    "broker": {
        # 0 = publish waits until every subscriber has taken the event
        "capacity": 0,
    },
    "history": {
        "db_path": "data/history.db",
        "list_size": 25,
        "busy_timeout": 5000,
    },
    "shutdown": {
        "timeout": 3.0,
    },
    "logging": {
        "file": "logs/app.log",
        "level": "INFO",
        "log_to_console": True,
        "max_bytes": 10485760,  # 10 MB
        "backup_count": 3,
    },
}

# Environment variable -> dot path. Names match the deployment's app.env.
_ENV_OVERRIDES: dict[str, str] = {
    "APPLICATION_NAME": "app.name",
    "MAIL_NO_REPLY_ADDRESS": "mail.no_reply_address",
    "MAIL_SMTP_ADDRESS": "mail.smtp_address",
    "MAIL_SMTP_PORT": "mail.smtp_port",
    "MAIL_SMTP_USER": "mail.smtp_user",
    "LOG_LEVEL": "logging.level",
}

_cached: dict[str, Any] | None = None


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base recursively. Mutates base."""
    for key, value in overlay.items():
        if value is None:
            continue
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def get_default_settings() -> dict[str, Any]:
    """Return a deep copy of default settings."""
    return _deep_copy_nested(_DEFAULTS)


def get_setting(settings: dict[str, Any], path: str, default: Any = None) -> Any:
    """Get a nested value by dot path (e.g. 'mail.smtp_address')."""
    current: Any = settings
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def _set_setting(settings: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = settings
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


def apply_env_overrides(settings: dict[str, Any], environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Overwrite settings from environment variables that are set and non-empty. Mutates settings."""
    env = os.environ if environ is None else environ
    for name, path in _ENV_OVERRIDES.items():
        value = env.get(name)
        if value:
            _set_setting(settings, path, value)
    return settings


def reload_settings() -> None:
    """Clear the settings cache. Call after config files or the environment change."""
    global _cached
    _cached = None


def load_settings(config_dir: Path | None = None) -> dict[str, Any]:
    """Load settings from config/settings.yaml. Returns defaults + file values + env overrides."""
    global _cached
    if _cached is not None:
        return _cached

    if config_dir is None:
        config_dir = Path(__file__).resolve().parent.parent / "config"
    path = config_dir / "settings.yaml"

    result = get_default_settings()

    if path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                _deep_merge(result, data)
        except (yaml.YAMLError, OSError):
            pass

    apply_env_overrides(result)
    _cached = result
    return result


def _deep_copy_nested(obj: Any) -> Any:
    """Return a deep copy of nested dicts/lists for defaults."""
    if isinstance(obj, dict):
        return {k: _deep_copy_nested(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_deep_copy_nested(x) for x in obj]
    return obj
