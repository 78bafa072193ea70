"""Configuration management for the contactdesk service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .security import DEFAULT_TOKEN_TTL

_ENV_PREFIX = "CONTACTDESK_"


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API and CLI."""

    database_path: Optional[str] = None
    token_secret: Optional[str] = None
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL
    admin_name: str = "Admin User"
    admin_email: str = "admin@mail.com"
    admin_password: str = "admin123"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw mapping data, rejecting unknown keys."""

        known = set(Settings.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        values: Dict[str, object] = {}
        for key, value in data.items():
            if value is None:
                continue
            values[key] = value

        raw_db = values.get("database_path")
        if raw_db is not None:
            db_path = Path(str(raw_db)).expanduser()
            if not db_path.is_absolute() and base_path is not None:
                db_path = base_path / db_path
            values["database_path"] = str(db_path.resolve(strict=False))

        for int_key in ("token_ttl_seconds", "port"):
            if int_key in values:
                values[int_key] = int(values[int_key])  # type: ignore[arg-type]
        for str_key in ("token_secret", "admin_name", "admin_email", "admin_password", "host", "log_level"):
            if str_key in values:
                values[str_key] = str(values[str_key])

        return Settings(**values)  # type: ignore[arg-type]


_ENV_FIELDS = {
    "DB_PATH": "database_path",
    "TOKEN_SECRET": "token_secret",
    "TOKEN_TTL": "token_ttl_seconds",
    "ADMIN_NAME": "admin_name",
    "ADMIN_EMAIL": "admin_email",
    "ADMIN_PASSWORD": "admin_password",
    "HOST": "host",
    "PORT": "port",
    "LOG_LEVEL": "log_level",
}


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the YAML configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "contactdesk.yaml").resolve(strict=False)
    return candidate


def load_config_file(config_path: Path) -> Settings:
    """Load settings from a YAML file. A missing file yields the defaults."""
    if not config_path.exists():
        return Settings()

    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping at the top level")

    return Settings.from_dict(raw, base_path=config_path.parent)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from the optional YAML file and ``CONTACTDESK_*`` variables."""

    env = os.environ if environ is None else environ
    settings = load_config_file(resolve_config_path(env.get(f"{_ENV_PREFIX}CONFIG")))

    overrides: Dict[str, object] = {}
    for suffix, field_name in _ENV_FIELDS.items():
        value = env.get(f"{_ENV_PREFIX}{suffix}")
        if value is None or not value.strip():
            continue
        overrides[field_name] = value.strip()

    if not overrides:
        return settings

    parsed = Settings.from_dict(overrides)
    return replace(settings, **{key: getattr(parsed, key) for key in overrides})


__all__ = ["Settings", "load_config_file", "load_settings", "resolve_config_path"]
