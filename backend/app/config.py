"""Upload relay application configuration.

Loads settings from two YAML files:
  * relay.settings.yaml  — non-secret configuration
  * relay.secrets.yaml   — Cloudinary credentials (never committed)

Environment variables override both files (PORT, CORS_ORIGIN, APP_ENV, ...).
The resulting AppSettings is immutable and built once at process start; it is
handed to ``create_app()`` and the store client explicitly.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("relay.settings.yaml")
SECRETS_FILE  = Path("relay.secrets.yaml")

# env var -> (section, key)
ENV_OVERRIDES = {
    "HOST":                  ("server", "host"),
    "PORT":                  ("server", "port"),
    "CORS_ORIGIN":           ("server", "cors_origin"),
    "APP_ENV":               ("server", "environment"),
    "UPLOAD_DIR":            ("uploads", "upload_dir"),
    "LOG_LEVEL":             ("logging", "level"),
}

SECRET_ENV_OVERRIDES = {
    "CLOUDINARY_CLOUD_NAME": "cloud_name",
    "CLOUDINARY_API_KEY":    "api_key",
    "CLOUDINARY_API_SECRET": "api_secret",
}


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Secrets models
# ---------------------------------------------------------------------------


class CloudinarySecrets(_Frozen):
    cloud_name: Optional[str] = None
    api_key:    Optional[str] = None
    api_secret: Optional[str] = None


class Secrets(_Frozen):
    cloudinary: CloudinarySecrets = Field(default_factory=CloudinarySecrets)


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(_Frozen):
    host:        str = "0.0.0.0"
    port:        int = 3000
    cors_origin: str = "*"
    environment: str = "development"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_origin.split(",") if o.strip()]


class UploadSettings(_Frozen):
    """Staging directory and per-request limits."""
    upload_dir:               str       = "uploads"
    max_file_size_mb:         int       = 10
    max_files:                int       = 10
    multifield_fields:        List[str] = Field(default_factory=lambda: ["images", "documents"])
    multifield_max_per_field: int       = 5
    request_timeout_seconds:  float     = 60.0

    @field_validator("max_file_size_mb", "max_files", "multifield_max_per_field")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


class LoggingSettings(_Frozen):
    level: str = "info"


class AppSettings(_Frozen):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    uploads: UploadSettings  = Field(default_factory=UploadSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    secrets: Secrets         = Field(default_factory=Secrets)


# ---------------------------------------------------------------------------
# Environment overrides
# ---------------------------------------------------------------------------


def _apply_env_overrides(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    """Overlay environment variables on the raw YAML data."""
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            data.setdefault(section, {})[key] = value

    cloudinary = data.setdefault("secrets", {}).setdefault("cloudinary", {})
    for env_name, key in SECRET_ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            cloudinary[key] = value
    return data


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------


def load_config(
    settings_path: Optional[Path] = None,
    secrets_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AppSettings:
    """Load and merge settings, secrets and environment into an *AppSettings*."""
    settings_data = _load_yaml(Path(settings_path or SETTINGS_FILE))
    secrets_data  = _load_yaml(Path(secrets_path or SECRETS_FILE))

    # Merge: secrets live under the "secrets" key in AppSettings
    settings_data["secrets"] = secrets_data
    settings_data = _apply_env_overrides(
        settings_data, os.environ if environ is None else environ
    )

    app_settings = AppSettings(**settings_data)
    logger.info(
        "Settings loaded (server=%s:%s, environment=%s, upload_dir=%s)",
        app_settings.server.host,
        app_settings.server.port,
        app_settings.server.environment,
        app_settings.uploads.upload_dir,
    )
    return app_settings
