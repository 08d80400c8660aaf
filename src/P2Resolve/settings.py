# === NAVMAP v1 ===
# {
#   "module": "P2Resolve.settings",
#   "purpose": "Define configuration models, environment overrides, and YAML loading",
#   "sections": [
#     {"id": "httpsettings", "name": "HttpSettings", "anchor": "class-httpsettings", "kind": "class"},
#     {"id": "cachesettings", "name": "CacheSettings", "anchor": "class-cachesettings", "kind": "class"},
#     {"id": "retrysettings", "name": "RetrySettings", "anchor": "class-retrysettings", "kind": "class"},
#     {"id": "loggingsettings", "name": "LoggingSettings", "anchor": "class-loggingsettings", "kind": "class"},
#     {"id": "concurrencysettings", "name": "ConcurrencySettings", "anchor": "class-concurrencysettings", "kind": "class"},
#     {"id": "resolversettings", "name": "ResolverSettings", "anchor": "class-resolversettings", "kind": "class"},
#     {"id": "load-settings", "name": "load_settings", "anchor": "function-load-settings", "kind": "function"},
#     {"id": "get-settings", "name": "get_settings", "anchor": "function-get-settings", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Configuration models for P2 repository resolution.

Settings come from three layers, highest precedence first: explicit values
(keyword overrides or a YAML file), ``P2RESOLVE_*`` environment variables
(nested fields use ``__``, e.g. ``P2RESOLVE_CONCURRENCY__WORKERS=4``), and
the defaults declared here.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from pathlib import Path
from typing import Any, List, Mapping, Optional

import platformdirs
import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

__all__ = [
    "CacheSettings",
    "ConcurrencySettings",
    "HttpSettings",
    "LoggingSettings",
    "ResolverSettings",
    "RetrySettings",
    "get_settings",
    "load_settings",
    "reset_settings",
]

APP_NAME = "p2resolve"


def _expand_dir(value: Any) -> Path:
    return Path(value).expanduser().resolve()


class HttpSettings(BaseModel):
    """HTTP client settings for the HTTPX + Hishel integration."""

    model_config = ConfigDict(frozen=True)

    http2: bool = Field(default=True, description="Enable HTTP/2 support")
    timeout_connect: float = Field(default=5.0, gt=0.0, le=60.0, description="Connect timeout in seconds")
    timeout_read: float = Field(default=30.0, gt=0.0, le=300.0, description="Read timeout in seconds")
    timeout_write: float = Field(default=30.0, gt=0.0, le=300.0, description="Write timeout in seconds")
    timeout_pool: float = Field(
        default=5.0, gt=0.0, le=60.0, description="Acquire-from-pool timeout in seconds"
    )
    pool_max_connections: int = Field(default=64, ge=1, le=1024, description="Max concurrent connections")
    pool_keepalive_max: int = Field(default=20, ge=0, le=1024, description="Keepalive pool size")
    keepalive_expiry: float = Field(
        default=30.0, ge=0.0, le=600.0, description="Idle connection expiry in seconds"
    )
    trust_env: bool = Field(
        default=True,
        description="Honor HTTP(S)_PROXY and NO_PROXY environment variables",
    )
    verify_tls: bool = Field(default=True, description="Verify TLS certificates")
    user_agent: str = Field(default="p2resolve/0.3", description="User-Agent header value")


class CacheSettings(BaseModel):
    """Local cache settings for fetched metadata and the Hishel HTTP cache."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Enable Hishel RFC-9111 revalidation cache")
    dir: Path = Field(
        default_factory=lambda: Path(platformdirs.user_cache_dir(APP_NAME)),
        description="Cache directory (auto-created if needed)",
    )
    ttl_seconds: int = Field(
        default=7 * 24 * 3600, ge=60, description="Hishel storage TTL (eviction, not freshness)"
    )

    @field_validator("dir", mode="before")
    @classmethod
    def normalize_cache_dir(cls, v: Any) -> Path:
        """Normalize cache directory to absolute path."""
        return _expand_dir(v)


class RetrySettings(BaseModel):
    """HTTP retry settings for transient failures."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=4, ge=1, le=20, description="Attempts per fetch")
    max_delay_seconds: float = Field(
        default=30.0, gt=0.0, le=600.0, description="Overall retry deadline per fetch"
    )
    backoff_max: float = Field(default=5.0, ge=0.0, le=60.0, description="Backoff cap (seconds)")


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    emit_json_logs: bool = Field(
        default=True,
        description="Write a rotating JSON lines log next to console output",
        validation_alias=AliasChoices("emit_json_logs", "json"),
    )
    dir: Path = Field(
        default_factory=lambda: Path(platformdirs.user_log_dir(APP_NAME)),
        description="Directory for JSON log files",
    )
    retention_days: int = Field(default=30, ge=1, description="Retention period for log files")
    max_log_size_mb: int = Field(default=20, gt=0, description="Maximum size of rotated log files")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Normalize and validate logging level."""
        upper = str(v).upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}, got '{v}'")
        return upper

    @field_validator("dir", mode="before")
    @classmethod
    def normalize_log_dir(cls, v: Any) -> Path:
        return _expand_dir(v)

    def level_int(self) -> int:
        """Convert level string to logging module integer."""
        return getattr(logging, self.level)


class ConcurrencySettings(BaseModel):
    """Worker pool sizing for concurrent fetch and parse units."""

    model_config = ConfigDict(frozen=True)

    workers: int = Field(default=8, ge=1, le=256, description="Worker threads in the resolution pool")


class ResolverSettings(BaseSettings):
    """Root settings object for repository resolution."""

    model_config = SettingsConfigDict(
        env_prefix="P2RESOLVE_",
        env_nested_delimiter="__",
        frozen=True,
        extra="forbid",
    )

    offline: bool = Field(default=False, description="Never touch the network; serve cached copies only")
    repositories: List[str] = Field(
        default_factory=list, description="Repository roots resolved by the CLI when none are given"
    )
    http: HttpSettings = Field(default_factory=HttpSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    concurrency: ConcurrencySettings = Field(default_factory=ConcurrencySettings)

    def config_hash(self) -> str:
        """Return a stable digest of the effective settings."""

        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def _read_yaml(config_path: Path) -> Mapping[str, Any]:
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"Configuration root in {config_path} must be a mapping")
    return data


def _merge(base: dict, updates: Mapping[str, Any]) -> dict:
    merged = dict(base)
    for key, value in updates.items():
        if value is None:
            continue
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = _merge(dict(current), value)
        else:
            merged[key] = value
    return merged


def load_settings(config_path: Optional[Path] = None, **overrides: Any) -> ResolverSettings:
    """Build :class:`ResolverSettings` from an optional YAML file plus overrides.

    Nested mappings in ``overrides`` are merged into the YAML values; ``None``
    overrides are ignored so CLI options can be passed through unconditionally.
    """

    raw: dict = {}
    if config_path is not None:
        raw = _merge(raw, _read_yaml(Path(config_path)))
    raw = _merge(raw, overrides)
    try:
        return ResolverSettings(**raw)
    except PydanticValidationError as exc:
        source = f" from {config_path}" if config_path is not None else ""
        raise ConfigurationError(f"Invalid settings{source}: {exc}") from exc


_SETTINGS: Optional[ResolverSettings] = None
_SETTINGS_LOCK = threading.Lock()


def get_settings() -> ResolverSettings:
    """Return the process-wide default settings, loading them on first use."""

    global _SETTINGS
    with _SETTINGS_LOCK:
        if _SETTINGS is None:
            _SETTINGS = load_settings()
        return _SETTINGS


def reset_settings() -> None:
    """Drop the cached default settings (primarily for tests)."""

    global _SETTINGS
    with _SETTINGS_LOCK:
        _SETTINGS = None
