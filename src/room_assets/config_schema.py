"""Unified configuration schema for room-assets.

Defines Pydantic models for the YAML config file, with dedicated sections
for the Pretalx source, the on-disk layout, the optional Nextcloud step and
logging.  ``to_fallbacks()`` flattens a validated config into the keyword
names used by ``config.load_config()``.

Usage:
    from room_assets.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(cli=cli_values, yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class PretalxConfig(BaseModel):
    """Pretalx source settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    url: str | None = Field(
        default=None, description="Base URL of the Pretalx instance"
    )
    events: list[str] = Field(
        default_factory=list, description="Event slugs to sync"
    )
    rooms: list[str] | None = Field(
        default=None,
        description="Room names to restrict the sync to (all rooms if unset)",
    )
    language: str | None = Field(
        default=None,
        description="Language the room names are resolved in",
    )

    model_config = {"frozen": True}


class LayoutConfig(BaseModel):
    """Target directory and naming patterns."""

    target_dir: str | None = Field(
        default=None, description="Target directory for assets"
    )
    locale: str | None = Field(
        default=None, description="Locale for day and session names"
    )
    day_strftime_pattern: str | None = Field(
        default=None, description="strftime pattern for day directories"
    )
    session_strftime_pattern: str | None = Field(
        default=None,
        description="strftime pattern prefix for session directories",
    )

    model_config = {"frozen": True}


class NextcloudConfig(BaseModel):
    """Optional Nextcloud sync step run before and after the local sync."""

    user: str | None = Field(default=None, description="Nextcloud user")
    password: str | None = Field(
        default=None, description="Nextcloud password"
    )
    folder_url: str | None = Field(
        default=None,
        description="WebDAV URL of the Nextcloud folder to sync",
    )
    silent: bool = Field(
        default=False, description="Pass --silent to nextcloudcmd"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json``.
    """

    level: str | None = Field(default=None, description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: Literal["text", "json"] = Field(
        default="text", description="Log record format"
    )

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    pretalx: PretalxConfig = Field(default_factory=PretalxConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    nextcloud: NextcloudConfig = Field(default_factory=NextcloudConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get their defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.

    Raises:
        pydantic.ValidationError: If a section has the wrong shape.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> load_config() fallbacks
# ---------------------------------------------------------------------------


def to_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten a ``UnifiedConfig`` into ``load_config()`` fallback values.

    Keys are ``Config`` field names.  ``None`` values and empty lists are
    dropped so they never shadow built-in defaults.

    Args:
        unified: The unified config produced by ``build_config()``.

    Returns:
        Dict suitable for ``load_config(yaml_fallbacks=...)``.
    """
    values: dict[str, Any] = {
        "pretalx_url": unified.pretalx.url,
        "events": unified.pretalx.events,
        "rooms": unified.pretalx.rooms,
        "language": unified.pretalx.language,
        "target_dir": unified.layout.target_dir,
        "locale": unified.layout.locale,
        "day_strftime_pattern": unified.layout.day_strftime_pattern,
        "session_strftime_pattern": unified.layout.session_strftime_pattern,
        "nextcloud_user": unified.nextcloud.user,
        "nextcloud_password": unified.nextcloud.password,
        "nextcloud_folder_url": unified.nextcloud.folder_url,
        "nextcloud_silent": unified.nextcloud.silent,
    }
    return {k: v for k, v in values.items() if v is not None and v != []}
