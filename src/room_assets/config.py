"""Runtime configuration for a room-assets sync run.

Reads settings from CLI args, environment variables, .env files, and YAML
config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    PRETALX_URL: Base URL of the Pretalx instance (default: https://pretalx.com)
    PRETALX_EVENTS: Comma separated event slugs (required unless given on CLI)
    PRETALX_ROOMS: Comma separated room names to restrict the sync to
    PRETALX_LANGUAGE: Language the room names are resolved in
    ROOM_ASSETS_TARGET_DIR: Target directory for the assets (required)
    ROOM_ASSETS_LOCALE: Locale used to format day and session names
    ROOM_ASSETS_DAY_PATTERN: strftime pattern for day directories
    ROOM_ASSETS_SESSION_PATTERN: strftime pattern prefix for session directories
    NEXTCLOUD_USER / NEXTCLOUD_PASSWORD / NEXTCLOUD_FOLDER_URL: Nextcloud sync
    NEXTCLOUD_SILENT: Pass --silent to nextcloudcmd (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_PRETALX_URL = "https://pretalx.com"
DEFAULT_DAY_PATTERN = "%Y-%m-%d_%A"
SESSION_PATTERN_SUFFIX = "_%H%M"


@dataclass
class Config:
    events: list[str]
    target_dir: str
    pretalx_url: str = DEFAULT_PRETALX_URL
    rooms: list[str] | None = None
    language: str | None = None
    locale: str | None = None
    day_strftime_pattern: str = DEFAULT_DAY_PATTERN
    session_strftime_pattern: str | None = None
    print_statistics: bool = False
    nextcloud_user: str | None = None
    nextcloud_password: str | None = None
    nextcloud_folder_url: str | None = None
    nextcloud_silent: bool = False

    @property
    def effective_session_pattern(self) -> str:
        """Session pattern, defaulting to the day pattern plus ``_%H%M``."""
        if self.session_strftime_pattern:
            return self.session_strftime_pattern
        return self.day_strftime_pattern + SESSION_PATTERN_SUFFIX

    @property
    def nextcloud_enabled(self) -> bool:
        return bool(self.nextcloud_folder_url)


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Only checks values; whether ``target_dir`` exists on disk is checked by
    the sync engine right before the run.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the URL format is invalid, no events are given, the
            target directory is empty, or Nextcloud is half-configured.
    """
    config.pretalx_url = config.pretalx_url.strip()

    if not config.pretalx_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid Pretalx URL '{config.pretalx_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.pretalx_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid Pretalx URL '{config.pretalx_url}': URL must include a hostname"
        )

    config.pretalx_url = config.pretalx_url.removesuffix("/")

    config.events = [e.strip() for e in config.events if e and e.strip()]
    if not config.events:
        raise ValueError(
            "No events configured. Pass --event, set PRETALX_EVENTS, "
            "or add 'events' to the pretalx section of config.yml."
        )

    if not config.target_dir or not str(config.target_dir).strip():
        raise ValueError(
            "Target directory not set. Pass --target-dir, set "
            "ROOM_ASSETS_TARGET_DIR, or add 'target_dir' to config.yml."
        )

    if config.nextcloud_folder_url:
        if not config.nextcloud_folder_url.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid Nextcloud folder URL '{config.nextcloud_folder_url}': "
                "must start with http:// or https://"
            )
        if not config.nextcloud_user or not config.nextcloud_password:
            raise ValueError(
                "Nextcloud folder URL given without user and password. Set "
                "NEXTCLOUD_USER and NEXTCLOUD_PASSWORD."
            )


def _split_list(value: str | None) -> list[str] | None:
    if value is None:
        return None
    items = [item.strip() for item in value.split(",")]
    return [item for item in items if item]


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    cli: dict[str, Any] | None = None,
    yaml_fallbacks: dict[str, Any] | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        cli: Values from the command line, keyed by ``Config`` field name.
            Missing or ``None`` values fall through to the next source.
        yaml_fallbacks: Flattened values from the YAML config file
            (see ``config_schema.to_fallbacks``).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If required config is missing after checking all
            sources, or a value is invalid.
    """
    args = {k: v for k, v in (cli or {}).items() if v is not None}
    fb = yaml_fallbacks or {}

    def pick(key: str, env_key: str, default: Any = None) -> Any:
        if key in args:
            return args[key]
        env_val = os.getenv(env_key)
        if env_val:
            return env_val.strip()
        return fb.get(key, default)

    def pick_list(key: str, env_key: str) -> list[str] | None:
        if args.get(key):
            return list(args[key])
        env_val = _split_list(os.getenv(env_key))
        if env_val:
            return env_val
        value = fb.get(key)
        return list(value) if value else None

    def pick_bool(key: str, env_key: str) -> bool:
        if args.get(key):
            return True
        env_val = _get_bool_env(env_key)
        if env_val is not None:
            return env_val
        return bool(fb.get(key, False))

    config = Config(
        events=pick_list("events", "PRETALX_EVENTS") or [],
        target_dir=pick("target_dir", "ROOM_ASSETS_TARGET_DIR", ""),
        pretalx_url=pick("pretalx_url", "PRETALX_URL", DEFAULT_PRETALX_URL),
        rooms=pick_list("rooms", "PRETALX_ROOMS"),
        language=pick("language", "PRETALX_LANGUAGE"),
        locale=pick("locale", "ROOM_ASSETS_LOCALE"),
        day_strftime_pattern=pick(
            "day_strftime_pattern", "ROOM_ASSETS_DAY_PATTERN", DEFAULT_DAY_PATTERN
        ),
        session_strftime_pattern=pick(
            "session_strftime_pattern", "ROOM_ASSETS_SESSION_PATTERN"
        ),
        print_statistics=bool(args.get("print_statistics", False)),
        nextcloud_user=pick("nextcloud_user", "NEXTCLOUD_USER"),
        nextcloud_password=pick("nextcloud_password", "NEXTCLOUD_PASSWORD"),
        nextcloud_folder_url=pick("nextcloud_folder_url", "NEXTCLOUD_FOLDER_URL"),
        nextcloud_silent=pick_bool("nextcloud_silent", "NEXTCLOUD_SILENT"),
    )

    validate_config(config)
    logger.debug(
        "Loaded config for %d event(s), target %s",
        len(config.events),
        config.target_dir,
    )

    return config
