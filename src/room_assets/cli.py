"""Command line entry point for room-assets.

Exit status:
    0    sync finished, nothing changed
    1    sync finished, something changed (new, moved or updated)
    128  fatal error
    130  interrupted
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from . import __version__
from .config import DEFAULT_DAY_PATTERN, DEFAULT_PRETALX_URL, load_config
from .config_loader import load_hierarchical_config
from .config_schema import build_config, to_fallbacks
from .core.client import PretalxClient
from .core.nextcloud import NextcloudSync
from .errors import RoomAssetsError
from .logger import setup_logging
from .sync.engine import SyncEngine
from .sync.reporter import format_sync_report, statistics_json

logger = logging.getLogger(__name__)

EXIT_UNCHANGED = 0
EXIT_CHANGED = 1
EXIT_FATAL = 128
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="room-assets",
        description="Mirror Pretalx talk resources into a room/day/session directory tree",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync one event into ./assets
  room-assets --event sotm2025 --target-dir assets

  # Only two rooms, German room names and day names
  room-assets --event fossgis2025 --target-dir assets \\
      --room "Hörsaal 1" --room "Hörsaal 2" --language de --locale de_DE

  # Print the counters as JSON for scripting
  room-assets --event sotm2025 --target-dir assets --print-statistics

Exit status is 0 when nothing changed, 1 when something changed and 128 on
errors, so the tool can drive follow-up jobs from cron.
        """,
    )

    source = parser.add_argument_group("pretalx")
    source.add_argument(
        "--pretalx-url",
        help=f"Base URL of the Pretalx instance (default: {DEFAULT_PRETALX_URL})",
    )
    source.add_argument(
        "--event",
        action="append",
        dest="events",
        help="Event slug to sync (repeatable)",
    )
    source.add_argument(
        "--room",
        action="append",
        dest="rooms",
        help="Restrict the sync to this room name (repeatable)",
    )
    source.add_argument(
        "--language",
        help="Language to pick room names in when rooms have translated names",
    )

    layout = parser.add_argument_group("layout")
    layout.add_argument(
        "--target-dir",
        help="Existing directory the asset tree is written to",
    )
    layout.add_argument(
        "--locale",
        help="Locale for day and session names, e.g. de_DE.UTF-8",
    )
    layout.add_argument(
        "--day-strftime-pattern",
        help=f"strftime pattern for day directories (default: {DEFAULT_DAY_PATTERN})",
    )
    layout.add_argument(
        "--session-strftime-pattern",
        help="strftime pattern prefixed to session directories "
        "(default: day pattern + _%%H%%M)",
    )

    nextcloud = parser.add_argument_group("nextcloud")
    nextcloud.add_argument("--nextcloud-user", help="Nextcloud user")
    nextcloud.add_argument(
        "--nextcloud-password",
        help="Nextcloud password"
        " (visible in process list -- prefer NEXTCLOUD_PASSWORD env var)",
    )
    nextcloud.add_argument(
        "--nextcloud-folder-url",
        help="WebDAV URL of the Nextcloud folder to sync before and after",
    )
    nextcloud.add_argument(
        "--nextcloud-silent",
        action="store_true",
        help="Pass --silent to nextcloudcmd",
    )

    parser.add_argument(
        "--print-statistics",
        action="store_true",
        help="Print the sync counters as JSON on stdout",
    )
    parser.add_argument(
        "--config",
        help="YAML config file (default: discovered, see ROOM_ASSETS_CONFIG)",
    )
    parser.add_argument(
        "-l",
        "--log-level",
        help="Log level (default: LOG_LEVEL env var or ERROR)",
    )
    parser.add_argument("--log-file", help="Also append log records to this file")
    parser.add_argument(
        "--log-format",
        choices=("text", "json"),
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Shortcut for --log-level DEBUG",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"room-assets version {__version__}",
    )
    return parser


def _cli_values(args: argparse.Namespace) -> dict[str, Any]:
    """Config overrides from parsed args, keyed by ``Config`` field name."""
    return {
        "pretalx_url": args.pretalx_url,
        "events": args.events,
        "rooms": args.rooms,
        "language": args.language,
        "target_dir": args.target_dir,
        "locale": args.locale,
        "day_strftime_pattern": args.day_strftime_pattern,
        "session_strftime_pattern": args.session_strftime_pattern,
        "print_statistics": args.print_statistics,
        "nextcloud_user": args.nextcloud_user,
        "nextcloud_password": args.nextcloud_password,
        "nextcloud_folder_url": args.nextcloud_folder_url,
        "nextcloud_silent": args.nextcloud_silent,
    }


def main(argv: list[str] | None = None) -> int:
    """Run one sync and return the process exit status."""
    args = build_parser().parse_args(argv)

    try:
        # .env first, so ${VAR} interpolation in YAML can use its values
        load_dotenv()
        unified = build_config(load_hierarchical_config(args.config))

        setup_logging(
            level=args.log_level or unified.logging.level,
            debug=args.debug,
            log_file=args.log_file or unified.logging.file,
            log_format=args.log_format or unified.logging.format,
        )

        config = load_config(
            cli=_cli_values(args), yaml_fallbacks=to_fallbacks(unified)
        )

        with PretalxClient(config.pretalx_url) as client:
            engine = SyncEngine(
                client, config, nextcloud=NextcloudSync.from_config(config)
            )
            report = engine.run()
    except (
        RoomAssetsError,
        ValueError,
        ValidationError,
        OSError,
        yaml.YAMLError,
    ) as e:
        logger.debug("Sync aborted", exc_info=True)
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FATAL

    logger.info("%s", format_sync_report(report))

    if config.print_statistics:
        print("Sync statistics:", file=sys.stderr)
        print(statistics_json(report.total))

    return EXIT_CHANGED if report.changed else EXIT_UNCHANGED


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    run()
