import json
import logging
import os
import sys

_DATEFMT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter for structured log output.

    Produces one JSON object per log record with fields: ts, level, logger, msg.
    Exception info is included as an "exc" field when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def resolve_level(level: str | None = None, debug: bool = False) -> int:
    """Map a level name to a ``logging`` constant.

    Precedence: ``debug`` flag > explicit *level* > ``LOG_LEVEL`` env var >
    ``ERROR``.  Unknown names fall back to ``ERROR``.  ``warn`` is accepted
    as an alias for ``WARNING``.
    """
    if debug:
        return logging.DEBUG
    name = (level or os.getenv("LOG_LEVEL") or "ERROR").upper()
    if name == "WARN":
        name = "WARNING"
    value = getattr(logging, name, None)
    return value if isinstance(value, int) else logging.ERROR


def setup_logging(
    level: str | None = None,
    debug: bool = False,
    log_file: str | None = None,
    log_format: str = "text",
) -> None:
    """
    Configure logging for a sync run.

    Records always go to stderr so that ``--print-statistics`` output on
    stdout stays machine-readable.  When *log_file* is given, records are
    also appended to that file.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        debug: If True, overrides *level* to DEBUG.
        log_file: Optional additional log file.
        log_format: "text" (default) or "json" for structured output.

    Environment variables:
        LOG_LEVEL: Used when *level* is not given. Default: ERROR.
    """
    log_level = resolve_level(level, debug)

    handlers: list[logging.Handler] = []
    stderr_handler = logging.StreamHandler(sys.stderr)
    if log_format == "json":
        stderr_handler.setFormatter(JsonFormatter(datefmt=_DATEFMT))
    else:
        stderr_handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] [%(levelname)s] %(message)s",
                datefmt=_DATEFMT,
            )
        )
    handlers.append(stderr_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        if log_format == "json":
            file_handler.setFormatter(JsonFormatter(datefmt=_DATEFMT))
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
                    datefmt=_DATEFMT,
                )
            )
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
    )

    # Silence third-party libs unless DEBUG
    if log_level != logging.DEBUG:
        logging.getLogger("urllib3").setLevel(logging.WARNING)
        logging.getLogger("requests").setLevel(logging.WARNING)
