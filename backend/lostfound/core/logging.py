"""Logging configuration."""

from __future__ import annotations

import json
import linecache
import logging
import sys
import traceback
from datetime import UTC, datetime
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from structlog.types import EventDict

# Type for exception info tuple (from sys.exc_info())
ExcInfo = tuple[type[BaseException] | None, BaseException | None, TracebackType | None]

TracebackFrame = dict[str, str | int | None]

ExceptionDetails = dict[
    str,
    None | str | list[TracebackFrame],
]

APP_LOG_FILE = "lostfound.json.log"
DB_LOG_FILE = "lostfound.db.json.log"
HTTP_LOG_FILE = "lostfound.http.json.log"

# Third-party loggers that are too chatty for the application log
DB_LOGGERS = ("sqlalchemy", "sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite")
HTTP_LOGGERS = ("httpx", "httpcore")
MODEL_LOGGERS = ("transformers", "huggingface_hub", "PIL")


def format_exception_for_json(
    exc_info: ExcInfo | None,
) -> ExceptionDetails:
    """Format exception information for JSON logging.

    Args:
        exc_info: Exception info tuple from sys.exc_info() or None

    Returns:
        Dictionary with exception_type, exception_message, exception_module,
        traceback_frames and traceback_text; empty when there is no exception.
    """
    if exc_info is None or exc_info == (None, None, None):
        return {}

    exc_type, exc_value, exc_tb = exc_info

    exception_details: ExceptionDetails = {
        "exception_type": exc_type.__name__ if exc_type else None,
        "exception_message": str(exc_value) if exc_value else None,
        "exception_module": exc_type.__module__ if exc_type else None,
    }

    if exc_tb:
        tb_frames: list[TracebackFrame] = []
        current_tb: TracebackType | None = exc_tb

        while current_tb is not None:
            frame = current_tb.tb_frame
            frame_info: TracebackFrame = {
                "filename": frame.f_code.co_filename,
                "lineno": current_tb.tb_lineno,
                "function": frame.f_code.co_name,
            }
            line = linecache.getline(frame.f_code.co_filename, current_tb.tb_lineno)
            if line:
                frame_info["source_line"] = line.strip()

            tb_frames.append(frame_info)
            current_tb = current_tb.tb_next

        exception_details["traceback_frames"] = tb_frames
        exception_details["traceback_text"] = "".join(
            traceback.format_exception(exc_type, exc_value, exc_tb)
        )

    return exception_details


def exception_processor(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Replace exc_info with structured exception fields.

    Adds an "exception" dict and a one-line "exception_summary" so failed
    classifications and persistence errors stay queryable in JSON logs.
    """
    exc_info = event_dict.pop("exc_info", None)

    if exc_info is True:
        exc_info = sys.exc_info()
    elif isinstance(exc_info, BaseException):
        exc_info = (type(exc_info), exc_info, exc_info.__traceback__)

    if exc_info and exc_info != (None, None, None):
        exception_details = format_exception_for_json(exc_info)  # type: ignore[arg-type]
        if exception_details:
            event_dict["exception"] = exception_details

            exc_type = exception_details.get("exception_type")
            exc_msg = exception_details.get("exception_message")
            if exc_type and exc_msg:
                event_dict["exception_summary"] = f"{exc_type}: {exc_msg}"

    return event_dict


class JSONFormatter(logging.Formatter):
    """JSON formatter for standard library loggers (database, HTTP client)."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON string."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = format_exception_for_json(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


def _close_handlers(logger: logging.Logger) -> None:
    """Close and remove all handlers of a logger."""
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)


def _route_loggers(names: tuple[str, ...], handler: logging.Handler, level: int) -> None:
    """Send the given stdlib loggers to a dedicated handler only."""
    for name in names:
        third_party = logging.getLogger(name)
        third_party.setLevel(level)
        third_party.propagate = False
        _close_handlers(third_party)
        third_party.addHandler(handler)


def setup_logging(debug: bool = False, logs_dir: Path | None = None) -> None:
    """Setup structured logging with structlog.

    Configures:
    - Application logs: stdout (pretty in debug, JSON otherwise), or a JSON
      file under logs_dir when given
    - Database and HTTP client logs: separate JSON files (WARNING level unless debug)
    - Model download logs (transformers, huggingface_hub): WARNING level

    Args:
        debug: Enable debug logging
        logs_dir: Optional directory for JSON log files
    """
    log_level = logging.DEBUG if debug else logging.INFO
    third_party_level = logging.INFO if debug else logging.WARNING

    app_handler: logging.Handler
    db_handler: logging.Handler | None = None
    http_handler: logging.Handler | None = None
    file_logging = False

    if logs_dir:
        try:
            logs_dir.mkdir(parents=True, exist_ok=True)
            app_handler = logging.FileHandler(logs_dir / APP_LOG_FILE, encoding="utf-8")
            db_handler = logging.FileHandler(logs_dir / DB_LOG_FILE, encoding="utf-8")
            http_handler = logging.FileHandler(logs_dir / HTTP_LOG_FILE, encoding="utf-8")
            file_logging = True
        except OSError as e:
            sys.stderr.write(f"Warning: Failed to setup file logging: {e}\n")
            app_handler = logging.StreamHandler(sys.stdout)
    else:
        app_handler = logging.StreamHandler(sys.stdout)

    app_handler.setLevel(log_level)

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=[app_handler],
        force=True,
    )

    for handler in (db_handler, http_handler):
        if handler is not None:
            handler.setFormatter(JSONFormatter())
            handler.setLevel(logging.DEBUG)

    if db_handler is not None:
        _route_loggers(DB_LOGGERS, db_handler, third_party_level)
    if http_handler is not None:
        _route_loggers(HTTP_LOGGERS, http_handler, third_party_level)

    for name in MODEL_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,  # search_id and other context
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        exception_processor,
    ]

    if debug and not file_logging:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.getLogger().setLevel(log_level)

    logger = structlog.get_logger("lostfound.logging")
    logger.info(
        "Logging configured",
        level=logging.getLevelName(log_level),
        debug=debug,
        file_logging=file_logging,
        app_log_file=str(logs_dir / APP_LOG_FILE) if file_logging and logs_dir else None,
        third_party_level=logging.getLevelName(third_party_level),
    )
