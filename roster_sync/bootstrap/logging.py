"""JSON-lines logging for the sync job.

Structured data travels on the ``fields`` attribute of a record
(``extra={"fields": {...}}``) and is merged into the top level of the line,
next to the correlation id and date key of the active ``RunContext``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Mapping

from roster_sync.core.observability import get_correlation_id, get_date_key
from roster_sync.core.redaction import LoggingSecretsFilter
from roster_sync.domain.models import RunResult

MAIN_LOG_NAME = "roster_sync.log"
ERROR_LOG_NAME = "operational_error.log"
CRASH_LOG_NAME = "crash.log"

_MAX_BYTES = 1_048_576
_BACKUP_COUNT = 5

# File name -> minimum level; None follows the configured level.
_LOG_FILES: dict[str, int | None] = {
    MAIN_LOG_NAME: None,
    ERROR_LOG_NAME: logging.ERROR,
    CRASH_LOG_NAME: logging.CRITICAL,
}


class JsonLinesFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
        }
        date_key = get_date_key()
        if date_key:
            line["date_key"] = date_key
        fields = getattr(record, "fields", None)
        if isinstance(fields, Mapping):
            for key, value in fields.items():
                line.setdefault(key, value)
        if record.exc_info:
            line["exc"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False, default=str)


def _file_handler(path: Path, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(JsonLinesFormatter())
    return handler


def configure_logging(log_dir: Path, *, level: int = logging.INFO, console: bool = False) -> None:
    log_dir.mkdir(parents=True, exist_ok=True)
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)

    handlers: list[logging.Handler] = [
        _file_handler(log_dir / name, min_level or level) for name, min_level in _LOG_FILES.items()
    ]
    if console:
        stream = logging.StreamHandler(sys.stderr)
        stream.setLevel(level)
        stream.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        handlers.append(stream)

    secrets = LoggingSecretsFilter()
    for handler in handlers:
        handler.addFilter(secrets)
        root.addHandler(handler)

    # urllib3 logs full request lines at DEBUG, tokens included.
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))


def log_operational_error(logger: logging.Logger, message: str, *, exc: BaseException | None = None, **fields: Any) -> None:
    exc_info = (type(exc), exc, exc.__traceback__) if exc is not None else None
    if exc is not None:
        fields.setdefault("error", str(exc))
    logger.error(message, exc_info=exc_info, extra={"fields": fields})


def log_run_summary(logger: logging.Logger, result: RunResult, metrics: Mapping[str, int | float]) -> None:
    """One ``run_finished`` line per invocation, warning level when the run failed."""
    fields: dict[str, Any] = {
        "event": "run_finished",
        "date_key": result.date_key,
        "state": result.state.value,
        "updated": result.updated_count,
        "rejected": result.rejected_count,
        "ignored": result.ignored_count,
        "fingerprint": result.fingerprint,
        "metrics": dict(metrics),
    }
    if result.error:
        fields["error"] = result.error
    level = logging.INFO if result.succeeded else logging.WARNING
    logger.log(level, "Run for %s finished: %s", result.date_key, result.status_message, extra={"fields": fields})


def install_exception_hook() -> None:
    """Send uncaught exceptions to the crash log, then to the previous hook."""
    previous = sys.excepthook

    def _hook(exc_type, exc, tb) -> None:
        logging.getLogger("roster_sync.crash").critical(
            "Unhandled exception",
            exc_info=(exc_type, exc, tb),
            extra={"fields": {"python": sys.version.split()[0], "argv": sys.argv}},
        )
        previous(exc_type, exc, tb)

    sys.excepthook = _hook
