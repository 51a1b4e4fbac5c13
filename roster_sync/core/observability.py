from __future__ import annotations

from contextlib import AbstractContextManager
from contextvars import ContextVar, Token
from datetime import datetime, timezone
import uuid
from typing import Any

_CORRELATION_ID: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_DATE_KEY: ContextVar[str | None] = ContextVar("date_key", default=None)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str | None:
    return _CORRELATION_ID.get()


def set_correlation_id(correlation_id: str | None) -> Token[str | None]:
    return _CORRELATION_ID.set(correlation_id)


def reset_correlation_id(token: Token[str | None]) -> None:
    _CORRELATION_ID.reset(token)


def get_date_key() -> str | None:
    return _DATE_KEY.get()


def set_date_key(date_key: str | None) -> Token[str | None]:
    return _DATE_KEY.set(date_key)


def reset_date_key(token: Token[str | None]) -> None:
    _DATE_KEY.reset(token)


class RunContext(AbstractContextManager["RunContext"]):
    """Binds a fresh correlation id (and the run's date key) to every log line
    emitted while the context is active."""

    def __init__(self, operation_name: str, date_key: str | None = None) -> None:
        self.operation_name = operation_name
        self.date_key = date_key
        self.correlation_id = generate_correlation_id()
        self._correlation_token: Token[str | None] | None = None
        self._date_key_token: Token[str | None] | None = None

    def __enter__(self) -> "RunContext":
        self._correlation_token = set_correlation_id(self.correlation_id)
        self._date_key_token = set_date_key(self.date_key)
        return self

    def __exit__(self, exc_type: object, exc: object, exc_tb: object) -> None:
        if self._date_key_token is not None:
            reset_date_key(self._date_key_token)
        if self._correlation_token is not None:
            reset_correlation_id(self._correlation_token)
        return None


def log_event(logger: Any, event_name: str, payload: dict[str, Any], correlation_id: str | None = None) -> dict[str, Any]:
    resolved_correlation_id = correlation_id or get_correlation_id()
    event = {
        "event": event_name,
        "correlation_id": resolved_correlation_id,
        "date_key": payload.get("date_key") or get_date_key(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "payload": payload,
    }
    logger.info(
        event_name,
        extra={
            "correlation_id": resolved_correlation_id,
            "fields": {"event": event_name, **payload},
        },
    )
    return event
