from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any


_KEY_VALUE_PATTERNS = [
    re.compile(
        r'(?i)("?(?:access_token|token|integration_token|client_secret|api_key|private_key|client_email)"?\s*[:=]\s*)("[^"]*"|\'[^\']*\'|[^,\s}\]]+)'  # noqa: E501
    ),
    re.compile(r"(?i)(authorization\s*[:=]\s*[\"']?bearer\s+)([^\s,;\"']+)"),
    re.compile(r"(?i)\b(secret_)([A-Za-z0-9]{8,})"),
]
_CREDENTIALS_PATH_PATTERN = re.compile(
    r"(?i)(?:[a-z]:\\[^\s'\"]*credentials\.json|/[^\s'\"]*credentials\.json)"
)


def redact_text(text: str) -> str:
    redacted = text
    for pattern in _KEY_VALUE_PATTERNS:
        redacted = pattern.sub(r"\1<REDACTED>", redacted)
    return _CREDENTIALS_PATH_PATTERN.sub("<CRED_PATH>", redacted)


def _redact_value(value: Any) -> Any:
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, Mapping):
        return {key: _redact_value(item) for key, item in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [_redact_value(item) for item in value]
    return value


class LoggingSecretsFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_text(record.msg)

        if isinstance(record.args, Mapping):
            record.args = {key: _redact_value(value) for key, value in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(_redact_value(value) for value in record.args)

        fields = getattr(record, "fields", None)
        if isinstance(fields, Mapping):
            record.fields = {key: _redact_value(value) for key, value in fields.items()}

        return True
