from __future__ import annotations

import json

import gspread
from google.auth.exceptions import DefaultCredentialsError

from roster_sync.domain.sheets_errors import (
    SheetsApiDisabledError,
    SheetsConfigError,
    SheetsCredentialsError,
    SheetsError,
    SheetsNotFoundError,
    SheetsPermissionError,
    SheetsRateLimitError,
)

_RATE_LIMIT_TOKENS = (
    "[429]",
    "resource_exhausted",
    "rate_limit_exceeded",
    "quota exceeded",
    "read requests per minute per user",
)


def extract_response_status_code(ex: Exception) -> int | None:
    response = getattr(ex, "response", None)
    return getattr(response, "status_code", None)


def _extract_api_error_text(ex: gspread.exceptions.APIError) -> str:
    response = getattr(ex, "response", None)
    if response is not None:
        text = getattr(response, "text", "")
        if text:
            return text
    return str(ex)


def is_rate_limited(text_lower: str, status_code: int | None) -> bool:
    if status_code in {429, 500, 503}:
        return True
    return any(token in text_lower for token in _RATE_LIMIT_TOKENS)


def classify_api_error(text_lower: str, status_code: int | None) -> Exception:
    if is_rate_limited(text_lower, status_code):
        return SheetsRateLimitError("Google Sheets rate limit reached. Wait a minute and retry.")
    if "google sheets api has not been used" in text_lower or "it is disabled" in text_lower:
        return SheetsApiDisabledError("The Google Sheets API is not enabled for this Google Cloud project.")
    if status_code == 404 or "[404]" in text_lower or "requested entity was not found" in text_lower:
        return SheetsNotFoundError("The spreadsheet id is invalid or the sheet does not exist.")
    if status_code == 403 or "[403]" in text_lower or "permission_denied" in text_lower:
        return SheetsPermissionError("The spreadsheet is not shared with the service account.")
    return SheetsError(text_lower)


def map_gspread_exception(ex: Exception) -> Exception:
    if isinstance(ex, SheetsError | SheetsConfigError | SheetsRateLimitError):
        return ex
    if isinstance(ex, gspread.exceptions.WorksheetNotFound):
        return SheetsNotFoundError(f"Worksheet '{ex}' not found in the spreadsheet.")
    if isinstance(ex, gspread.exceptions.SpreadsheetNotFound):
        return SheetsNotFoundError("The spreadsheet id is invalid or not shared with the service account.")
    if isinstance(ex, gspread.exceptions.APIError):
        text_lower = _extract_api_error_text(ex).strip().lower()
        return classify_api_error(text_lower, extract_response_status_code(ex))
    if isinstance(ex, FileNotFoundError):
        path = getattr(ex, "filename", None)
        return SheetsCredentialsError(f"Service account credentials not found at {path}." if path else "Service account credentials not found.")
    if isinstance(ex, json.JSONDecodeError | DefaultCredentialsError | ValueError):
        return SheetsCredentialsError("The service account credentials file is not valid.")
    return SheetsError(str(ex))
