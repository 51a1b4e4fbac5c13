from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, TypeVar

import gspread
from gspread.utils import DateTimeOption, ValueRenderOption
from google.auth.exceptions import DefaultCredentialsError

from roster_sync.bootstrap.logging import log_operational_error
from roster_sync.core.metrics import SHEETS_READS, SHEETS_RETRIES, SHEETS_WRITES, metrics_registry
from roster_sync.domain.ports import SheetsClientPort
from roster_sync.domain.sheets_errors import SheetsPermissionError, SheetsRateLimitError
from roster_sync.infrastructure.sheets_errors import map_gspread_exception

logger = logging.getLogger(__name__)

_MAX_RETRIES = 5
_BASE_BACKOFF_SECONDS = 1

T = TypeVar("T")


def backoff_seconds(attempt: int, base_seconds: float = _BASE_BACKOFF_SECONDS) -> float:
    return base_seconds * (2 ** (attempt - 1))


class SheetsClient(SheetsClientPort):
    """Thin gspread wrapper: one spreadsheet per run, cached worksheet handles,
    bounded retry on rate limits and gspread errors mapped to domain errors."""

    def __init__(self, *, sleep: Callable[[float], None] = time.sleep, max_retries: int = _MAX_RETRIES) -> None:
        self._spreadsheet: gspread.Spreadsheet | None = None
        self._worksheet_cache: dict[str, gspread.Worksheet] = {}
        self._sleep = sleep
        self._max_retries = max_retries

    def open_spreadsheet(self, credentials_path: str, spreadsheet_id: str) -> gspread.Spreadsheet:
        logger.info("Connecting to Google Sheets spreadsheet %s", spreadsheet_id)
        try:
            client = gspread.service_account(filename=str(credentials_path))
            spreadsheet = self._with_retry("open_spreadsheet", lambda: client.open_by_key(spreadsheet_id))
        except (
            gspread.exceptions.GSpreadException,
            FileNotFoundError,
            json.JSONDecodeError,
            DefaultCredentialsError,
            ValueError,
        ) as exc:
            mapped_error = map_gspread_exception(exc)
            if isinstance(mapped_error, SheetsPermissionError):
                self._log_permission_error(mapped_error, spreadsheet_id=spreadsheet_id)
            raise mapped_error from exc
        self._spreadsheet = spreadsheet
        self._worksheet_cache = {}
        return spreadsheet

    def get_worksheet(self, name: str) -> gspread.Worksheet:
        if name in self._worksheet_cache:
            return self._worksheet_cache[name]
        if self._spreadsheet is None:
            raise RuntimeError("Spreadsheet not opened. Call open_spreadsheet first.")
        spreadsheet = self._spreadsheet
        worksheet = self._with_retry(f"spreadsheet.worksheet({name})", lambda: spreadsheet.worksheet(name))
        self._worksheet_cache[name] = worksheet
        return worksheet

    def read_all_values(self, worksheet_name: str, *, unformatted: bool = False) -> list[list[Any]]:
        worksheet = self.get_worksheet(worksheet_name)
        if unformatted:
            # Numbers come back typed; dates keep their display format.
            operation = lambda: worksheet.get_all_values(  # noqa: E731
                value_render_option=ValueRenderOption.unformatted,
                date_time_render_option=DateTimeOption.formatted_string,
            )
        else:
            operation = worksheet.get_all_values
        values = self._with_retry(f"worksheet.get_all_values({worksheet_name})", operation)
        metrics_registry.increment(SHEETS_READS)
        return values

    def append_rows(self, worksheet_name: str, rows: list[list[Any]]) -> None:
        if not rows:
            return
        worksheet = self.get_worksheet(worksheet_name)
        self._with_retry(
            f"worksheet.append_rows({worksheet_name})",
            lambda: worksheet.append_rows(rows, value_input_option=gspread.utils.ValueInputOption.raw),
        )
        metrics_registry.increment(SHEETS_WRITES)

    def update_range(self, worksheet_name: str, range_name: str, values: list[list[Any]]) -> None:
        worksheet = self.get_worksheet(worksheet_name)
        self._with_retry(
            f"worksheet.update({worksheet_name})",
            lambda: worksheet.update(values, range_name, value_input_option=gspread.utils.ValueInputOption.raw),
        )
        metrics_registry.increment(SHEETS_WRITES)

    def _with_retry(self, operation_name: str, operation: Callable[[], T]) -> T:
        for attempt in range(1, self._max_retries + 1):
            try:
                return operation()
            except gspread.exceptions.APIError as exc:
                mapped_error = map_gspread_exception(exc)
                if not isinstance(mapped_error, SheetsRateLimitError):
                    if isinstance(mapped_error, SheetsPermissionError):
                        self._log_permission_error(
                            mapped_error,
                            spreadsheet_id=getattr(self._spreadsheet, "id", None),
                            worksheet_name=worksheet_from_operation_name(operation_name),
                        )
                    raise mapped_error from exc
                if attempt >= self._max_retries:
                    logger.error("Persistent Google Sheets rate limit on %s after %s attempts.", operation_name, attempt)
                    raise mapped_error from exc
                delay = backoff_seconds(attempt)
                logger.warning(
                    "Google Sheets rate limit (%s). attempt=%s/%s backoff=%.1fs",
                    operation_name,
                    attempt,
                    self._max_retries,
                    delay,
                )
                metrics_registry.increment(SHEETS_RETRIES)
                self._sleep(delay)
            except gspread.exceptions.WorksheetNotFound as exc:
                raise map_gspread_exception(exc) from exc
        raise RuntimeError("Google Sheets operation could not be completed.")

    @staticmethod
    def _log_permission_error(
        error: SheetsPermissionError,
        *,
        spreadsheet_id: str | None = None,
        worksheet_name: str | None = None,
    ) -> None:
        log_operational_error(
            logger,
            "Sync failed: insufficient permissions on Google Sheets",
            exc=error,
            operation="sheets_permission_check",
            spreadsheet_id=spreadsheet_id,
            worksheet=worksheet_name,
        )


def worksheet_from_operation_name(operation_name: str) -> str | None:
    start = operation_name.find("(")
    end = operation_name.rfind(")")
    if start < 0 or end <= start:
        return None
    return operation_name[start + 1 : end].strip() or None
