from __future__ import annotations

from types import SimpleNamespace

import gspread
import pytest

from roster_sync.core.metrics import SHEETS_READS, SHEETS_RETRIES, SHEETS_WRITES, metrics_registry
from roster_sync.domain.sheets_errors import SheetsNotFoundError, SheetsPermissionError, SheetsRateLimitError
from roster_sync.infrastructure.sheets_client import SheetsClient, backoff_seconds, worksheet_from_operation_name


class _RateLimitedResp:
    status_code = 429
    text = "[429] Quota exceeded for quota metric 'Read requests per minute per user'."


class _ForbiddenResp:
    status_code = 403
    text = '{"error": {"code": 403, "message": "The caller does not have permission", "status": "PERMISSION_DENIED"}}'


class _FakeWorksheet:
    def __init__(self, values: list[list[object]], failures: int = 0) -> None:
        self.values = values
        self.failures = failures
        self.read_kwargs: list[dict] = []
        self.appended: list[tuple[list, dict]] = []
        self.updated: list[tuple[list, str, dict]] = []

    def get_all_values(self, **kwargs):
        self.read_kwargs.append(kwargs)
        if self.failures:
            self.failures -= 1
            raise gspread.exceptions.APIError(_RateLimitedResp())
        return self.values

    def append_rows(self, rows, **kwargs):
        self.appended.append((rows, kwargs))

    def update(self, values, range_name, **kwargs):
        self.updated.append((values, range_name, kwargs))


class _FakeSpreadsheet:
    id = "sheet-123"

    def __init__(self, worksheets: dict[str, _FakeWorksheet]) -> None:
        self.worksheets = worksheets
        self.lookups: list[str] = []

    def worksheet(self, name: str) -> _FakeWorksheet:
        self.lookups.append(name)
        if name not in self.worksheets:
            raise gspread.exceptions.WorksheetNotFound(name)
        return self.worksheets[name]


def _attached(worksheets: dict[str, _FakeWorksheet], sleeps: list[float], max_retries: int = 5) -> tuple[SheetsClient, _FakeSpreadsheet]:
    client = SheetsClient(sleep=sleeps.append, max_retries=max_retries)
    spreadsheet = _FakeSpreadsheet(worksheets)
    client._spreadsheet = spreadsheet
    return client, spreadsheet


def test_backoff_doubles_per_attempt() -> None:
    assert [backoff_seconds(attempt) for attempt in (1, 2, 3, 4)] == [1, 2, 4, 8]


def test_worksheet_from_operation_name() -> None:
    assert worksheet_from_operation_name("worksheet.append_rows(Sync Log)") == "Sync Log"
    assert worksheet_from_operation_name("open_spreadsheet") is None


def test_worksheets_are_looked_up_once() -> None:
    sleeps: list[float] = []
    client, spreadsheet = _attached({"Roster": _FakeWorksheet([["Name"]])}, sleeps)

    client.read_all_values("Roster")
    client.read_all_values("Roster")

    assert spreadsheet.lookups == ["Roster"]
    assert metrics_registry.counter(SHEETS_READS) == 2


def test_unformatted_read_asks_for_raw_numbers_and_formatted_dates() -> None:
    worksheet = _FakeWorksheet([["Name", 3]])
    client, _ = _attached({"Roster": worksheet}, [])

    client.read_all_values("Roster", unformatted=True)

    [kwargs] = worksheet.read_kwargs
    assert kwargs["value_render_option"] == gspread.utils.ValueRenderOption.unformatted
    assert kwargs["date_time_render_option"] == gspread.utils.DateTimeOption.formatted_string


def test_rate_limit_is_retried_with_backoff() -> None:
    sleeps: list[float] = []
    client, _ = _attached({"Roster": _FakeWorksheet([["ok"]], failures=2)}, sleeps)

    assert client.read_all_values("Roster") == [["ok"]]
    assert sleeps == [1, 2]
    assert metrics_registry.counter(SHEETS_RETRIES) == 2
    assert metrics_registry.counter(SHEETS_READS) == 1


def test_persistent_rate_limit_raises_after_max_retries() -> None:
    sleeps: list[float] = []
    client, _ = _attached({"Roster": _FakeWorksheet([], failures=10)}, sleeps, max_retries=3)

    with pytest.raises(SheetsRateLimitError):
        client.read_all_values("Roster")

    assert len(sleeps) == 2


def test_missing_worksheet_is_a_not_found_error() -> None:
    client, _ = _attached({}, [])

    with pytest.raises(SheetsNotFoundError, match="Sync Log"):
        client.append_rows("Sync Log", [["row"]])


def test_writes_use_raw_input() -> None:
    worksheet = _FakeWorksheet([])
    client, _ = _attached({"Sync State": worksheet}, [])

    client.append_rows("Sync State", [["19-Oct-2026", "abc"]])
    client.append_rows("Sync State", [])
    client.update_range("Sync State", "A2:B2", [["19-Oct-2026", "def"]])

    assert worksheet.appended == [([["19-Oct-2026", "abc"]], {"value_input_option": gspread.utils.ValueInputOption.raw})]
    assert worksheet.updated == [([["19-Oct-2026", "def"]], "A2:B2", {"value_input_option": gspread.utils.ValueInputOption.raw})]
    assert metrics_registry.counter(SHEETS_WRITES) == 2


def test_permission_error_is_logged_with_context(monkeypatch) -> None:
    client = SheetsClient()
    client._spreadsheet = SimpleNamespace(id="sheet-123")
    captured: dict[str, object] = {}

    def fake_log_permission_error(error, *, spreadsheet_id=None, worksheet_name=None) -> None:
        captured.update(error=error, spreadsheet_id=spreadsheet_id, worksheet_name=worksheet_name)

    monkeypatch.setattr(client, "_log_permission_error", fake_log_permission_error)

    def fail_operation():
        raise gspread.exceptions.APIError(_ForbiddenResp())

    with pytest.raises(SheetsPermissionError):
        client._with_retry("worksheet.update(Sync Status)", fail_operation)

    assert isinstance(captured["error"], SheetsPermissionError)
    assert captured["spreadsheet_id"] == "sheet-123"
    assert captured["worksheet_name"] == "Sync Status"


def test_non_api_exceptions_are_reraised() -> None:
    client = SheetsClient()

    def fail_operation():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        client._with_retry("worksheet.get_all_values(Roster)", fail_operation)


def test_reading_before_opening_is_a_programming_error() -> None:
    with pytest.raises(RuntimeError, match="not opened"):
        SheetsClient().read_all_values("Roster")
