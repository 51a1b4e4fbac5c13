from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

from roster_sync.domain.cells import cell_label
from roster_sync.domain.config import RosterLayout, SheetNames
from roster_sync.domain.models import DateColumn, RejectedRow, RosterRow, SyncRecord
from roster_sync.domain.ports import (
    AuditSinkPort,
    FingerprintStorePort,
    RosterRepositoryPort,
    SheetsClientPort,
    StatusReporterPort,
)

logger = logging.getLogger(__name__)


def cell_at(row: Sequence[Any], index: int) -> Any:
    if 0 <= index < len(row):
        return row[index]
    return None


def two_column_rows(values: list[list[Any]], header_rows: int) -> list[tuple[Any, Any]]:
    return [(cell_at(row, 0), cell_at(row, 1)) for row in values[header_rows:]]


class SheetsRosterRepository(RosterRepositoryPort):
    def __init__(self, client: SheetsClientPort, sheets: SheetNames, layout: RosterLayout) -> None:
        self._client = client
        self._sheets = sheets
        self._layout = layout
        self._roster_values: list[list[Any]] | None = None

    def load_shift_mapping(self) -> list[tuple[Any, Any]]:
        values = self._client.read_all_values(self._sheets.shift_mapping)
        return two_column_rows(values, self._layout.mapping_header_rows)

    def load_identity_mapping(self) -> list[tuple[Any, Any]]:
        values = self._client.read_all_values(self._sheets.identity_mapping)
        return two_column_rows(values, self._layout.mapping_header_rows)

    def load_roster_header(self) -> list[Any]:
        self._roster_values = self._client.read_all_values(self._sheets.roster, unformatted=True)
        header_index = self._layout.header_row - 1
        if header_index >= len(self._roster_values):
            return []
        return list(self._roster_values[header_index])

    def load_today_rows(self, column: DateColumn) -> list[RosterRow]:
        values = self._roster_values
        if values is None:
            values = self._client.read_all_values(self._sheets.roster, unformatted=True)
        rows: list[RosterRow] = []
        for offset, row in enumerate(values[self._layout.first_data_row - 1 :]):
            rows.append(
                RosterRow(
                    person_name=cell_at(row, self._layout.name_column),
                    raw_designation=cell_at(row, self._layout.designation_column),
                    raw_shift_cell=cell_at(row, column.index),
                    row_number=self._layout.first_data_row + offset,
                )
            )
        return rows


class SheetsFingerprintStore(FingerprintStorePort):
    """Two columns, date key and fingerprint, one row per date key."""

    def __init__(self, client: SheetsClientPort, sheet_name: str) -> None:
        self._client = client
        self._sheet_name = sheet_name

    def get(self, date_key: str) -> str | None:
        found = self._find(date_key)
        if found is None:
            return None
        return found[1].fingerprint or None

    def put(self, date_key: str, fingerprint: str) -> None:
        values = [[date_key, fingerprint]]
        found = self._find(date_key)
        if found is None:
            self._client.append_rows(self._sheet_name, values)
            return
        row_number = found[0]
        self._client.update_range(self._sheet_name, f"A{row_number}:B{row_number}", values)

    def _find(self, date_key: str) -> tuple[int, SyncRecord] | None:
        values = self._client.read_all_values(self._sheet_name)
        for row_number, row in enumerate(values, start=1):
            if cell_label(cell_at(row, 0)) == date_key:
                return row_number, SyncRecord(date_key=date_key, fingerprint=cell_label(cell_at(row, 1)))
        return None


class SheetsAuditSink(AuditSinkPort):
    """Buffers rejected rows and appends them in one batch per run."""

    def __init__(
        self,
        client: SheetsClientPort,
        sheet_name: str,
        *,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._client = client
        self._sheet_name = sheet_name
        self._now = now
        self._pending: list[list[Any]] = []

    def record(self, date_key: str, rejected: RejectedRow) -> None:
        row = rejected.row
        self._pending.append(
            [
                self._now().isoformat(timespec="seconds"),
                date_key,
                _raw(row.person_name),
                _raw(row.raw_designation),
                _raw(row.raw_shift_cell),
                rejected.reason,
            ]
        )

    def flush(self) -> None:
        if not self._pending:
            return
        pending, self._pending = self._pending, []
        self._client.append_rows(self._sheet_name, pending)
        logger.info("Wrote %s rejected rows to '%s'.", len(pending), self._sheet_name)


class SheetsStatusReporter(StatusReporterPort):
    def __init__(self, client: SheetsClientPort, sheet_name: str, cell: str) -> None:
        self._client = client
        self._sheet_name = sheet_name
        self._cell = cell

    def set_status(self, message: str) -> None:
        logger.info("Status: %s", message)
        self._client.update_range(self._sheet_name, self._cell, [[message]])


def _raw(value: Any) -> Any:
    return "" if value is None else value
