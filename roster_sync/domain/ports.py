from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Protocol, Sequence

from roster_sync.domain.models import DateColumn, RejectedRow, RosterRow


class SheetsClientPort(Protocol):
    def open_spreadsheet(self, credentials_path: str, spreadsheet_id: str) -> Any:
        ...

    def read_all_values(self, worksheet_name: str, *, unformatted: bool = False) -> list[list[Any]]:
        ...

    def append_rows(self, worksheet_name: str, rows: list[list[Any]]) -> None:
        ...

    def update_range(self, worksheet_name: str, range_name: str, values: list[list[Any]]) -> None:
        ...


class RosterRepositoryPort(Protocol):
    """Storage-agnostic access to the roster, the mapping tables and the
    fingerprint table."""

    def load_shift_mapping(self) -> list[tuple[Any, Any]]:
        ...

    def load_identity_mapping(self) -> list[tuple[Any, Any]]:
        ...

    def load_roster_header(self) -> list[Any]:
        ...

    def load_today_rows(self, column: DateColumn) -> list[RosterRow]:
        ...


class FingerprintStorePort(Protocol):
    def get(self, date_key: str) -> str | None:
        ...

    def put(self, date_key: str, fingerprint: str) -> None:
        ...


class RecordStorePort(Protocol):
    def update_tiers(self, record_id: str, tier1_ids: Sequence[str], tier2_ids: Sequence[str]) -> None:
        ...


class AuditSinkPort(Protocol):
    def record(self, date_key: str, rejected: RejectedRow) -> None:
        ...

    def flush(self) -> None:
        ...


class StatusReporterPort(Protocol):
    def set_status(self, message: str) -> None:
        ...


class RunLockPort(Protocol):
    def hold(self, date_key: str) -> AbstractContextManager[None]:
        ...
