from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class SheetNames:
    roster: str = "Roster"
    shift_mapping: str = "Shift Mapping"
    identity_mapping: str = "User Mapping"
    fingerprints: str = "Sync State"
    audit: str = "Sync Log"
    status: str = "Sync Status"
    status_cell: str = "A1"


@dataclass(frozen=True)
class RosterLayout:
    """Row numbers are 1-based like the sheet; columns are 0-based offsets."""

    header_row: int = 1
    first_data_row: int = 2
    name_column: int = 0
    designation_column: int = 1
    mapping_header_rows: int = 1


@dataclass(frozen=True)
class DateSettings:
    date_format: str = "%d-%b-%Y"
    timezone: str = "UTC"


@dataclass(frozen=True)
class RecordStoreSettings:
    token: str = field(default="", repr=False)
    base_url: str = "https://api.notion.com/v1"
    api_version: str = "2022-06-28"
    tier1_property: str = "L1"
    tier2_property: str = "L2"
    timeout_seconds: float = 30.0
    max_retries: int = 4
    backoff_seconds: float = 1.0


@dataclass(frozen=True)
class LockSettings:
    db_path: Path | None = None
    ttl_seconds: int = 1800


@dataclass(frozen=True)
class SyncSettings:
    spreadsheet_id: str
    credentials_path: str
    sheets: SheetNames = field(default_factory=SheetNames)
    layout: RosterLayout = field(default_factory=RosterLayout)
    dates: DateSettings = field(default_factory=DateSettings)
    record_store: RecordStoreSettings = field(default_factory=RecordStoreSettings)
    lock: LockSettings = field(default_factory=LockSettings)
