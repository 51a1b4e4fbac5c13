from __future__ import annotations

from dataclasses import dataclass
from functools import partial

from roster_sync.application.date_column import DateColumnResolver
from roster_sync.application.use_case import RosterSyncUseCase
from roster_sync.domain.config import SyncSettings
from roster_sync.infrastructure.db import get_connection
from roster_sync.infrastructure.record_store_client import RecordStoreClient
from roster_sync.infrastructure.run_lock import SQLiteRunLock
from roster_sync.infrastructure.sheets_client import SheetsClient
from roster_sync.infrastructure.sheets_roster_repository import (
    SheetsAuditSink,
    SheetsFingerprintStore,
    SheetsRosterRepository,
    SheetsStatusReporter,
)


@dataclass
class AppContainer:
    settings: SyncSettings
    sheets_client: SheetsClient
    record_store: RecordStoreClient
    sync_use_case: RosterSyncUseCase

    def close(self) -> None:
        self.record_store.close()


def build_container(settings: SyncSettings, *, sheets_client: SheetsClient | None = None) -> AppContainer:
    client = sheets_client or SheetsClient()
    if sheets_client is None:
        client.open_spreadsheet(settings.credentials_path, settings.spreadsheet_id)

    sheets = settings.sheets
    record_store = RecordStoreClient(settings.record_store)
    use_case = RosterSyncUseCase(
        repository=SheetsRosterRepository(client, sheets, settings.layout),
        fingerprints=SheetsFingerprintStore(client, sheets.fingerprints),
        record_store=record_store,
        audit_sink=SheetsAuditSink(client, sheets.audit),
        status=SheetsStatusReporter(client, sheets.status, sheets.status_cell),
        run_lock=SQLiteRunLock(
            partial(get_connection, settings.lock.db_path),
            ttl_seconds=settings.lock.ttl_seconds,
        ),
        date_resolver=DateColumnResolver(settings.dates, sheets.roster),
    )
    return AppContainer(
        settings=settings,
        sheets_client=client,
        record_store=record_store,
        sync_use_case=use_case,
    )
