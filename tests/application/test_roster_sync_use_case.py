from __future__ import annotations

from datetime import date

import pytest

from roster_sync.application.status_messages import STATUS_SYNCING
from roster_sync.application.use_case import RosterSyncUseCase
from roster_sync.core.metrics import metrics_registry
from roster_sync.domain.models import REASON_NO_IDENTITY, RunState
from roster_sync.domain.sheets_errors import SheetsRateLimitError
from tests.fakes import (
    TODAY_KEY,
    FakeRecordStore,
    FakeRepository,
    InMemoryFingerprintStore,
    InMemoryRunLock,
    RecordingAuditSink,
    RecordingStatus,
)

HEADER = ["Name", "Designation", "18-Oct-2026", TODAY_KEY]


class _Harness:
    def __init__(self, date_resolver, repository: FakeRepository, **overrides) -> None:
        self.repository = repository
        self.fingerprints = overrides.get("fingerprints") or InMemoryFingerprintStore()
        self.record_store = overrides.get("record_store") or FakeRecordStore()
        self.audit = overrides.get("audit") or RecordingAuditSink()
        self.status = RecordingStatus()
        self.lock = overrides.get("lock") or InMemoryRunLock()
        self.use_case = RosterSyncUseCase(
            repository=repository,
            fingerprints=self.fingerprints,
            record_store=self.record_store,
            audit_sink=self.audit,
            status=self.status,
            run_lock=self.lock,
            date_resolver=date_resolver,
        )


def _example_repository(**kwargs) -> FakeRepository:
    defaults = dict(
        shifts=[("Shift 1", "rec-A")],
        identities=[("Ann", "id-1"), ("Ben", "id-2")],
        header=HEADER,
        rows=[
            ["Ann", "L1*", "Shift 2", "Shift 1"],
            ["Ben", "l2", "Shift 2", "Shift 1"],
            ["Cid", "L1", "Shift 2", "Shift 1"],
        ],
    )
    defaults.update(kwargs)
    return FakeRepository(**defaults)


def test_worked_example_pushes_both_tiers_and_audits_the_unknown_person(date_resolver) -> None:
    harness = _Harness(date_resolver, _example_repository())

    result = harness.use_case.run()

    assert result.state is RunState.SUCCESS
    assert result.updated_count == 1
    assert result.rejected_count == 1
    assert harness.record_store.updates == [("rec-A", ["id-1"], ["id-2"])]
    [(date_key, rejected)] = harness.audit.flushed
    assert date_key == TODAY_KEY
    assert rejected.row.person_name == "Cid"
    assert rejected.reason == REASON_NO_IDENTITY
    assert harness.fingerprints.values[TODAY_KEY] == result.fingerprint
    assert harness.status.messages == [STATUS_SYNCING, "Synced 1 shift for 19-Oct-2026."]


def test_second_run_on_unchanged_data_is_skipped(date_resolver) -> None:
    harness = _Harness(date_resolver, _example_repository())

    first = harness.use_case.run()
    second = harness.use_case.run()

    assert first.state is RunState.SUCCESS
    assert second.state is RunState.SKIPPED
    assert second.fingerprint == first.fingerprint
    assert len(harness.record_store.updates) == 1
    assert len(harness.fingerprints.puts) == 1
    assert harness.status.last == f"No changes for {TODAY_KEY}; sync skipped."
    assert metrics_registry.counter("runs_skipped") == 1


def test_changed_roster_is_pushed_again(date_resolver) -> None:
    repository = _example_repository()
    harness = _Harness(date_resolver, repository)
    harness.use_case.run()

    repository.rows[1][3] = "Off"
    result = harness.use_case.run()

    assert result.state is RunState.SUCCESS
    assert harness.record_store.updates[-1] == ("rec-A", ["id-1"], [])


def test_shift_emptied_since_last_run_is_cleared(date_resolver) -> None:
    repository = _example_repository(shifts=[("Shift 1", "rec-A"), ("Shift 2", "rec-B")])
    harness = _Harness(date_resolver, repository)

    harness.use_case.run()

    assert harness.record_store.updates == [("rec-A", ["id-1"], ["id-2"]), ("rec-B", [], [])]


def test_missing_date_column_fails_before_classification(date_resolver) -> None:
    repository = _example_repository(header=["Name", "Designation", "18-Oct-2026"])
    harness = _Harness(date_resolver, repository)

    result = harness.use_case.run()

    assert result.state is RunState.FAILED
    assert "load_today_rows" not in repository.calls
    assert harness.record_store.updates == []
    assert harness.status.last.startswith("Error: ")
    assert TODAY_KEY in harness.status.last


def test_empty_mapping_fails_before_reading_the_roster(date_resolver) -> None:
    repository = _example_repository(shifts=[])
    harness = _Harness(date_resolver, repository)

    result = harness.use_case.run()

    assert result.state is RunState.FAILED
    assert "load_roster_header" not in repository.calls
    assert "shift mapping table is empty" in result.status_message


def test_external_failure_aborts_without_committing_the_fingerprint(date_resolver) -> None:
    repository = _example_repository(shifts=[("Shift 1", "rec-A"), ("Shift 2", "rec-B"), ("Shift 3", "rec-C")])
    harness = _Harness(date_resolver, repository, record_store=FakeRecordStore(fail_on={"rec-B"}))

    result = harness.use_case.run()

    assert result.state is RunState.FAILED
    assert result.updated_count == 1
    assert [update[0] for update in harness.record_store.updates] == ["rec-A"]
    assert harness.fingerprints.puts == []
    assert "Shift 2" in harness.status.last
    assert "validation_error" in harness.status.last


def test_failed_run_is_retried_in_full_next_time(date_resolver) -> None:
    repository = _example_repository(shifts=[("Shift 1", "rec-A"), ("Shift 2", "rec-B")])
    failing_store = FakeRecordStore(fail_on={"rec-B"})
    harness = _Harness(date_resolver, repository, record_store=failing_store)
    harness.use_case.run()

    failing_store.fail_on.clear()
    result = harness.use_case.run()

    assert result.state is RunState.SUCCESS
    assert [update[0] for update in failing_store.updates] == ["rec-A", "rec-A", "rec-B"]


def test_run_is_refused_while_another_holds_the_date(date_resolver) -> None:
    repository = _example_repository()
    harness = _Harness(date_resolver, repository, lock=InMemoryRunLock(held={TODAY_KEY}))

    result = harness.use_case.run()

    assert result.state is RunState.FAILED
    assert repository.calls == []
    assert harness.status.messages == []
    assert "already running" in result.status_message


def test_lock_is_released_after_every_outcome(date_resolver) -> None:
    harness = _Harness(date_resolver, _example_repository(header=["Name"]))

    harness.use_case.run()

    assert harness.lock.held == set()
    assert harness.lock.history == [("acquire", TODAY_KEY), ("release", TODAY_KEY)]


def test_audit_failure_does_not_stop_the_sync(date_resolver) -> None:
    audit = RecordingAuditSink(fail_on_flush=SheetsRateLimitError("quota"))
    harness = _Harness(date_resolver, _example_repository(), audit=audit)

    result = harness.use_case.run()

    assert result.state is RunState.SUCCESS
    assert harness.record_store.updates == [("rec-A", ["id-1"], ["id-2"])]


def test_unexpected_errors_update_the_status_and_propagate(date_resolver) -> None:
    class BrokenRepository(FakeRepository):
        def load_roster_header(self):
            raise KeyError("boom")

    harness = _Harness(date_resolver, BrokenRepository(shifts=[("Shift 1", "rec-A")], identities=[("Ann", "id-1")]))

    with pytest.raises(KeyError):
        harness.use_case.run()

    assert harness.status.last == "Error: 'boom'"
    assert harness.lock.held == set()


def test_explicit_date_selects_another_column(date_resolver) -> None:
    harness = _Harness(date_resolver, _example_repository())

    result = harness.use_case.run(date(2026, 10, 18))

    assert result.date_key == "18-Oct-2026"
    assert result.state is RunState.SUCCESS
    assert harness.record_store.updates == [("rec-A", [], [])]
    assert [rejected.reason for _, rejected in harness.audit.flushed] == ["shift not mapped for sync"] * 3


def test_plan_reports_without_writing(date_resolver) -> None:
    repository = _example_repository(shifts=[("Shift 1", "rec-A"), ("Shift 2", "rec-B")])
    harness = _Harness(date_resolver, repository)

    plan = harness.use_case.plan()

    assert plan.changed
    assert plan.stored_fingerprint is None
    assert [(u.record_id, u.tier1_ids, u.tier2_ids) for u in plan.updates] == [
        ("rec-A", ("id-1",), ("id-2",)),
        ("rec-B", (), ()),
    ]
    assert [r.row.person_name for r in plan.rejected] == ["Cid"]
    assert harness.record_store.updates == []
    assert harness.audit.flushed == [] and harness.audit.pending == []
    assert harness.status.messages == []
    assert harness.fingerprints.puts == []
    assert harness.lock.history == []


def test_plan_after_a_run_is_unchanged(date_resolver) -> None:
    harness = _Harness(date_resolver, _example_repository())
    harness.use_case.run()

    assert harness.use_case.plan().changed is False
