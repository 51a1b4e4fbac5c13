from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from roster_sync.application.aggregator import aggregate
from roster_sync.application.change_detector import fingerprint, is_unchanged
from roster_sync.application.classifier import classify_rows
from roster_sync.application.date_column import DateColumnResolver
from roster_sync.application.mapping_loader import MappingLoader, Mappings
from roster_sync.application.status_messages import (
    STATUS_SYNCING,
    error_message,
    skipped_message,
    success_message,
)
from roster_sync.application.sync_executor import SyncExecutor, bucket_for
from roster_sync.bootstrap.logging import log_operational_error
from roster_sync.core.errors import AppError, RunAlreadyInProgressError, SyncAbortedError
from roster_sync.core.metrics import (
    RECORDS_UPDATED,
    ROWS_REJECTED,
    RUN_DURATION_MS,
    RUNS_FAILED,
    RUNS_SKIPPED,
    RUNS_STARTED,
    metrics_registry,
)
from roster_sync.core.observability import RunContext, log_event
from roster_sync.domain.models import (
    AggregatedState,
    ClassificationResult,
    PlannedUpdate,
    RunResult,
    RunState,
    SyncPlan,
)
from roster_sync.domain.ports import (
    AuditSinkPort,
    FingerprintStorePort,
    RecordStorePort,
    RosterRepositoryPort,
    RunLockPort,
    StatusReporterPort,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Snapshot:
    date_key: str
    mappings: Mappings
    classification: ClassificationResult
    state: AggregatedState
    fingerprint: str


class RosterSyncUseCase:
    """One reconciliation run: lock, load mappings, resolve today's column,
    classify, aggregate, compare fingerprints, then either skip or push every
    mapped shift and persist the new fingerprint.

    Fatal errors end here: the status surface gets the error text and the
    caller receives a FAILED ``RunResult``. Row-level problems never reach this
    level; they are audited and dropped by the classifier.
    """

    def __init__(
        self,
        *,
        repository: RosterRepositoryPort,
        fingerprints: FingerprintStorePort,
        record_store: RecordStorePort,
        audit_sink: AuditSinkPort,
        status: StatusReporterPort,
        run_lock: RunLockPort,
        date_resolver: DateColumnResolver,
    ) -> None:
        self._repository = repository
        self._fingerprints = fingerprints
        self._audit_sink = audit_sink
        self._status = status
        self._run_lock = run_lock
        self._date_resolver = date_resolver
        self._mapping_loader = MappingLoader(repository)
        self._executor = SyncExecutor(record_store)

    def run(self, on: date | None = None) -> RunResult:
        date_key = self._date_resolver.date_key(on)
        with RunContext("roster_sync", date_key), metrics_registry.measure(RUN_DURATION_MS):
            metrics_registry.increment(RUNS_STARTED)
            log_event(logger, "sync_started", {"date_key": date_key})
            try:
                with self._run_lock.hold(date_key):
                    self._status.set_status(STATUS_SYNCING)
                    result = self._run_locked(date_key)
            except RunAlreadyInProgressError as exc:
                # The status cell belongs to the run holding the lock.
                logger.warning("%s", exc)
                metrics_registry.increment(RUNS_FAILED)
                return RunResult(state=RunState.FAILED, date_key=date_key, status_message=error_message(exc), error=str(exc))
            except AppError as exc:
                return self._fail(date_key, exc)
            except Exception as exc:
                self._publish_status(error_message(exc))
                metrics_registry.increment(RUNS_FAILED)
                logger.critical("Unexpected failure while syncing %s", date_key, exc_info=True)
                raise
            log_event(
                logger,
                "sync_finished",
                {"date_key": date_key, "state": result.state.value, "updated": result.updated_count},
            )
            return result

    def plan(self, on: date | None = None) -> SyncPlan:
        """Everything ``run`` computes, without a single write."""
        date_key = self._date_resolver.date_key(on)
        with RunContext("roster_sync_plan", date_key):
            snapshot = self._snapshot(date_key)
            updates = []
            for shift_name, mapping in snapshot.mappings.shifts.items():
                bucket = bucket_for(snapshot.state, shift_name)
                updates.append(
                    PlannedUpdate(
                        shift_name=shift_name,
                        record_id=mapping.external_record_id,
                        tier1_ids=tuple(bucket.tier1_ids()),
                        tier2_ids=tuple(bucket.tier2_ids()),
                    )
                )
            return SyncPlan(
                date_key=date_key,
                fingerprint=snapshot.fingerprint,
                stored_fingerprint=self._fingerprints.get(date_key),
                updates=tuple(updates),
                rejected=snapshot.classification.rejected,
            )

    def _snapshot(self, date_key: str) -> _Snapshot:
        mappings = self._mapping_loader.load()
        header = self._repository.load_roster_header()
        column = self._date_resolver.resolve(header, date_key)
        rows = self._repository.load_today_rows(column)
        classification = classify_rows(rows, mappings.identities, mappings.shifts)
        state = aggregate(classification.assignments)
        return _Snapshot(
            date_key=date_key,
            mappings=mappings,
            classification=classification,
            state=state,
            fingerprint=fingerprint(state),
        )

    def _run_locked(self, date_key: str) -> RunResult:
        snapshot = self._snapshot(date_key)
        classification = snapshot.classification
        logger.info(
            "Classified %s rows: %s accepted, %s rejected, %s ignored.",
            classification.total,
            len(classification.assignments),
            len(classification.rejected),
            len(classification.ignored),
        )
        self._audit(date_key, classification)

        if is_unchanged(snapshot.fingerprint, date_key, self._fingerprints):
            message = skipped_message(date_key)
            self._status.set_status(message)
            metrics_registry.increment(RUNS_SKIPPED)
            log_event(logger, "sync_skipped", {"date_key": date_key, "fingerprint": snapshot.fingerprint})
            return RunResult(
                state=RunState.SKIPPED,
                date_key=date_key,
                status_message=message,
                fingerprint=snapshot.fingerprint,
                rejected_count=len(classification.rejected),
                ignored_count=len(classification.ignored),
            )

        outcome = self._executor.sync(snapshot.state, snapshot.mappings.shifts)
        if not outcome.ok:
            first = outcome.errors[0]
            raise SyncAbortedError(
                f"Update failed for shift '{first.shift_name}' (record {first.record_id}): {first.message}",
                updated_count=outcome.updated_count,
            )

        self._fingerprints.put(date_key, snapshot.fingerprint)
        metrics_registry.increment(RECORDS_UPDATED, outcome.updated_count)
        message = success_message(outcome.updated_count, date_key)
        self._status.set_status(message)
        return RunResult(
            state=RunState.SUCCESS,
            date_key=date_key,
            status_message=message,
            fingerprint=snapshot.fingerprint,
            updated_count=outcome.updated_count,
            rejected_count=len(classification.rejected),
            ignored_count=len(classification.ignored),
        )

    def _audit(self, date_key: str, classification: ClassificationResult) -> None:
        if not classification.rejected:
            return
        metrics_registry.increment(ROWS_REJECTED, len(classification.rejected))
        for rejected in classification.rejected:
            self._audit_sink.record(date_key, rejected)
        try:
            self._audit_sink.flush()
        except AppError as exc:
            # The audit trail is informative only; the sync itself can go on.
            log_operational_error(
                logger,
                "Could not write rejected rows to the audit sink",
                exc=exc,
                date_key=date_key,
                rejected=len(classification.rejected),
            )

    def _fail(self, date_key: str, exc: AppError) -> RunResult:
        message = error_message(exc)
        metrics_registry.increment(RUNS_FAILED)
        log_operational_error(
            logger,
            "Roster sync failed",
            exc=exc,
            date_key=date_key,
            error_type=type(exc).__name__,
        )
        log_event(logger, "sync_failed", {"date_key": date_key, "error": str(exc)})
        self._publish_status(message)
        return RunResult(
            state=RunState.FAILED,
            date_key=date_key,
            status_message=message,
            updated_count=getattr(exc, "updated_count", 0),
            error=str(exc),
        )

    def _publish_status(self, message: str) -> None:
        try:
            self._status.set_status(message)
        except AppError as exc:
            log_operational_error(logger, "Could not update the run status", exc=exc, status=message)
