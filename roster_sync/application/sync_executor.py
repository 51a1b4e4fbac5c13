from __future__ import annotations

import logging
from typing import Mapping

from roster_sync.core.errors import ExternalServiceError
from roster_sync.domain.models import AggregatedState, ShiftBucket, ShiftMapping, SyncError, SyncOutcome
from roster_sync.domain.ports import RecordStorePort

logger = logging.getLogger(__name__)


def bucket_for(state: AggregatedState, shift_name: str) -> ShiftBucket:
    return state.get(shift_name) or ShiftBucket(shift_name=shift_name)


class SyncExecutor:
    """Pushes the tier lists of every mapped shift to the record store.

    Iteration follows the mapping table rather than the aggregated state, so a
    shift that lost all its people since the previous run is still pushed with
    empty lists and stale assignments are cleared downstream.
    """

    def __init__(self, record_store: RecordStorePort) -> None:
        self._record_store = record_store

    def sync(self, state: AggregatedState, shift_mapping: Mapping[str, ShiftMapping]) -> SyncOutcome:
        updated = 0
        for shift_name, mapping in shift_mapping.items():
            bucket = bucket_for(state, shift_name)
            try:
                self._record_store.update_tiers(
                    mapping.external_record_id,
                    bucket.tier1_ids(),
                    bucket.tier2_ids(),
                )
            except ExternalServiceError as exc:
                logger.error(
                    "Update of shift '%s' (record %s) failed after %s successful updates: %s",
                    shift_name,
                    mapping.external_record_id,
                    updated,
                    exc,
                )
                error = SyncError(shift_name=shift_name, record_id=mapping.external_record_id, message=str(exc))
                return SyncOutcome(updated_count=updated, errors=(error,))
            updated += 1
            logger.info(
                "Shift '%s' synced: %s L1, %s L2.",
                shift_name,
                len(bucket.tier1),
                len(bucket.tier2),
            )
        return SyncOutcome(updated_count=updated)
