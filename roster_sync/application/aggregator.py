from __future__ import annotations

from typing import Iterable

from roster_sync.domain.models import AggregatedState, NormalizedAssignment, ShiftBucket


def aggregate(assignments: Iterable[NormalizedAssignment]) -> AggregatedState:
    # No dedup: the record store keeps literal lists, duplicates included.
    state: AggregatedState = {}
    for assignment in assignments:
        bucket = state.get(assignment.shift_name)
        if bucket is None:
            bucket = ShiftBucket(shift_name=assignment.shift_name)
            state[assignment.shift_name] = bucket
        if assignment.tier == "L1":
            bucket.tier1.append(assignment.person)
        else:
            bucket.tier2.append(assignment.person)
    return state
