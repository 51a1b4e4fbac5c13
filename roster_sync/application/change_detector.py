from __future__ import annotations

import hashlib
import json
import logging

from roster_sync.domain.models import AggregatedState
from roster_sync.domain.ports import FingerprintStorePort

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 32


def canonical_state(state: AggregatedState) -> dict[str, dict[str, list[str]]]:
    """Rebuild the state with shift names in lexicographic order.

    Only the top-level order is canonicalized; tier lists keep roster order
    because the record store keeps them in that order too.
    """
    canonical: dict[str, dict[str, list[str]]] = {}
    for shift_name in sorted(state):
        bucket = state[shift_name]
        canonical[shift_name] = {"L1": bucket.tier1_ids(), "L2": bucket.tier2_ids()}
    return canonical


def serialize_state(state: AggregatedState) -> str:
    return json.dumps(canonical_state(state), ensure_ascii=False, separators=(",", ":"))


def fingerprint(state: AggregatedState) -> str:
    payload = serialize_state(state).encode("utf-8")
    return hashlib.md5(payload, usedforsecurity=False).hexdigest()


def is_unchanged(current: str, date_key: str, store: FingerprintStorePort) -> bool:
    stored = store.get(date_key)
    if stored is None:
        logger.info("No stored fingerprint for %s.", date_key)
        return False
    return stored == current
