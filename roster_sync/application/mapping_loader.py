from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from roster_sync.core.errors import MappingTableEmptyError
from roster_sync.domain.cells import cell_label
from roster_sync.domain.models import PersonIdentity, ShiftMapping
from roster_sync.domain.ports import RosterRepositoryPort

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Mappings:
    shifts: dict[str, ShiftMapping]
    identities: dict[str, PersonIdentity]


def build_shift_mapping(rows: Iterable[tuple[Any, Any]]) -> dict[str, ShiftMapping]:
    """Shift labels and record ids are trimmed; incomplete rows are skipped.

    A label listed twice keeps its last record id, matching how the table
    would be read top to bottom.
    """
    mapping: dict[str, ShiftMapping] = {}
    for raw_shift, raw_record_id in rows:
        shift_name = cell_label(raw_shift)
        record_id = cell_label(raw_record_id)
        if not shift_name or not record_id:
            continue
        if shift_name in mapping:
            logger.warning("Shift '%s' listed more than once in the mapping table; using the last entry.", shift_name)
        mapping[shift_name] = ShiftMapping(shift_name=shift_name, external_record_id=record_id)
    return mapping


def build_identity_mapping(rows: Iterable[tuple[Any, Any]]) -> dict[str, PersonIdentity]:
    # Names are the join key and are matched exactly, whitespace included.
    mapping: dict[str, PersonIdentity] = {}
    for raw_name, raw_external_id in rows:
        if raw_name is None:
            continue
        name = raw_name if isinstance(raw_name, str) else cell_label(raw_name)
        external_id = cell_label(raw_external_id)
        if not name.strip() or not external_id:
            continue
        if name in mapping:
            logger.warning("Person '%s' listed more than once in the identity table; using the last entry.", name)
        mapping[name] = PersonIdentity(name=name, external_id=external_id)
    return mapping


class MappingLoader:
    def __init__(self, repository: RosterRepositoryPort) -> None:
        self._repository = repository

    def load(self) -> Mappings:
        shifts = build_shift_mapping(self._repository.load_shift_mapping())
        if not shifts:
            raise MappingTableEmptyError("The shift mapping table is empty; nothing is eligible for sync.")
        identities = build_identity_mapping(self._repository.load_identity_mapping())
        if not identities:
            raise MappingTableEmptyError("The identity mapping table is empty; no person can be synced.")
        logger.info("Loaded %s shift mappings and %s identities.", len(shifts), len(identities))
        return Mappings(shifts=shifts, identities=identities)
