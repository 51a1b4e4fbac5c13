from __future__ import annotations

from typing import Iterable, Mapping

from roster_sync.domain.cells import cell_label, is_blank
from roster_sync.domain.models import (
    REASON_INVALID_DESIGNATION,
    REASON_NO_IDENTITY,
    REASON_SHIFT_NOT_MAPPED,
    TIERS,
    Classification,
    ClassificationResult,
    IgnoredRow,
    NormalizedAssignment,
    PersonIdentity,
    RejectedRow,
    RosterRow,
    ShiftMapping,
)


def normalize_designation(raw: object) -> str:
    # Only case and asterisks are normalized; surrounding spaces make the value invalid.
    text = raw if isinstance(raw, str) else cell_label(raw)
    return text.upper().replace("*", "")


def normalize_shift_label(raw: object) -> str:
    return cell_label(raw)


def _person_key(raw: object) -> str:
    return raw if isinstance(raw, str) else cell_label(raw)


def classify(
    row: RosterRow,
    identity_map: Mapping[str, PersonIdentity],
    shift_map: Mapping[str, ShiftMapping],
) -> Classification:
    """First matching rule wins: blank name, unmapped shift, unknown person,
    designation outside L1/L2, then a normalized assignment."""
    if is_blank(row.person_name):
        return IgnoredRow(row=row)

    designation = normalize_designation(row.raw_designation)
    shift_name = normalize_shift_label(row.raw_shift_cell)

    if shift_name not in shift_map:
        return RejectedRow(row=row, reason=REASON_SHIFT_NOT_MAPPED, shift_label=shift_name)

    person = identity_map.get(_person_key(row.person_name))
    if person is None:
        return RejectedRow(row=row, reason=REASON_NO_IDENTITY, shift_label=shift_name)

    if designation not in TIERS:
        return RejectedRow(row=row, reason=REASON_INVALID_DESIGNATION, shift_label=shift_name)

    return NormalizedAssignment(person=person, tier=designation, shift_name=shift_name)


def classify_rows(
    rows: Iterable[RosterRow],
    identity_map: Mapping[str, PersonIdentity],
    shift_map: Mapping[str, ShiftMapping],
) -> ClassificationResult:
    assignments: list[NormalizedAssignment] = []
    rejected: list[RejectedRow] = []
    ignored: list[IgnoredRow] = []
    for row in rows:
        outcome = classify(row, identity_map, shift_map)
        if isinstance(outcome, NormalizedAssignment):
            assignments.append(outcome)
        elif isinstance(outcome, RejectedRow):
            rejected.append(outcome)
        else:
            ignored.append(outcome)
    return ClassificationResult(
        assignments=tuple(assignments),
        rejected=tuple(rejected),
        ignored=tuple(ignored),
    )
