from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Union

Tier = Literal["L1", "L2"]
TIERS: tuple[Tier, Tier] = ("L1", "L2")

REASON_SHIFT_NOT_MAPPED = "shift not mapped for sync"
REASON_NO_IDENTITY = "no external identity for person"
REASON_INVALID_DESIGNATION = "designation not L1/L2"


@dataclass(frozen=True)
class PersonIdentity:
    name: str
    external_id: str


@dataclass(frozen=True)
class ShiftMapping:
    shift_name: str
    external_record_id: str


@dataclass(frozen=True)
class RosterRow:
    """One roster line restricted to the resolved date column.

    Values are kept raw (as read from the sheet) so rejected rows can be
    audited exactly as the operator typed them.
    """

    person_name: Any
    raw_designation: Any
    raw_shift_cell: Any
    row_number: int | None = None


@dataclass(frozen=True)
class NormalizedAssignment:
    person: PersonIdentity
    tier: Tier
    shift_name: str


@dataclass(frozen=True)
class RejectedRow:
    row: RosterRow
    reason: str
    shift_label: str = ""


@dataclass(frozen=True)
class IgnoredRow:
    row: RosterRow


Classification = Union[NormalizedAssignment, RejectedRow, IgnoredRow]


@dataclass(frozen=True)
class ClassificationResult:
    assignments: tuple[NormalizedAssignment, ...] = ()
    rejected: tuple[RejectedRow, ...] = ()
    ignored: tuple[IgnoredRow, ...] = ()

    @property
    def total(self) -> int:
        return len(self.assignments) + len(self.rejected) + len(self.ignored)


@dataclass
class ShiftBucket:
    shift_name: str
    tier1: list[PersonIdentity] = field(default_factory=list)
    tier2: list[PersonIdentity] = field(default_factory=list)

    def tier1_ids(self) -> list[str]:
        return [person.external_id for person in self.tier1]

    def tier2_ids(self) -> list[str]:
        return [person.external_id for person in self.tier2]


AggregatedState = dict[str, ShiftBucket]


@dataclass(frozen=True)
class SyncRecord:
    date_key: str
    fingerprint: str


@dataclass(frozen=True)
class SyncError:
    shift_name: str
    record_id: str
    message: str


@dataclass(frozen=True)
class SyncOutcome:
    updated_count: int = 0
    errors: tuple[SyncError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class DateColumn:
    date_key: str
    index: int


class RunState(str, Enum):
    SKIPPED = "skipped"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class RunResult:
    state: RunState
    date_key: str
    status_message: str
    fingerprint: str | None = None
    updated_count: int = 0
    rejected_count: int = 0
    ignored_count: int = 0
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is not RunState.FAILED


@dataclass(frozen=True)
class PlannedUpdate:
    shift_name: str
    record_id: str
    tier1_ids: tuple[str, ...]
    tier2_ids: tuple[str, ...]


@dataclass(frozen=True)
class SyncPlan:
    date_key: str
    fingerprint: str
    stored_fingerprint: str | None
    updates: tuple[PlannedUpdate, ...]
    rejected: tuple[RejectedRow, ...] = ()

    @property
    def changed(self) -> bool:
        return self.fingerprint != self.stored_fingerprint
