"""Counters for a single sync process.

One CLI invocation performs one run, so values are process-wide and never
aggregated across runs; the CLI logs a snapshot with the run summary.
"""

from __future__ import annotations

from collections import Counter
from contextlib import contextmanager
from time import perf_counter
from typing import Iterator

RUNS_STARTED = "runs_started"
RUNS_SKIPPED = "runs_skipped"
RUNS_FAILED = "runs_failed"
RECORDS_UPDATED = "records_updated"
ROWS_REJECTED = "rows_rejected"
SHEETS_READS = "sheets.reads"
SHEETS_WRITES = "sheets.writes"
SHEETS_RETRIES = "sheets.retries"
RECORD_STORE_REQUESTS = "record_store.requests"
RECORD_STORE_RETRIES = "record_store.retries"
RUN_DURATION_MS = "run.duration_ms"


class MetricsRegistry:
    def __init__(self) -> None:
        self._counters: Counter[str] = Counter()
        self._durations_ms: dict[str, float] = {}

    def counter(self, name: str) -> int:
        return self._counters[name]

    def increment(self, name: str, value: int = 1) -> None:
        self._counters[name] += value

    def duration_ms(self, name: str) -> float | None:
        return self._durations_ms.get(name)

    @contextmanager
    def measure(self, name: str) -> Iterator[None]:
        """Store the wall time of the block under ``name``, even if it raises."""
        started = perf_counter()
        try:
            yield
        finally:
            self._durations_ms[name] = round((perf_counter() - started) * 1000, 1)

    def reset(self) -> None:
        self._counters.clear()
        self._durations_ms.clear()

    def snapshot(self) -> dict[str, int | float]:
        values: dict[str, int | float] = dict(sorted(self._counters.items()))
        values.update(self._durations_ms)
        return values


metrics_registry = MetricsRegistry()
