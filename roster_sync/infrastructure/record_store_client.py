from __future__ import annotations

import logging
import time
from typing import Any, Callable, Sequence

import requests

from roster_sync.core.metrics import RECORD_STORE_REQUESTS, RECORD_STORE_RETRIES, metrics_registry
from roster_sync.domain.config import RecordStoreSettings
from roster_sync.domain.ports import RecordStorePort
from roster_sync.domain.record_store_errors import (
    RecordStoreError,
    RecordStoreRateLimitError,
    RecordStoreRejectedError,
    RecordStoreTransientError,
    RecordStoreUnavailableError,
)

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}
_MAX_BACKOFF_SECONDS = 60.0


def people_property(external_ids: Sequence[str]) -> dict[str, Any]:
    return {"people": [{"object": "user", "id": external_id} for external_id in external_ids]}


def build_tier_payload(settings: RecordStoreSettings, tier1_ids: Sequence[str], tier2_ids: Sequence[str]) -> dict[str, Any]:
    return {
        "properties": {
            settings.tier1_property: people_property(tier1_ids),
            settings.tier2_property: people_property(tier2_ids),
        }
    }


def parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def error_detail(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:300]
    if isinstance(payload, dict):
        return str(payload.get("message") or payload.get("code") or payload)
    return str(payload)


class RecordStoreClient(RecordStorePort):
    """Partial updates against a Notion-style page API.

    Every update replaces both tier properties, so repeating a request is
    harmless. 429 and 5xx answers and network failures are retried with
    exponential backoff (``Retry-After`` wins when present); any other
    non-2xx answer fails immediately.
    """

    def __init__(
        self,
        settings: RecordStoreSettings,
        *,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {settings.token}",
                "Notion-Version": settings.api_version,
                "Content-Type": "application/json",
            }
        )
        self._sleep = sleep

    def update_tiers(self, record_id: str, tier1_ids: Sequence[str], tier2_ids: Sequence[str]) -> None:
        payload = build_tier_payload(self._settings, tier1_ids, tier2_ids)
        url = f"{self._settings.base_url.rstrip('/')}/pages/{record_id}"
        self._with_retry(record_id, lambda: self._patch(url, payload, record_id))

    def close(self) -> None:
        self._session.close()

    def _patch(self, url: str, payload: dict[str, Any], record_id: str) -> None:
        metrics_registry.increment(RECORD_STORE_REQUESTS)
        try:
            response = self._session.patch(url, json=payload, timeout=self._settings.timeout_seconds)
        except requests.exceptions.RequestException as exc:
            raise RecordStoreUnavailableError(
                f"Record store unreachable: {exc.__class__.__name__}",
                record_id=record_id,
            ) from exc
        if response.ok:
            return
        status = response.status_code
        detail = error_detail(response)
        if status == 429:
            raise RecordStoreRateLimitError(
                f"Record store rate limit (HTTP 429): {detail}",
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
                status_code=status,
                record_id=record_id,
            )
        if status in _RETRYABLE_STATUS:
            raise RecordStoreUnavailableError(f"Record store error (HTTP {status}): {detail}", status_code=status, record_id=record_id)
        raise RecordStoreRejectedError(f"Record store rejected the update (HTTP {status}): {detail}", status_code=status, record_id=record_id)

    def _with_retry(self, record_id: str, operation: Callable[[], None]) -> None:
        attempts = max(1, self._settings.max_retries)
        for attempt in range(1, attempts + 1):
            try:
                operation()
                return
            except RecordStoreTransientError as exc:
                if attempt >= attempts:
                    logger.error("Record %s still failing after %s attempts: %s", record_id, attempt, exc)
                    raise
                delay = self._backoff(attempt, exc)
                logger.warning(
                    "Transient record store failure on %s. attempt=%s/%s backoff=%.1fs: %s",
                    record_id,
                    attempt,
                    attempts,
                    delay,
                    exc,
                )
                metrics_registry.increment(RECORD_STORE_RETRIES)
                self._sleep(delay)
        raise RecordStoreError("Record store update could not be completed.", record_id=record_id)

    def _backoff(self, attempt: int, exc: RecordStoreTransientError) -> float:
        retry_after = getattr(exc, "retry_after", None)
        if retry_after is not None:
            return min(retry_after, _MAX_BACKOFF_SECONDS)
        return min(self._settings.backoff_seconds * (2 ** (attempt - 1)), _MAX_BACKOFF_SECONDS)
