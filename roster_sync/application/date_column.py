from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from roster_sync.core.errors import ConfigurationError, DateColumnNotFoundError
from roster_sync.domain.cells import decode_cell
from roster_sync.domain.config import DateSettings
from roster_sync.domain.models import DateColumn

logger = logging.getLogger(__name__)

Clock = Callable[[ZoneInfo], datetime]


def _system_clock(tz: ZoneInfo) -> datetime:
    return datetime.now(tz)


class DateColumnResolver:
    def __init__(self, settings: DateSettings, sheet_name: str, *, clock: Clock = _system_clock) -> None:
        try:
            self._tz = ZoneInfo(settings.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationError(f"Unknown timezone '{settings.timezone}'.") from exc
        self._date_format = settings.date_format
        self._sheet_name = sheet_name
        self._clock = clock

    def date_key(self, on: date | None = None) -> str:
        day = on or self._clock(self._tz).date()
        return day.strftime(self._date_format)

    def header_label(self, cell: Any) -> str:
        return decode_cell(cell).as_label(self._date_format)

    def resolve(self, header: Sequence[Any], date_key: str) -> DateColumn:
        for index, cell in enumerate(header):
            if self.header_label(cell) == date_key:
                logger.debug("Date %s found at column %s of %s.", date_key, index, self._sheet_name)
                return DateColumn(date_key=date_key, index=index)
        raise DateColumnNotFoundError(date_key, self._sheet_name)
