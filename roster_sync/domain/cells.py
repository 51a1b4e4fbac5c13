"""Typed view over raw spreadsheet cell values.

gspread hands back ``str`` for formatted reads and ``int``/``float``/``bool``
for unformatted ones; other roster sources may produce ``date`` objects or
``None``. Everything that turns a cell into a label goes through
``decode_cell`` so the classifier and the date resolver share one set of rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Union


@dataclass(frozen=True)
class BlankCell:
    def as_label(self, date_format: str | None = None) -> str:
        return ""


@dataclass(frozen=True)
class TextCell:
    value: str

    def as_label(self, date_format: str | None = None) -> str:
        return self.value.strip()


@dataclass(frozen=True)
class NumberCell:
    value: int | float

    def as_label(self, date_format: str | None = None) -> str:
        if isinstance(self.value, float) and self.value.is_integer():
            return str(int(self.value))
        return str(self.value)


@dataclass(frozen=True)
class BoolCell:
    value: bool

    def as_label(self, date_format: str | None = None) -> str:
        return "TRUE" if self.value else "FALSE"


@dataclass(frozen=True)
class DateCell:
    value: date

    def as_label(self, date_format: str | None = None) -> str:
        if date_format:
            return self.value.strftime(date_format)
        return self.value.isoformat()


Cell = Union[BlankCell, TextCell, NumberCell, BoolCell, DateCell]


def decode_cell(value: Any) -> Cell:
    if value is None:
        return BlankCell()
    if isinstance(value, str):
        return TextCell(value) if value.strip() else BlankCell()
    # bool is an int subclass; check it first.
    if isinstance(value, bool):
        return BoolCell(value)
    if isinstance(value, (int, float)):
        return NumberCell(value)
    if isinstance(value, (datetime, date)):
        return DateCell(value)
    return TextCell(str(value))


def cell_label(value: Any, date_format: str | None = None) -> str:
    return decode_cell(value).as_label(date_format)


def is_blank(value: Any) -> bool:
    return isinstance(decode_cell(value), BlankCell)
