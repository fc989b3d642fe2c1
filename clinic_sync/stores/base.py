from __future__ import annotations

import abc
from typing import Any, Callable

Row = list[Any]
RowPredicate = Callable[[Row], bool]


class TabularStore(abc.ABC):
    """A set of named tabs, each holding a header row followed by data rows.

    Reading a tab that does not exist raises a RemoteError whose
    ``is_missing_range`` is true. Writes create the tab when needed.
    """

    name = "store"

    @abc.abstractmethod
    def read_all(self, tab: str) -> list[Row]:
        """Every row of the tab, header first, as text cells."""

    @abc.abstractmethod
    def clear(self, tab: str) -> None:
        ...

    @abc.abstractmethod
    def write_full(self, tab: str, rows: list[Row]) -> None:
        """Write ``rows`` (header included) starting at the first row."""

    @abc.abstractmethod
    def append(self, tab: str, rows: list[Row]) -> None:
        """Append data rows below the last non-empty row."""

    @abc.abstractmethod
    def delete_where(self, tab: str, predicate: RowPredicate) -> int:
        """Delete data rows matching ``predicate``; returns the count removed."""

    def read_header(self, tab: str) -> list[str]:
        rows = self.read_all(tab)
        return [str(cell) for cell in rows[0]] if rows else []

    def describe(self) -> str:
        return self.name
