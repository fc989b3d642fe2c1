"""In-process destination store used by tests and dry runs."""

from __future__ import annotations

import copy

from clinic_sync.errors import RemoteError
from clinic_sync.stores.base import Row, RowPredicate, TabularStore


class MemoryStore(TabularStore):
    name = "memory"

    def __init__(self, tabs: dict[str, list[Row]] | None = None) -> None:
        self.tabs: dict[str, list[Row]] = copy.deepcopy(tabs) if tabs else {}
        self.calls: list[tuple[str, str]] = []

    def _rows(self, tab: str) -> list[Row]:
        if tab not in self.tabs:
            raise RemoteError(f"Unable to parse range: '{tab}'!A:ZZ", status=400)
        return self.tabs[tab]

    def read_all(self, tab: str) -> list[Row]:
        self.calls.append(("read_all", tab))
        return [["" if cell is None else str(cell) for cell in row] for row in self._rows(tab)]

    def clear(self, tab: str) -> None:
        self.calls.append(("clear", tab))
        self.tabs[tab] = []

    def write_full(self, tab: str, rows: list[Row]) -> None:
        self.calls.append(("write_full", tab))
        existing = self.tabs.setdefault(tab, [])
        fresh = [list(row) for row in rows]
        existing[: len(fresh)] = fresh

    def append(self, tab: str, rows: list[Row]) -> None:
        self.calls.append(("append", tab))
        self.tabs.setdefault(tab, []).extend(list(row) for row in rows)

    def delete_where(self, tab: str, predicate: RowPredicate) -> int:
        self.calls.append(("delete_where", tab))
        rows = self._rows(tab)
        if not rows:
            return 0
        header, data = rows[0], rows[1:]
        kept = [row for row in data if not predicate(["" if cell is None else str(cell) for cell in row])]
        self.tabs[tab] = [header] + kept
        return len(data) - len(kept)
