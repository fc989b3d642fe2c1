"""Local .xlsx destination: one worksheet per tab, saved after every write."""

from __future__ import annotations

from pathlib import Path

import openpyxl
from openpyxl.styles import Font

from clinic_sync.errors import RemoteError
from clinic_sync.stores.base import Row, RowPredicate, TabularStore


def _cell_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class WorkbookStore(TabularStore):
    name = "workbook"

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def describe(self) -> str:
        return str(self.path)

    def _load(self):
        if self.path.exists():
            return openpyxl.load_workbook(self.path)
        wb = openpyxl.Workbook()
        # A fresh workbook starts with an unnamed sheet we do not want.
        wb.remove(wb.active)
        return wb

    def _save(self, wb) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        wb.save(self.path)

    def _sheet(self, wb, tab: str, *, create: bool):
        if tab in wb.sheetnames:
            return wb[tab]
        if not create:
            raise RemoteError(f"Unable to parse range: '{tab}'!A:ZZ", status=400)
        return wb.create_sheet(tab)

    @staticmethod
    def _rows(ws) -> list[Row]:
        rows = []
        for values in ws.iter_rows(values_only=True):
            row = [_cell_text(value) for value in values]
            while row and row[-1] == "":
                row.pop()
            rows.append(row)
        while rows and not rows[-1]:
            rows.pop()
        return rows

    def read_all(self, tab: str) -> list[Row]:
        if not self.path.exists():
            raise RemoteError(f"Workbook not found: {self.path}", status=404)
        wb = openpyxl.load_workbook(self.path, read_only=True)
        try:
            ws = self._sheet(wb, tab, create=False)
            return self._rows(ws)
        finally:
            wb.close()

    def clear(self, tab: str) -> None:
        wb = self._load()
        if tab in wb.sheetnames:
            index = wb.sheetnames.index(tab)
            wb.remove(wb[tab])
            wb.create_sheet(tab, index)
        else:
            wb.create_sheet(tab)
        self._save(wb)

    def write_full(self, tab: str, rows: list[Row]) -> None:
        wb = self._load()
        ws = self._sheet(wb, tab, create=True)
        for r, row in enumerate(rows, start=1):
            for c, value in enumerate(row, start=1):
                ws.cell(row=r, column=c, value=value)
        for cell in ws[1]:
            cell.font = Font(bold=True)
        ws.freeze_panes = "A2"
        self._save(wb)

    def append(self, tab: str, rows: list[Row]) -> None:
        wb = self._load()
        ws = self._sheet(wb, tab, create=True)
        start = len(self._rows(ws)) + 1
        for r, row in enumerate(rows, start=start):
            for c, value in enumerate(row, start=1):
                ws.cell(row=r, column=c, value=value)
        self._save(wb)

    def delete_where(self, tab: str, predicate: RowPredicate) -> int:
        wb = self._load()
        ws = self._sheet(wb, tab, create=False)
        rows = self._rows(ws)
        doomed = [index for index, row in enumerate(rows[1:], start=2) if predicate(row)]
        for index in reversed(doomed):
            ws.delete_rows(index)
        if doomed:
            self._save(wb)
        return len(doomed)
