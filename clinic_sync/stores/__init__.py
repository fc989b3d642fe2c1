from clinic_sync.stores.base import TabularStore
from clinic_sync.stores.memory import MemoryStore
from clinic_sync.stores.sheets import SheetsStore
from clinic_sync.stores.workbook import WorkbookStore

__all__ = ["MemoryStore", "SheetsStore", "TabularStore", "WorkbookStore"]
