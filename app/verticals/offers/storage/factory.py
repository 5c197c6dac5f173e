from __future__ import annotations

import threading
from typing import Dict, Tuple

from app.core.settings import Settings

from ..domain.models import DEFAULT_SHEETS
from ..errors import ConfigError
from .item_store import ItemStore
from .lock import StoreLock, build_lock
from .sql_table import SqlWorkbook
from .table import MemoryWorkbook, Workbook

SETUP_REQUIRED = (
    "SETUP_REQUIRED: set STORE_URL (memory:// or a SQLAlchemy url such as "
    "sqlite:///./offers.db) before using the offer API."
)

# one workbook and one lock per url per process (memory:// must survive between requests)
_WORKBOOKS: Dict[str, Workbook] = {}
_LOCKS: Dict[Tuple[str, str, str], StoreLock] = {}
_WORKBOOKS_LOCK = threading.Lock()


def open_workbook(url: str) -> Workbook:
    url = (url or "").strip()
    if not url:
        raise ConfigError(SETUP_REQUIRED)

    with _WORKBOOKS_LOCK:
        wb = _WORKBOOKS.get(url)
        if wb is not None:
            return wb

        if url.startswith("memory://"):
            wb = MemoryWorkbook(DEFAULT_SHEETS)
        else:
            try:
                wb = SqlWorkbook(url)
            except Exception as e:
                raise ConfigError(f"Database Access Error: {e}. Check STORE_URL.") from e
            for name, headers in DEFAULT_SHEETS.items():
                wb.create_sheet(name, headers)

        _WORKBOOKS[url] = wb
        return wb


def open_lock(s: Settings) -> StoreLock:
    """Every store on the same table shares one lock; the first caller's wait time sticks."""
    key = (
        (s.STORE_URL or "").strip(),
        (s.LOCK_BACKEND or "thread").strip().lower(),
        str(s.LOCK_FILE_PATH),
    )
    with _WORKBOOKS_LOCK:
        lock = _LOCKS.get(key)
        if lock is None:
            lock = build_lock(s)
            _LOCKS[key] = lock
        return lock


def reset_workbooks() -> None:
    with _WORKBOOKS_LOCK:
        _WORKBOOKS.clear()
        _LOCKS.clear()


def build_store(s: Settings) -> ItemStore:
    return ItemStore(open_workbook(s.STORE_URL), open_lock(s), settings=s)
