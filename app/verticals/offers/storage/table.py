from __future__ import annotations

import threading
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from ..errors import ConfigError

Row = Dict[str, Any]


class Sheet(Protocol):
    """
    One named table: a header row plus data rows.
    Positions are 0-based data-row indexes in insertion order.
    """

    name: str

    def headers(self) -> List[str]: ...

    def read_rows(self) -> List[Row]: ...

    def append_row(self, values: Mapping[str, Any]) -> Row: ...

    def write_cell(self, position: int, header: str, value: Any) -> None: ...

    def delete_row(self, position: int) -> None: ...


class Workbook(Protocol):
    backend_name: str

    def has_sheet(self, name: str) -> bool: ...

    def sheet(self, name: str) -> Sheet: ...

    def create_sheet(self, name: str, headers: Sequence[str]) -> Sheet: ...


def sheet_not_found(name: str) -> ConfigError:
    return ConfigError(f"Sheet not found: {name}", {"sheet": name})


def project_row(headers: Sequence[str], values: Mapping[str, Any]) -> Row:
    # unknown keys are dropped, missing headers become ""
    return {h: values.get(h, "") for h in headers}


# =============================================================================
# In-process workbook
# =============================================================================


class MemorySheet:
    def __init__(self, name: str, headers: Sequence[str]):
        self.name = name
        self._headers = list(headers)
        self._rows: List[List[Any]] = []
        # guards list integrity only; serialization of store calls is the StoreLock's job
        self._mutex = threading.Lock()

    def headers(self) -> List[str]:
        return list(self._headers)

    def read_rows(self) -> List[Row]:
        with self._mutex:
            snapshot = [list(r) for r in self._rows]
        return [dict(zip(self._headers, r)) for r in snapshot]

    def append_row(self, values: Mapping[str, Any]) -> Row:
        row = project_row(self._headers, values)
        with self._mutex:
            self._rows.append([row[h] for h in self._headers])
        return row

    def write_cell(self, position: int, header: str, value: Any) -> None:
        col = self._headers.index(header)
        with self._mutex:
            self._rows[position][col] = value

    def delete_row(self, position: int) -> None:
        with self._mutex:
            del self._rows[position]


class MemoryWorkbook:
    backend_name = "memory"

    def __init__(self, sheets: Optional[Mapping[str, Sequence[str]]] = None):
        self._sheets: Dict[str, MemorySheet] = {}
        for name, headers in (sheets or {}).items():
            self.create_sheet(name, headers)

    def has_sheet(self, name: str) -> bool:
        return name in self._sheets

    def sheet(self, name: str) -> MemorySheet:
        try:
            return self._sheets[name]
        except KeyError:
            raise sheet_not_found(name) from None

    def create_sheet(self, name: str, headers: Sequence[str]) -> MemorySheet:
        if name not in self._sheets:
            self._sheets[name] = MemorySheet(name, headers)
        return self._sheets[name]
