from __future__ import annotations

from typing import Any, List, Mapping, Sequence

from sqlalchemy import JSON, Integer, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column, sessionmaker

from app.db import Base, make_engine, make_session_factory

from .table import Row, project_row, sheet_not_found


class SheetHeaderORM(Base):
    __tablename__ = "sheet_headers"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)
    headers: Mapped[list] = mapped_column(JSON, nullable=False)


class SheetRowORM(Base):
    __tablename__ = "sheet_rows"

    # autoincrement id = insertion order = row position
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sheet: Mapped[str] = mapped_column(String(100), index=True, nullable=False)
    cells: Mapped[dict] = mapped_column(JSON, nullable=False)


class SqlSheet:
    def __init__(self, name: str, headers: Sequence[str], session_factory: sessionmaker):
        self.name = name
        self._headers = list(headers)
        self._sessions = session_factory

    def headers(self) -> List[str]:
        return list(self._headers)

    def _row_at(self, db: Session, position: int) -> SheetRowORM:
        if position < 0:
            raise IndexError(f"{self.name}: negative row position {position}")
        row = db.execute(
            select(SheetRowORM)
            .where(SheetRowORM.sheet == self.name)
            .order_by(SheetRowORM.id)
            .offset(position)
            .limit(1)
        ).scalar_one_or_none()
        if row is None:
            raise IndexError(f"{self.name}: no row at position {position}")
        return row

    def read_rows(self) -> List[Row]:
        with self._sessions() as db:
            rows = db.execute(
                select(SheetRowORM.cells)
                .where(SheetRowORM.sheet == self.name)
                .order_by(SheetRowORM.id)
            ).scalars().all()
        return [project_row(self._headers, cells or {}) for cells in rows]

    def append_row(self, values: Mapping[str, Any]) -> Row:
        row = project_row(self._headers, values)
        with self._sessions() as db:
            db.add(SheetRowORM(sheet=self.name, cells=row))
            db.commit()
        return row

    def write_cell(self, position: int, header: str, value: Any) -> None:
        if header not in self._headers:
            raise KeyError(header)
        with self._sessions() as db:
            row = self._row_at(db, position)
            # JSON column: assign a new dict so the change is tracked
            cells = dict(row.cells or {})
            cells[header] = value
            row.cells = cells
            db.commit()

    def delete_row(self, position: int) -> None:
        with self._sessions() as db:
            db.delete(self._row_at(db, position))
            db.commit()


class SqlWorkbook:
    """Sheets persisted through SQLAlchemy (sqlite, postgres, ...)."""

    backend_name = "sql"

    def __init__(self, url: str):
        self.url = url
        self._sessions = make_session_factory(make_engine(url))

    def has_sheet(self, name: str) -> bool:
        with self._sessions() as db:
            return db.get(SheetHeaderORM, name) is not None

    def sheet(self, name: str) -> SqlSheet:
        with self._sessions() as db:
            hdr = db.get(SheetHeaderORM, name)
            if hdr is None:
                raise sheet_not_found(name)
            headers = list(hdr.headers or [])
        return SqlSheet(name, headers, self._sessions)

    def create_sheet(self, name: str, headers: Sequence[str]) -> SqlSheet:
        with self._sessions() as db:
            hdr = db.get(SheetHeaderORM, name)
            if hdr is None:
                hdr = SheetHeaderORM(name=name, headers=list(headers))
                db.add(hdr)
                db.commit()
            existing = list(hdr.headers or [])
        return SqlSheet(name, existing, self._sessions)
