from __future__ import annotations

import json
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional
from uuid import uuid4

from app.core.logging_config import logger
from app.core.settings import Settings, get_settings

from ..domain.models import (
    COL_ACTUAL_QTY,
    COL_CONFIG_ID,
    COL_CONFIG_VALUE,
    COL_CREATED_TIME,
    COL_INCLUDED,
    COL_INCOTERM_AV,
    COL_INCOTERM_SUPPLIER,
    COL_ITEM_ID,
    COL_MARKUP,
    COL_MODIFIED_TIME,
    COL_OFFER_ID,
    COL_PRICE_VALIDITY,
    COL_PRODUCT_ID,
    COL_PURCHASE_CURRENCY,
    COL_PURCHASE_PRICE,
    COL_QTY_FROM,
    COL_RATES,
    COL_SELLING_CURRENCY,
    COL_SHIPS,
    COL_UNIT,
    CONFIG_PRICE_VALIDITY,
    FIELD_MAP,
    SHEET_CONFIG,
    SHEET_ITEMS,
    SHEET_OFFERS,
    SHEET_PRODUCTS,
    SHEET_SUPPLIERS,
    SHEET_TRANSPORT,
    TIER_THRESHOLDS,
    TRANSPORT_HEADERS,
)
from ..errors import ConfigError, NotFoundError, OffersError, ValidationError
from .lock import StoreLock
from .table import Row, Sheet, Workbook


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _same_id(cell: Any, wanted: str) -> bool:
    return cell is not None and str(cell) == wanted


class ItemStore:
    """
    Authoritative offer-item table.

    Every mutating call runs inside ONE global critical section (StoreLock):
    acquire -> re-read table -> locate row(s) -> mutate -> release.
    Reads (get_offer_data, get_rate_tables) do not take the lock and may
    observe a mutation in progress.

    Lookups scan from the end of the table, so if an id ever occurs twice
    the most recently appended row is the one that is touched.
    """

    def __init__(
        self,
        workbook: Workbook,
        lock: StoreLock,
        *,
        settings: Optional[Settings] = None,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.workbook = workbook
        self.lock = lock
        self.settings = settings or get_settings()
        self._new_id = id_factory
        self._now = clock

    # -----------------
    # critical section
    # -----------------

    @contextmanager
    def _critical(self, operation: str, **ctx: Any) -> Iterator[None]:
        t0 = time.time()
        bound = logger.bind(operation=operation, **ctx)
        result = "ok"
        try:
            with self.lock.hold():
                yield
        except OffersError as e:
            result = e.code
            raise
        except Exception:
            result = "error"
            raise
        finally:
            bound.bind(
                result=result, duration_ms=round((time.time() - t0) * 1000, 2)
            ).info("store_mutation")

    # -----------------
    # helpers
    # -----------------

    @staticmethod
    def _require_column(sheet: Sheet, header: str) -> None:
        if header not in sheet.headers():
            raise ConfigError(f"Column not found: {header}", {"sheet": sheet.name})

    @staticmethod
    def _find_newest(rows: List[Row], item_id: str) -> int:
        for pos in range(len(rows) - 1, -1, -1):
            if _same_id(rows[pos].get(COL_ITEM_ID), item_id):
                return pos
        return -1

    def _locate_item(self, item_id: str, *, missing: str = "Item not found") -> tuple[Sheet, List[Row], int]:
        if not item_id:
            raise ValidationError("offer_item_id is required")
        sheet = self.workbook.sheet(SHEET_ITEMS)
        self._require_column(sheet, COL_ITEM_ID)
        rows = sheet.read_rows()
        pos = self._find_newest(rows, item_id)
        if pos < 0:
            raise NotFoundError(missing, {"offer_item_id": item_id})
        return sheet, rows, pos

    def _stamp_modified(self, sheet: Sheet, pos: int) -> None:
        if COL_MODIFIED_TIME in sheet.headers():
            sheet.write_cell(pos, COL_MODIFIED_TIME, self._now().isoformat())

    def _default_price_validity(self) -> str:
        if self.settings.DEFAULT_PRICE_VALIDITY:
            return self.settings.DEFAULT_PRICE_VALIDITY
        for entry in self._safe_rows(SHEET_CONFIG):
            if entry.get(COL_CONFIG_ID) == CONFIG_PRICE_VALIDITY and entry.get(COL_CONFIG_VALUE):
                return str(entry[COL_CONFIG_VALUE])[:10]
        return f"{self._now().year}-12-31"

    def _safe_rows(self, sheet_name: str) -> List[Row]:
        try:
            return self.workbook.sheet(sheet_name).read_rows()
        except ConfigError as e:
            logger.bind(sheet=sheet_name).warning("sheet_missing", message=e.message)
            return []

    # =========================================================================
    # Reads (unlocked)
    # =========================================================================

    def get_offer_data(self, offer_id: str) -> Dict[str, Any]:
        offers = self._safe_rows(SHEET_OFFERS)
        items = self._safe_rows(SHEET_ITEMS)

        offer = next((o for o in offers if _same_id(o.get(COL_OFFER_ID), offer_id)), None)
        return {
            "offer": offer,
            "items": [i for i in items if _same_id(i.get(COL_OFFER_ID), offer_id)],
            "products": self._safe_rows(SHEET_PRODUCTS),
            "suppliers": self._safe_rows(SHEET_SUPPLIERS),
            "config": self._safe_rows(SHEET_CONFIG),
            "transportCosts": [],
        }

    def get_rate_tables(self) -> Dict[str, Any]:
        if not self.workbook.has_sheet(SHEET_TRANSPORT):
            return {}
        rows = self.workbook.sheet(SHEET_TRANSPORT).read_rows()
        raw = rows[0].get(COL_RATES) if rows else None
        if not raw:
            return {}
        try:
            parsed = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("rate_tables_unparsable")
            return {}
        return parsed if isinstance(parsed, dict) else {}

    # =========================================================================
    # Mutations (serialized)
    # =========================================================================

    def add_product_tiers(self, offer_id: str, product_id: str) -> List[Row]:
        if not offer_id or not product_id:
            raise ValidationError("offer_id and product_id are required")

        with self._critical("add_product", offer_id=offer_id, product_id=product_id):
            sheet = self.workbook.sheet(SHEET_ITEMS)
            validity = self._default_price_validity()
            created = self._now().isoformat()

            new_rows: List[Row] = []
            for qty in TIER_THRESHOLDS:
                row = sheet.append_row(
                    {
                        COL_ITEM_ID: self._new_id(),
                        COL_OFFER_ID: offer_id,
                        COL_PRODUCT_ID: product_id,
                        COL_QTY_FROM: qty,
                        COL_ACTUAL_QTY: qty,
                        COL_UNIT: "kg",
                        COL_SHIPS: 1,
                        COL_PURCHASE_CURRENCY: "EUR",
                        COL_SELLING_CURRENCY: "EUR",
                        COL_PURCHASE_PRICE: 0,
                        COL_INCLUDED: True,
                        COL_MARKUP: 0.15,
                        COL_INCOTERM_SUPPLIER: "DAP",
                        COL_INCOTERM_AV: "DAP",
                        COL_PRICE_VALIDITY: validity,
                        COL_CREATED_TIME: created,
                    }
                )
                new_rows.append(row)
            return new_rows

    def update_item_fields(self, item_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        with self._critical("update_item_fields", offer_item_id=item_id):
            sheet, _, pos = self._locate_item(item_id)
            headers = sheet.headers()

            written: List[str] = []
            for key, value in (fields or {}).items():
                header = FIELD_MAP.get(key)
                # unmapped keys and columns the sheet lacks are ignored
                if header and header in headers:
                    sheet.write_cell(pos, header, value)
                    written.append(header)

            if written:
                self._stamp_modified(sheet, pos)
            return {"updated": written}

    def toggle_included(self, item_id: str, included: bool) -> Dict[str, Any]:
        with self._critical("toggle_included", offer_item_id=item_id):
            sheet, _, pos = self._locate_item(item_id)
            self._require_column(sheet, COL_INCLUDED)
            sheet.write_cell(pos, COL_INCLUDED, bool(included))
            return {"included": bool(included)}

    def duplicate_item(self, item_id: str, overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        with self._critical("duplicate_offer_item", offer_item_id=item_id):
            sheet, rows, pos = self._locate_item(item_id, missing="Source item not found")
            headers = sheet.headers()

            new_row = dict(rows[pos])
            new_id = self._new_id()
            new_row[COL_ITEM_ID] = new_id

            for key, value in (overrides or {}).items():
                # column names as-is, external field names via FIELD_MAP
                header = key if key in headers else FIELD_MAP.get(key)
                if header and header in headers and header != COL_ITEM_ID:
                    new_row[header] = value

            sheet.append_row(new_row)
            return {"id": new_id}

    def delete_item(self, item_id: str) -> Dict[str, Any]:
        with self._critical("delete_offer_item", offer_item_id=item_id):
            try:
                sheet, _, pos = self._locate_item(item_id)
            except NotFoundError:
                # reported, not fatal
                return {"deleted": False, "message": "Item not found"}
            sheet.delete_row(pos)
            return {"deleted": True}

    def delete_items(self, item_ids: Iterable[str]) -> Dict[str, Any]:
        wanted = {str(i) for i in item_ids or [] if i is not None}

        with self._critical("delete_offer_items", count_requested=len(wanted)):
            sheet = self.workbook.sheet(SHEET_ITEMS)
            self._require_column(sheet, COL_ITEM_ID)
            rows = sheet.read_rows()

            deleted = 0
            # high -> low index: a delete never shifts rows we still have to visit
            for pos in range(len(rows) - 1, -1, -1):
                cell = rows[pos].get(COL_ITEM_ID)
                if cell is not None and str(cell) in wanted:
                    sheet.delete_row(pos)
                    deleted += 1
            return {"count": deleted}

    def save_offer(self, offer_id: str) -> Dict[str, Any]:
        with self._critical("save_offer", offer_id=offer_id):
            sheet = self.workbook.sheet(SHEET_OFFERS)
            self._require_column(sheet, COL_OFFER_ID)
            rows = sheet.read_rows()

            for pos, row in enumerate(rows):
                if _same_id(row.get(COL_OFFER_ID), offer_id):
                    if COL_MODIFIED_TIME in sheet.headers():
                        sheet.write_cell(pos, COL_MODIFIED_TIME, self._now().isoformat())
                    return {"touched": True}

            # missing offer: documented no-op, still a success
            return {"touched": False}

    def save_rate_tables(self, rates: Mapping[str, Any]) -> None:
        payload = json.dumps(dict(rates or {}), ensure_ascii=False)

        with self._critical("save_supplier_rates", parties=len(rates or {})):
            sheet = self.workbook.create_sheet(SHEET_TRANSPORT, TRANSPORT_HEADERS)
            self._require_column(sheet, COL_RATES)
            if sheet.read_rows():
                sheet.write_cell(0, COL_RATES, payload)
            else:
                sheet.append_row({COL_RATES: payload})
