from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping

import yaml

from app.core.logging_config import logger

from ..domain.models import (
    COL_CONFIG_ID,
    COL_OFFER_ID,
    COL_PRODUCT_ID,
    COL_SUPPLIER_ID,
    SHEET_CONFIG,
    SHEET_OFFERS,
    SHEET_PRODUCTS,
    SHEET_SUPPLIERS,
)
from ..errors import ConfigError
from .item_store import ItemStore

DEFAULT_SEED_PATH = Path(__file__).resolve().parents[1] / "data" / "seed.yaml"

# fixture section -> (sheet, key column)
_SECTIONS = {
    "offers": (SHEET_OFFERS, COL_OFFER_ID),
    "products": (SHEET_PRODUCTS, COL_PRODUCT_ID),
    "suppliers": (SHEET_SUPPLIERS, COL_SUPPLIER_ID),
    "config": (SHEET_CONFIG, COL_CONFIG_ID),
}


def load_seed(path: str | Path = DEFAULT_SEED_PATH) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Seed file not found: {p}")
    with open(p, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Seed file must contain a mapping: {p}")
    return data


def seed_store(store: ItemStore, data: Mapping[str, Any]) -> Dict[str, int]:
    """
    Append reference rows that are not there yet (matched on the key column)
    and replace the rate tables when the fixture has any.
    Returns rows added per section.
    """
    added: Dict[str, int] = {}

    for section, (sheet_name, key_col) in _SECTIONS.items():
        sheet = store.workbook.sheet(sheet_name)
        existing = {str(r.get(key_col)) for r in sheet.read_rows()}
        count = 0
        for row in data.get(section) or []:
            key = str(row.get(key_col))
            if key in existing:
                continue
            sheet.append_row(row)
            existing.add(key)
            count += 1
        added[section] = count

    rates = data.get("rates")
    if rates:
        store.save_rate_tables(rates)

    logger.bind(**added, rate_parties=len(rates or {})).info("store_seeded")
    return added
