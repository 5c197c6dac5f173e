from __future__ import annotations

import itertools
import threading
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.core.settings import Settings
from app.verticals.offers.client.aggregator import OfferAggregator
from app.verticals.offers.client.backend import LocalBackendClient
from app.verticals.offers.domain.models import (
    COL_INCOTERM_AV,
    COL_INCOTERM_SUPPLIER,
    COL_ITEM_ID,
    COL_OFFER_ID,
    COL_PRODUCT_ID,
    DEFAULT_SHEETS,
    SHEET_ITEMS,
    RateTable,
    RateTier,
)
from app.verticals.offers.service import OfferService
from app.verticals.offers.storage.item_store import ItemStore
from app.verticals.offers.storage.lock import ThreadStoreLock
from app.verticals.offers.storage.seed import load_seed, seed_store
from app.verticals.offers.storage.table import MemoryWorkbook

D = Decimal

OFFER_ID = "OFF-2025-001"


@pytest.fixture
def fixed_now():
    return datetime(2025, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    return Settings(
        STORE_URL="memory://tests",
        LOCK_WAIT_SECONDS=0.2,
        DEFAULT_PRICE_VALIDITY="2025-06-30",
        CLIENT_RETRIES=2,
    )


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    guard = threading.Lock()

    def _next() -> str:
        with guard:
            return f"IT-{next(counter)}"

    return _next


@pytest.fixture
def workbook():
    return MemoryWorkbook(DEFAULT_SHEETS)


@pytest.fixture
def store(workbook, settings, id_factory, fixed_now):
    return ItemStore(
        workbook,
        ThreadStoreLock(settings.LOCK_WAIT_SECONDS),
        settings=settings,
        id_factory=id_factory,
        clock=lambda: fixed_now,
    )


@pytest.fixture
def seeded_store(store):
    seed_store(store, load_seed())
    return store


@pytest.fixture
def service(settings, seeded_store):
    return OfferService(settings, seeded_store)


@pytest.fixture
def local_client(service):
    return LocalBackendClient(service)


@pytest.fixture
def aggregator(local_client, settings):
    return OfferAggregator(local_client, settings)


@pytest.fixture
def add_rows(workbook):
    """Append bare item rows (id only + owners) to OfferItems."""

    def _add(*item_ids: str, offer_id: str = OFFER_ID, product_id: str = "P-100", **extra):
        sheet = workbook.sheet(SHEET_ITEMS)
        for item_id in item_ids:
            sheet.append_row(
                {
                    COL_ITEM_ID: item_id,
                    COL_OFFER_ID: offer_id,
                    COL_PRODUCT_ID: product_id,
                    COL_INCOTERM_SUPPLIER: "DAP",
                    COL_INCOTERM_AV: "DAP",
                    **extra,
                }
            )
        return sheet

    return _add


@pytest.fixture
def rate_tables():
    return {
        "Aromat Vertex": RateTable(
            party="Aromat Vertex",
            tiers=[
                RateTier(D("0"), D("24.99"), D("25")),
                RateTier(D("25"), D("99.99"), D("45")),
                RateTier(D("100"), D("Infinity"), D("90")),
            ],
        ),
        "Jungbunzlauer": RateTable(
            party="Jungbunzlauer",
            tiers=[
                RateTier(D("0"), D("99.99"), D("30")),
                RateTier(D("100"), D("Infinity"), D("60")),
            ],
        ),
    }
