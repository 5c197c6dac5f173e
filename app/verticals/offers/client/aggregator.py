from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional
from uuid import uuid4

from app.core.logging_config import logger
from app.core.settings import Settings, get_settings

from ..calculators.disclosure import decide_comment
from ..calculators.pricing import compute_markup_from_final_price
from ..calculators.rates import rate_tables_from_wire
from ..calculators.tier import TierPricing, price_tier
from ..domain.formatting import Locale, format_currency, format_date, format_weight
from ..domain.models import (
    COL_COMMENT,
    COL_COMMENT_AUTO,
    COL_INCLUDED,
    COL_ITEM_ID,
    COL_MARKUP,
    COL_PRODUCT_ID,
    COLUMN_TO_FIELD,
    CONFIG_PRICE_VALIDITY,
    ConfigEntry,
    Offer,
    OfferItem,
    Product,
    RateTable,
)
from ..errors import TransportError
from ..schemas.envelope import ApiResponse
from .backend import BackendClient

Row = Dict[str, Any]


class MutationStatus(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class Mutation:
    operation: str
    target_ids: List[str]
    mutation_id: str = field(default_factory=lambda: uuid4().hex)
    status: MutationStatus = MutationStatus.PENDING
    message: str = ""

    def commit(self) -> None:
        self.status = MutationStatus.COMMITTED

    def fail(self, message: str) -> None:
        self.status = MutationStatus.FAILED
        self.message = message


@dataclass(frozen=True)
class ProductGroup:
    product: Product
    active: List[Row]
    excluded: List[Row]

    @property
    def items(self) -> List[Row]:
        return self.active + self.excluded


class OfferAggregator:
    """
    Client-side view of one offer.

    Every edit is applied to the local snapshot first (optimistic), then
    sent to the store. Each call is tracked as a Mutation
    (pending -> committed | failed). On any failure the speculative state is
    dropped by re-fetching the offer; there is no fine-grained rollback, so
    with two operators the last successful store write wins.
    """

    def __init__(self, client: BackendClient, settings: Optional[Settings] = None):
        self.client = client
        self.settings = settings or get_settings()

        self.offer: Optional[Offer] = None
        self.items: List[Row] = []
        self.products: List[Product] = []
        self.suppliers: List[Row] = []
        self.config: List[ConfigEntry] = []
        self.supplier_rates: Dict[str, Any] = {}

        self.error: Optional[str] = None
        self.error_kind: Optional[str] = None  # "domain" | "transport"
        self.mutations: List[Mutation] = []

    # =========================================================================
    # State
    # =========================================================================

    @property
    def offer_id(self) -> Optional[str]:
        return self.offer.offer_id if self.offer else None

    @property
    def pending(self) -> List[Mutation]:
        return [m for m in self.mutations if m.status == MutationStatus.PENDING]

    @property
    def needs_setup_check(self) -> bool:
        # transport failures point at setup/connectivity, not at the data
        return self.error_kind == "transport"

    def _set_error(self, message: str, kind: str) -> None:
        self.error = message
        self.error_kind = kind

    def _clear_error(self) -> None:
        self.error = None
        self.error_kind = None

    def load_offer(self, offer_id: Optional[str] = None) -> bool:
        wanted = offer_id if offer_id is not None else self.offer_id
        try:
            resp = self.client.load_offer(wanted)
        except TransportError as e:
            self._set_error(e.message, "transport")
            return False

        if not resp.success or not resp.data:
            self._set_error(resp.message, "domain")
            return False

        data = resp.data
        raw_offer = data.get("offer")
        self.offer = Offer.from_row(raw_offer) if raw_offer else None
        self.items = [dict(r) for r in data.get("items") or []]
        self.products = [Product.from_row(r) for r in data.get("products") or []]
        self.suppliers = list(data.get("suppliers") or [])
        self.config = [ConfigEntry.from_row(r) for r in data.get("config") or []]
        self._clear_error()
        return True

    def load_rates(self) -> None:
        try:
            self.supplier_rates = self.client.get_rates()
        except TransportError as e:
            logger.warning("rate_tables_load_failed", message=e.message)

    def save_rates(self, rates: Mapping[str, Any]) -> bool:
        try:
            resp = self.client.save_rates(rates)
        except TransportError as e:
            self._set_error(e.message, "transport")
            return False
        if not resp.success:
            self._set_error(resp.message, "domain")
            return False
        self.supplier_rates = dict(rates)
        return True

    # =========================================================================
    # Mutation protocol
    # =========================================================================

    def _mutate(
        self,
        operation: str,
        payload: Dict[str, Any],
        target_ids: List[str],
        *,
        optimistic: Optional[Callable[[], None]] = None,
        on_success: Optional[Callable[[ApiResponse], None]] = None,
    ) -> Mutation:
        m = Mutation(operation=operation, target_ids=target_ids)
        self.mutations.append(m)
        self._clear_error()

        if optimistic is not None:
            optimistic()

        try:
            resp = self.client.send({"operation": operation, **payload})
        except TransportError as e:
            m.fail(e.message)
            self._set_error(e.message, "transport")
            self._reconcile(m)
            return m

        if not resp.success:
            m.fail(resp.message)
            self._set_error(resp.message, "domain")
            self._reconcile(m)
            return m

        m.commit()
        if on_success is not None:
            on_success(resp)
        return m

    def _reconcile(self, m: Mutation) -> None:
        logger.bind(
            operation=m.operation, mutation_id=m.mutation_id, offer_id=self.offer_id
        ).warning("offer_mutation_failed", message=m.message)
        if self.offer_id is None:
            return
        # keep the mutation's error visible even when the reload works
        error, kind = self.error, self.error_kind
        self.load_offer(self.offer_id)
        if self.error is None:
            self._set_error(error or m.message, kind or "domain")

    def _patch_local(self, item_id: str, patch: Mapping[str, Any]) -> None:
        self.items = [
            {**row, **patch} if str(row.get(COL_ITEM_ID)) == item_id else row
            for row in self.items
        ]

    # =========================================================================
    # Operations
    # =========================================================================

    def add_product(self, product_id: str) -> Optional[Mutation]:
        if self.offer_id is None:
            return None

        def _append(resp: ApiResponse) -> None:
            self.items.extend(dict(r) for r in resp.data or [])

        return self._mutate(
            "add_product",
            {"offer_id": self.offer_id, "product_id": product_id},
            [product_id],
            on_success=_append,
        )

    def update_item(self, item_id: str, columns: Mapping[str, Any]) -> Mutation:
        """columns are keyed by column name; only the mapped ones go to the store."""
        columns = dict(columns)
        # a hand-written comment is no longer system-managed
        if COL_COMMENT in columns and COL_COMMENT_AUTO not in columns:
            columns[COL_COMMENT_AUTO] = False

        fields = {COLUMN_TO_FIELD[c]: v for c, v in columns.items() if c in COLUMN_TO_FIELD}

        return self._mutate(
            "update_item_fields",
            {"offer_item_id": item_id, "fields": fields},
            [item_id],
            optimistic=lambda: self._patch_local(item_id, columns),
        )

    def toggle_included(self, item_id: str, included: bool) -> Mutation:
        return self._mutate(
            "toggle_included",
            {"offer_item_id": item_id, "included": bool(included)},
            [item_id],
            optimistic=lambda: self._patch_local(item_id, {COL_INCLUDED: bool(included)}),
        )

    def duplicate_item(self, item_id: str, overrides: Optional[Mapping[str, Any]] = None) -> Mutation:
        # new id is assigned by the store: re-fetch instead of guessing
        return self._mutate(
            "duplicate_offer_item",
            {"offer_item_id": item_id, "overrides": dict(overrides or {})},
            [item_id],
            on_success=lambda _resp: self.load_offer(self.offer_id),
        )

    def delete_item(self, item_id: str) -> Mutation:
        def _drop() -> None:
            self.items = [r for r in self.items if str(r.get(COL_ITEM_ID)) != item_id]

        return self._mutate(
            "delete_offer_item", {"offer_item_id": item_id}, [item_id], optimistic=_drop
        )

    def delete_items(self, item_ids: List[str]) -> Optional[Mutation]:
        if not item_ids:
            return None
        wanted = {str(i) for i in item_ids}

        def _drop() -> None:
            self.items = [r for r in self.items if str(r.get(COL_ITEM_ID)) not in wanted]

        return self._mutate(
            "delete_offer_items",
            {"offer_item_ids": list(item_ids)},
            list(item_ids),
            optimistic=_drop,
        )

    def remove_product(self, product_id: str) -> Optional[Mutation]:
        ids = [str(r.get(COL_ITEM_ID)) for r in self.items_for_product(product_id)]
        return self.delete_items(ids)

    def save_offer(self) -> Optional[Mutation]:
        if self.offer_id is None:
            return None
        return self._mutate("save_offer", {"offer_id": self.offer_id}, [self.offer_id])

    # =========================================================================
    # Derived views
    # =========================================================================

    def product_by_id(self, product_id: str) -> Optional[Product]:
        return next((p for p in self.products if p.product_id == product_id), None)

    def items_for_product(self, product_id: str) -> List[Row]:
        return [r for r in self.items if str(r.get(COL_PRODUCT_ID)) == product_id]

    def item(self, item_id: str) -> Optional[Row]:
        return next((r for r in self.items if str(r.get(COL_ITEM_ID)) == item_id), None)

    def groups(self) -> List[ProductGroup]:
        seen: List[str] = []
        for row in self.items:
            pid = str(row.get(COL_PRODUCT_ID))
            if pid not in seen:
                seen.append(pid)

        out: List[ProductGroup] = []
        for pid in seen:
            product = self.product_by_id(pid)
            if product is None:
                # items of unknown products are not rendered
                continue
            rows = self.items_for_product(pid)
            active = [r for r in rows if OfferItem.from_row(r).included]
            excluded = [r for r in rows if not OfferItem.from_row(r).included]
            out.append(ProductGroup(product=product, active=active, excluded=excluded))
        return out

    def filter_date(self) -> Optional[str]:
        entry = next((c for c in self.config if c.key == CONFIG_PRICE_VALIDITY), None)
        return entry.value[:10] if entry and entry.value else None

    def rate_tables(self) -> Dict[str, RateTable]:
        return rate_tables_from_wire(self.supplier_rates)

    def _supplier_name(self, row: Row) -> str:
        product = self.product_by_id(str(row.get(COL_PRODUCT_ID)))
        return product.supplier_name if product else ""

    def price(self, item_id: str) -> Optional[TierPricing]:
        row = self.item(item_id)
        if row is None:
            return None
        return price_tier(OfferItem.from_row(row), self._supplier_name(row), self.rate_tables(), self.settings)

    def offer_header(self, locale: Locale = "PL") -> Dict[str, str]:
        if self.offer is None:
            return {}
        o = self.offer
        return {
            "offerId": o.offer_id,
            "subject": o.subject,
            "customer": o.customer_name,
            "assignedTo": o.assigned_to,
            "validUntil": format_date(o.valid_until, locale),
            "currency": o.currency,
        }

    def tier_display(self, item_id: str, locale: Locale = "PL") -> Optional[Dict[str, str]]:
        """Display strings for one tier row (quantities, prices, validity)."""
        row = self.item(item_id)
        pricing = self.price(item_id)
        if row is None or pricing is None:
            return None

        item = OfferItem.from_row(row)
        rate_currency = self.settings.RATE_CURRENCY
        return {
            "quantity": format_weight(item.quantity_from, item.unit),
            "purchasePrice": format_currency(item.purchase_price, item.purchase_currency, locale),
            "transportPerUnit": format_currency(pricing.transport_per_unit, rate_currency, locale),
            "finalPrice": format_currency(pricing.final_price, item.selling_currency, locale),
            "priceValidity": format_date(item.price_validity, locale),
        }

    def edit_final_price(self, item_id: str, final_price: Any) -> Optional[Mutation]:
        """Final price edits are written back as markup, never as transport."""
        row = self.item(item_id)
        if row is None:
            return None
        item = OfferItem.from_row(row)
        if item.purchase_price <= 0:
            return None

        pricing = self.price(item_id)
        markup = compute_markup_from_final_price(final_price, item.purchase_price, pricing.transport_per_unit)
        return self.update_item(item_id, {COL_MARKUP: float(markup)})

    def sync_disclosure_comment(self, item_id: str) -> Optional[Mutation]:
        row = self.item(item_id)
        pricing = self.price(item_id)
        if row is None or pricing is None:
            return None

        item = OfferItem.from_row(row)
        decision = decide_comment(
            item.comment,
            pricing.disclosure_comment,
            item.comment_auto,
            intermediary_label=self.settings.INTERMEDIARY_LABEL,
        )
        if not decision.changed:
            return None
        return self.update_item(
            item_id, {COL_COMMENT: decision.comment, COL_COMMENT_AUTO: decision.comment_auto}
        )
