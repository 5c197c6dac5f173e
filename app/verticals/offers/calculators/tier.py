from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping

from app.core.settings import Settings

from ..domain.models import OfferItem, RateTable
from .disclosure import generate_disclosure_comment
from .incoterms import IncotermCodes
from .pricing import (
    TransportCosts,
    compute_final_price,
    compute_transport_costs,
    markup_percent_of,
    transport_per_unit,
)

D = Decimal


@dataclass(frozen=True)
class TierPricing:
    """Derived per-tier figures. Never persisted, recomputed from the item fields."""

    item_id: str
    transport: TransportCosts
    transport_per_unit: D
    markup_percent: D
    price_plus_markup: D
    final_price: D
    low_markup: bool
    disclosure_comment: str

    def as_dict(self) -> Dict[str, Any]:
        t = self.transport
        return {
            "itemId": self.item_id,
            "scenario": t.inclusion.scenario.value,
            "leg1Included": t.inclusion.leg1_included,
            "leg2Included": t.inclusion.leg2_included,
            "leg1Rate": str(t.leg1_rate.cost),
            "leg1Estimated": t.leg1_rate.was_extrapolated,
            "leg2Rate": str(t.leg2_rate.cost),
            "leg2Estimated": t.leg2_rate.was_extrapolated,
            "totalTransport": str(t.total),
            "transportPerUnit": str(self.transport_per_unit),
            "markupPct": str(self.markup_percent),
            "pricePlusMarkup": str(self.price_plus_markup),
            "finalPrice": str(self.final_price),
            "lowMarkup": self.low_markup,
            "disclosureComment": self.disclosure_comment,
        }


def price_tier(
    item: OfferItem,
    supplier_name: str,
    rate_tables: Mapping[str, RateTable],
    settings: Settings,
) -> TierPricing:
    codes = IncotermCodes.from_settings(settings)

    transport = compute_transport_costs(
        item,
        supplier_name,
        rate_tables,
        intermediary_name=settings.INTERMEDIARY_NAME,
        codes=codes,
    )
    per_unit = transport_per_unit(transport.total, item.actual_quantity)
    markup_pct = markup_percent_of(item.markup)

    final_price = compute_final_price(
        item.purchase_price,
        markup_pct,
        per_unit,
        item.incoterm_supplier,
        item.incoterm_av,
        codes,
    )

    comment = generate_disclosure_comment(
        item.incoterm_supplier,
        item.incoterm_av,
        transport.raw_leg1_total,
        transport.raw_leg2_total,
        intermediary_label=settings.INTERMEDIARY_LABEL,
        currency=settings.RATE_CURRENCY,
        codes=codes,
    )

    return TierPricing(
        item_id=item.item_id,
        transport=transport,
        transport_per_unit=per_unit,
        markup_percent=markup_pct,
        price_plus_markup=item.purchase_price * (1 + item.markup),
        final_price=final_price,
        low_markup=markup_pct < D(str(settings.MIN_MARKUP_PCT)),
        disclosure_comment=comment,
    )
