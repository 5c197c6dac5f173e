from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional, Union

from ..domain.models import OfferItem, RateTable, to_decimal
from ..errors import ValidationError
from .incoterms import DEFAULT_CODES, IncotermCodes, LegInclusion, Scenario, resolve_leg_inclusion
from .rates import RateResult, resolve_rate

D = Decimal
Number = Union[D, float, int, str]

# Scenarios where the customer is billed no transport at all.
_TRANSPORT_EXCLUDED = {Scenario.DAP_EXW_INTERMEDIARY, Scenario.PICKUP_EXW_SUPPLIER}


def compute_final_price(
    base_price: Number,
    markup_percent: Number,
    transport_cost_per_unit: Number,
    incoterm_supplier: Optional[str],
    incoterm_intermediary: Optional[str],
    codes: IncotermCodes = DEFAULT_CODES,
) -> D:
    """
    base * (1 + markup%/100), plus transport per unit unless the incoterms
    scenario bills no leg. Unmatched pairs add transport.
    """
    base_with_markup = to_decimal(base_price) * (1 + to_decimal(markup_percent) / 100)

    inclusion = resolve_leg_inclusion(incoterm_supplier, incoterm_intermediary, codes)
    if inclusion.scenario in _TRANSPORT_EXCLUDED:
        return base_with_markup
    return base_with_markup + to_decimal(transport_cost_per_unit)


def compute_markup_from_final_price(
    final_price: Number,
    base_price: Number,
    transport_cost_per_unit: Number,
) -> D:
    """
    Inverse of the transport-inclusive forward formula, as a fraction (0.15 = 15%).
    Transport is always subtracted, whether or not the scenario charges it.
    """
    base = to_decimal(base_price)
    if base <= 0:
        raise ValidationError(
            "Cannot derive markup without a purchase price", {"base_price": str(base)}
        )
    return (to_decimal(final_price) - to_decimal(transport_cost_per_unit)) / base - 1


# -----------------------------
# Transport per tier
# -----------------------------


@dataclass(frozen=True)
class TransportCosts:
    inclusion: LegInclusion
    total_quantity: D
    number_ships: D
    weight_per_ship: D
    leg1_rate: RateResult
    leg2_rate: RateResult
    # always computed, used for disclosure
    raw_leg1_total: D
    raw_leg2_total: D
    # what the customer is billed
    leg1_amount: D
    leg2_amount: D

    @property
    def total(self) -> D:
        return self.leg1_amount + self.leg2_amount


def compute_transport_costs(
    item: OfferItem,
    supplier_name: str,
    rate_tables: Mapping[str, RateTable],
    *,
    intermediary_name: str,
    codes: IncotermCodes = DEFAULT_CODES,
) -> TransportCosts:
    total_qty = item.actual_quantity or item.quantity_from or D("0")
    ships = item.number_ships or D("1")
    weight_per_ship = total_qty / ships if ships > 0 else D("0")

    # Leg 1: supplier -> intermediary, supplier table, full quantity
    leg1_rate = resolve_rate(total_qty, supplier_name, rate_tables)
    # Leg 2: intermediary -> customer, intermediary table, per shipment
    leg2_rate = resolve_rate(weight_per_ship, intermediary_name, rate_tables)

    inclusion = resolve_leg_inclusion(item.incoterm_supplier, item.incoterm_av, codes)

    raw_leg1 = leg1_rate.cost * ships
    raw_leg2 = leg2_rate.cost * ships

    return TransportCosts(
        inclusion=inclusion,
        total_quantity=total_qty,
        number_ships=ships,
        weight_per_ship=weight_per_ship,
        leg1_rate=leg1_rate,
        leg2_rate=leg2_rate,
        raw_leg1_total=raw_leg1,
        raw_leg2_total=raw_leg2,
        leg1_amount=raw_leg1 if inclusion.leg1_included else D("0"),
        leg2_amount=raw_leg2 if inclusion.leg2_included else D("0"),
    )


def transport_per_unit(total_transport: D, actual_quantity: D) -> D:
    if actual_quantity <= 0:
        return D("0")
    return total_transport / actual_quantity


def markup_percent_of(markup_fraction: Number) -> D:
    return to_decimal(markup_fraction) * 100
