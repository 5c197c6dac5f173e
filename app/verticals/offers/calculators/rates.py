from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Mapping, Union

from ..domain.models import RateTable, RateTier, to_decimal

D = Decimal

# Used when a party has no table of its own.
FALLBACK_TIERS = (
    RateTier(D("0"), D("24.99"), D("20")),
    RateTier(D("25"), D("99.99"), D("35")),
    RateTier(D("100"), D("249.99"), D("75")),
    RateTier(D("250"), D("499.99"), D("150")),
    RateTier(D("500"), D("Infinity"), D("250")),
)


@dataclass(frozen=True)
class RateResult:
    cost: D
    was_extrapolated: bool


def resolve_rate(
    weight: Union[D, float, int, str],
    party_name: str,
    rate_tables: Mapping[str, RateTable],
) -> RateResult:
    """
    Tier cost for `weight` from the party's table.

    - weight <= 0 -> 0, exact
    - unknown party -> FALLBACK_TIERS
    - weight inside [from, to] (inclusive) -> that tier, exact
    - below the first / above the last tier -> nearest edge tier, extrapolated
    - empty table -> 0, extrapolated
    """
    w = to_decimal(weight)
    if w <= 0:
        return RateResult(D("0"), False)

    table = rate_tables.get(party_name)
    tiers = list(table.tiers) if table is not None else list(FALLBACK_TIERS)
    # callers may hand us unsorted tiers
    tiers.sort(key=lambda t: t.from_weight)

    if not tiers:
        return RateResult(D("0"), True)

    for tier in tiers:
        if tier.from_weight <= w <= tier.to_weight:
            return RateResult(tier.cost, False)

    if w < tiers[0].from_weight:
        return RateResult(tiers[0].cost, True)
    return RateResult(tiers[-1].cost, True)


def rate_tables_from_wire(raw: Mapping[str, Any] | None) -> Dict[str, RateTable]:
    """
    {"<party>": {"validity": "...", "tiers": [{"from":0,"to":24.99,"eur":25}]}} -> RateTable per party.
    `cost` is accepted as alias of `eur`.
    """
    out: Dict[str, RateTable] = {}
    for party, body in (raw or {}).items():
        body = body or {}
        tiers = []
        for t in body.get("tiers") or []:
            cost = t.get("eur", t.get("cost"))
            tiers.append(
                RateTier(
                    from_weight=to_decimal(t.get("from")),
                    to_weight=to_decimal(t.get("to"), D("Infinity")),
                    cost=to_decimal(cost),
                )
            )
        out[str(party)] = RateTable(party=str(party), tiers=tiers, validity=str(body.get("validity") or ""))
    return out
