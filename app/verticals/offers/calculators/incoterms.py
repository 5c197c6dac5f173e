from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.core.settings import Settings


class Scenario(str, Enum):
    DAP_EXW_INTERMEDIARY = "DAP/EXW_INTERMEDIARY"
    DAP_DAP = "DAP/DAP"
    PICKUP_DAP = "EXW_FCA/DAP"
    PICKUP_EXW_INTERMEDIARY = "EXW_FCA/EXW_INTERMEDIARY"
    PICKUP_EXW_SUPPLIER = "EXW_FCA/EXW_SUPPLIER"
    UNMODELED = "UNMODELED"


@dataclass(frozen=True)
class IncotermCodes:
    """Intermediary-side codes. Compared after upper-casing."""

    exw_intermediary: str = "EXW A-V"
    exw_supplier: str = "EXW SUPPLIER"

    @classmethod
    def from_settings(cls, s: Settings) -> "IncotermCodes":
        return cls(
            exw_intermediary=s.INCOTERM_EXW_INTERMEDIARY.upper(),
            exw_supplier=s.INCOTERM_EXW_SUPPLIER.upper(),
        )


DEFAULT_CODES = IncotermCodes()


@dataclass(frozen=True)
class LegInclusion:
    scenario: Scenario
    leg1_included: bool  # supplier -> intermediary
    leg2_included: bool  # intermediary -> customer

    @property
    def any_leg(self) -> bool:
        return self.leg1_included or self.leg2_included


_LEGS = {
    Scenario.DAP_EXW_INTERMEDIARY: (False, False),
    Scenario.DAP_DAP: (False, True),
    Scenario.PICKUP_DAP: (True, True),
    Scenario.PICKUP_EXW_INTERMEDIARY: (True, False),
    Scenario.PICKUP_EXW_SUPPLIER: (False, False),
    Scenario.UNMODELED: (False, False),
}


def _norm(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def classify(
    incoterm_supplier: Optional[str],
    incoterm_intermediary: Optional[str],
    codes: IncotermCodes = DEFAULT_CODES,
) -> Scenario:
    sup = _norm(incoterm_supplier)
    av = _norm(incoterm_intermediary)
    exw_av = codes.exw_intermediary.upper()
    exw_sup = codes.exw_supplier.upper()

    # first match wins
    if sup == "DAP" and av == exw_av:
        return Scenario.DAP_EXW_INTERMEDIARY
    if sup == "DAP" and av == "DAP":
        return Scenario.DAP_DAP

    pickup = "EXW" in sup or "FCA" in sup
    if pickup and av == "DAP":
        return Scenario.PICKUP_DAP
    if pickup and av == exw_av:
        return Scenario.PICKUP_EXW_INTERMEDIARY
    if pickup and av == exw_sup:
        return Scenario.PICKUP_EXW_SUPPLIER

    return Scenario.UNMODELED


def resolve_leg_inclusion(
    incoterm_supplier: Optional[str],
    incoterm_intermediary: Optional[str],
    codes: IncotermCodes = DEFAULT_CODES,
) -> LegInclusion:
    scenario = classify(incoterm_supplier, incoterm_intermediary, codes)
    leg1, leg2 = _LEGS[scenario]
    return LegInclusion(scenario=scenario, leg1_included=leg1, leg2_included=leg2)
