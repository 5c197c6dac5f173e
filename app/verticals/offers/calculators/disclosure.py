from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from .incoterms import DEFAULT_CODES, IncotermCodes, Scenario, classify

D = Decimal


def _amount(value: D) -> str:
    return str(D(str(value)).quantize(D("0.01"), rounding=ROUND_HALF_UP))


def generate_disclosure_comment(
    incoterm_supplier: Optional[str],
    incoterm_intermediary: Optional[str],
    raw_leg1_total: D,
    raw_leg2_total: D,
    *,
    intermediary_label: str = "A-V",
    currency: str = "EUR",
    codes: IncotermCodes = DEFAULT_CODES,
) -> str:
    """
    Disclose a transport leg that exists but is not billed.
    Uses the raw leg totals, independent of leg inclusion.
    """
    scenario = classify(incoterm_supplier, incoterm_intermediary, codes)

    if scenario in (Scenario.DAP_EXW_INTERMEDIARY, Scenario.PICKUP_EXW_INTERMEDIARY):
        return f"{intermediary_label} → customer transport cost: {_amount(raw_leg2_total)} {currency}"
    if scenario == Scenario.PICKUP_EXW_SUPPLIER:
        return f"Supplier → {intermediary_label} transport cost: {_amount(raw_leg1_total)} {currency}"
    return ""


def disclosure_pattern(intermediary_label: str = "A-V") -> re.Pattern[str]:
    label = re.escape(intermediary_label)
    return re.compile(
        rf"^(?:{label} → customer|Supplier → {label}) transport cost: -?\d+\.\d{{2}} \S+$"
    )


def looks_auto_generated(comment: str, intermediary_label: str = "A-V") -> bool:
    return bool(disclosure_pattern(intermediary_label).match((comment or "").strip()))


@dataclass(frozen=True)
class CommentDecision:
    comment: str
    comment_auto: bool
    changed: bool


def decide_comment(
    stored_comment: str,
    generated: str,
    comment_auto: Optional[bool],
    *,
    intermediary_label: str = "A-V",
) -> CommentDecision:
    """
    Overwrite policy for the stored comment.

    comment_auto is the system-managed tag. None means the row has no tag
    (older rows); only then the phrasing heuristic decides.
    """
    stored = stored_comment or ""

    if generated:
        if generated != stored:
            return CommentDecision(generated, True, True)
        return CommentDecision(stored, True, comment_auto is not True)

    if comment_auto is None:
        managed = looks_auto_generated(stored, intermediary_label)
    else:
        managed = comment_auto

    if managed and stored:
        return CommentDecision("", False, True)
    return CommentDecision(stored, bool(comment_auto) and bool(stored), False)
