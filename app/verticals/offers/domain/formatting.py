from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal

Locale = Literal["PL", "EN"]


def parse_boolean(value: Any) -> bool:
    # sheet cells come back as bools, numbers or "TRUE"/"FALSE" strings
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        upper = value.strip().upper()
        return upper not in ("FALSE", "0", "")
    return bool(value)


def format_date(iso_date: str | None, locale: Locale = "PL") -> str:
    if not iso_date:
        return ""

    date_str = iso_date[:10] if "T" in iso_date else iso_date
    parts = date_str.split("-")
    if len(date_str) == 10 and len(parts) == 3:
        y, m, d = parts
        if locale == "PL":
            return f"{d}.{m}.{y}"
        return f"{m}/{d}/{y}"

    return iso_date


def format_currency(value: Decimal | float, currency: str = "EUR", locale: Locale = "PL") -> str:
    text = f"{Decimal(str(value)):,.2f}"
    if locale == "PL":
        # 1,234.50 -> 1 234,50
        text = text.replace(",", " ").replace(".", ",")
    return f"{text} {currency}"


def format_weight(value: Decimal | float, unit: str = "kg") -> str:
    return f"{value} {unit}"
