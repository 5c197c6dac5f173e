from decimal import Decimal

import pytest

from app.verticals.offers.domain.formatting import (
    format_currency,
    format_date,
    format_weight,
    parse_boolean,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        (True, True),
        (False, False),
        ("TRUE", True),
        ("false", False),
        (" FALSE ", False),
        ("0", False),
        ("", False),
        ("yes", True),
        (1, True),
        (0, False),
        (None, False),
    ],
)
def test_parse_boolean(value, expected):
    assert parse_boolean(value) is expected


def test_format_currency_pl_and_en():
    assert format_currency(Decimal("12345.5")) == "12 345,50 EUR"
    assert format_currency(12345.5, "EUR", "EN") == "12,345.50 EUR"


def test_format_date():
    assert format_date("2025-03-31T00:00:00.000Z") == "31.03.2025"
    assert format_date("2025-03-31", "EN") == "03/31/2025"
    assert format_date("") == ""
    assert format_date(None) == ""
    assert format_date("soon") == "soon"


def test_format_date_leaves_non_iso_values_alone():
    assert format_date("31.12.2024") == "31.12.2024"
    assert format_date("2024/12/31", "EN") == "2024/12/31"


def test_format_weight():
    assert format_weight(25) == "25 kg"
    assert format_weight(Decimal("2.5"), "t") == "2.5 t"
