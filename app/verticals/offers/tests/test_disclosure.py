from decimal import Decimal

import pytest

from app.verticals.offers.calculators.disclosure import (
    decide_comment,
    generate_disclosure_comment,
    looks_auto_generated,
)

D = Decimal

LEG2_NOTE = "A-V → customer transport cost: 90.00 EUR"


def test_dap_exw_intermediary_discloses_leg2():
    assert generate_disclosure_comment("DAP", "EXW A-V", D("120"), D("90")) == LEG2_NOTE


def test_pickup_exw_intermediary_discloses_leg2_rounded_half_up():
    out = generate_disclosure_comment("FCA", "EXW A-V", D("0"), D("12.345"))
    assert out == "A-V → customer transport cost: 12.35 EUR"


def test_pickup_exw_supplier_discloses_leg1():
    out = generate_disclosure_comment("EXW", "EXW SUPPLIER", D("120"), D("90"))
    assert out == "Supplier → A-V transport cost: 120.00 EUR"


@pytest.mark.parametrize("sup,av", [("DAP", "DAP"), ("EXW", "DAP"), ("CIF", "XYZ")])
def test_billed_or_unknown_scenarios_have_no_disclosure(sup, av):
    assert generate_disclosure_comment(sup, av, D("1"), D("1")) == ""


def test_label_and_currency_are_configurable():
    out = generate_disclosure_comment(
        "DAP", "EXW A-V", D("0"), D("5"), intermediary_label="HUB", currency="PLN"
    )
    assert out == "HUB → customer transport cost: 5.00 PLN"


def test_disclosure_pattern():
    assert looks_auto_generated(LEG2_NOTE)
    assert looks_auto_generated("Supplier → A-V transport cost: 3.10 EUR")
    assert not looks_auto_generated("Deliver before noon please")
    assert not looks_auto_generated("")


# -----------------------------
# overwrite policy
# -----------------------------


def test_new_disclosure_overwrites_free_text():
    d = decide_comment("customer asked for pallets", LEG2_NOTE, None)
    assert (d.comment, d.comment_auto, d.changed) == (LEG2_NOTE, True, True)


def test_same_disclosure_already_tagged_is_unchanged():
    d = decide_comment(LEG2_NOTE, LEG2_NOTE, True)
    assert d.changed is False


def test_same_disclosure_on_untagged_row_gets_tagged():
    d = decide_comment(LEG2_NOTE, LEG2_NOTE, None)
    assert d.changed is True
    assert d.comment_auto is True


def test_tagged_comment_is_cleared_when_no_disclosure_applies():
    d = decide_comment(LEG2_NOTE, "", True)
    assert (d.comment, d.comment_auto, d.changed) == ("", False, True)


def test_user_text_matching_phrasing_is_kept_when_tag_says_user():
    d = decide_comment(LEG2_NOTE, "", False)
    assert d.changed is False
    assert d.comment == LEG2_NOTE


def test_untagged_row_falls_back_to_phrasing():
    assert decide_comment(LEG2_NOTE, "", None).comment == ""
    kept = decide_comment("Deliver before noon", "", None)
    assert kept.changed is False
    assert kept.comment == "Deliver before noon"
