import pytest

from app.verticals.offers.calculators.incoterms import (
    IncotermCodes,
    Scenario,
    classify,
    resolve_leg_inclusion,
)


@pytest.mark.parametrize(
    "sup,av,scenario,leg1,leg2",
    [
        ("DAP", "EXW A-V", Scenario.DAP_EXW_INTERMEDIARY, False, False),
        ("DAP", "DAP", Scenario.DAP_DAP, False, True),
        ("EXW", "DAP", Scenario.PICKUP_DAP, True, True),
        ("FCA", "EXW A-V", Scenario.PICKUP_EXW_INTERMEDIARY, True, False),
        ("EXW", "EXW SUPPLIER", Scenario.PICKUP_EXW_SUPPLIER, False, False),
    ],
)
def test_named_scenarios(sup, av, scenario, leg1, leg2):
    inc = resolve_leg_inclusion(sup, av)
    assert inc.scenario == scenario
    assert (inc.leg1_included, inc.leg2_included) == (leg1, leg2)


@pytest.mark.parametrize(
    "sup,av",
    [("CIF", "DAP"), ("DAP", "FCA"), ("", ""), (None, None), ("DDP", "EXW SUPPLIER"), ("DAP", "EXW SUPPLIER")],
)
def test_unrecognized_pairs_charge_no_leg(sup, av):
    inc = resolve_leg_inclusion(sup, av)
    assert inc.scenario == Scenario.UNMODELED
    assert inc.leg1_included is False
    assert inc.leg2_included is False
    assert inc.any_leg is False


def test_codes_are_normalized():
    assert classify(" dap ", "exw a-v") == Scenario.DAP_EXW_INTERMEDIARY


def test_pickup_codes_match_by_substring():
    assert classify("FCA Warsaw", "DAP") == Scenario.PICKUP_DAP
    assert classify("EXW works", "EXW SUPPLIER") == Scenario.PICKUP_EXW_SUPPLIER


def test_custom_intermediary_codes():
    codes = IncotermCodes(exw_intermediary="EXW HUB", exw_supplier="EXW ORIGIN")
    assert classify("DAP", "EXW HUB", codes) == Scenario.DAP_EXW_INTERMEDIARY
    assert classify("DAP", "EXW A-V", codes) == Scenario.UNMODELED
    assert classify("FCA", "exw origin", codes) == Scenario.PICKUP_EXW_SUPPLIER
