import json

import pytest

from app.core.settings import Settings
from app.verticals.offers.service import OfferService
from app.verticals.offers.storage.factory import SETUP_REQUIRED, reset_workbooks
from app.verticals.offers.storage.lock import BUSY_MESSAGE

OFFER_ID = "OFF-2025-001"


def _add_product(service, product_id="P-100"):
    resp = service.handle_post({"operation": "add_product", "offer_id": OFFER_ID, "product_id": product_id})
    assert resp.success, resp.message
    return [r["Offer Item ID"] for r in resp.data]


# -----------------------------
# reads
# -----------------------------


def test_status_read(service):
    resp = service.handle_get({})
    assert resp.success
    assert resp.message == "Offer API Ready"
    assert resp.data == {"status": "connected", "store": "memory"}


def test_offer_read(service):
    _add_product(service)
    resp = service.handle_get({"id": OFFER_ID})

    assert resp.success
    assert resp.data["offer"]["Subject"] == "Food ingredients Q1"
    assert len(resp.data["items"]) == 3
    assert {p["Product ID"] for p in resp.data["products"]} == {"P-100", "P-200"}
    assert resp.data["transportCosts"] == []


def test_rates_read(service):
    resp = service.handle_get({"action": "getCRMData"})
    assert resp.success
    assert "Aromat Vertex" in resp.data["supplierRates"]


# -----------------------------
# request validation
# -----------------------------


@pytest.mark.parametrize("body", [b"{not json", "[1, 2]", b""])
def test_bad_body(service, body):
    resp = service.handle_post(body)
    if body == b"":
        assert resp.message == "Missing operation in payload"
    else:
        assert resp.message == "Invalid JSON Body in Request"
    assert resp.success is False
    assert resp.data is None


@pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_numbers_are_rejected(service, constant):
    item_id = service.handle_post(
        {"operation": "add_product", "offer_id": OFFER_ID, "product_id": "P-100"}
    ).data[0]["Offer Item ID"]
    body = (
        '{"operation": "update_item_fields", "offer_item_id": "' + item_id + '", '
        '"fields": {"number_ships": ' + constant + "}}"
    )

    resp = service.handle_post(body)

    assert (resp.success, resp.message) == (False, "Invalid JSON Body in Request")
    items = service.store.get_offer_data(OFFER_ID)["items"]
    row = next(r for r in items if r["Offer Item ID"] == item_id)
    assert row["Number Ships"] == 1


def test_missing_and_unknown_operation(service):
    assert service.handle_post({}).message == "Missing operation in payload"
    assert service.handle_post({"operation": "explode"}).message == "Unknown operation: explode"


def test_missing_required_field(service):
    resp = service.handle_post({"operation": "add_product", "offer_id": OFFER_ID})
    assert resp.success is False
    assert resp.message.startswith("Invalid payload for add_product")


def test_text_plain_json_body(service):
    body = json.dumps({"operation": "add_product", "offer_id": OFFER_ID, "product_id": "P-200"}).encode()
    resp = service.handle_post(body)
    assert resp.success
    assert resp.message == "Operation Successful"
    assert len(resp.data) == 3


# -----------------------------
# operations
# -----------------------------


def test_update_toggle_duplicate_delete_flow(service):
    a, b, c = _add_product(service)

    resp = service.handle_post({"operation": "update_item_fields", "offer_item_id": a, "fields": {"markup": 0.2, "x": 1}})
    assert resp.data == {"updated": ["Markup %"]}

    resp = service.handle_post({"operation": "toggle_included", "offer_item_id": b, "included": False})
    assert resp.data == {"included": False}

    resp = service.handle_post({"operation": "duplicate_offer_item", "offer_item_id": a, "overrides": {"markup": 0.3}})
    new_id = resp.data["id"]

    resp = service.handle_post({"operation": "delete_offer_items", "offer_item_ids": [a, c]})
    assert resp.data == {"count": 2}

    items = service.handle_get({"id": OFFER_ID}).data["items"]
    assert [i["Offer Item ID"] for i in items] == [b, new_id]
    assert items[1]["Markup %"] == 0.3


def test_not_found_messages(service):
    resp = service.handle_post({"operation": "update_item_fields", "offer_item_id": "X", "fields": {}})
    assert (resp.success, resp.message) == (False, "Item not found")

    resp = service.handle_post({"operation": "duplicate_offer_item", "offer_item_id": "X"})
    assert (resp.success, resp.message) == (False, "Source item not found")

    # single delete reports instead of failing
    resp = service.handle_post({"operation": "delete_offer_item", "offer_item_id": "X"})
    assert (resp.success, resp.message) == (True, "Item not found")


def test_save_offer(service):
    assert service.handle_post({"operation": "save_offer", "offer_id": OFFER_ID}).data == {"touched": True}
    missing = service.handle_post({"operation": "save_offer", "offer_id": "OFF-404"})
    assert missing.success is True
    assert missing.data == {"touched": False}


def test_save_rates_normalizes_cost_alias(service):
    resp = service.handle_post(
        {
            "action": "saveSupplierRates",
            "rates": {"Solvay": {"validity": "2025-12-31", "tiers": [{"from": 0, "to": None, "cost": 40}]}},
        }
    )
    assert (resp.success, resp.message) == (True, "Rates Saved")

    rates = service.handle_get({"action": "getCRMData"}).data["supplierRates"]
    assert list(rates) == ["Solvay"]
    assert rates["Solvay"]["tiers"] == [{"from": 0.0, "to": None, "eur": 40.0}]


def test_save_rates_rejects_inverted_tier(service):
    resp = service.handle_post(
        {"action": "saveSupplierRates", "rates": {"S": {"tiers": [{"from": 10, "to": 5, "eur": 1}]}}}
    )
    assert resp.success is False
    assert resp.message.startswith("Invalid rates")


# -----------------------------
# failures
# -----------------------------


def test_busy_store_is_reported(service):
    (a, *_rest) = _add_product(service)
    with service.store.lock.hold():
        resp = service.handle_post({"operation": "toggle_included", "offer_item_id": a, "included": False})
    assert (resp.success, resp.message) == (False, BUSY_MESSAGE)


def test_unexpected_error_becomes_server_error(service, monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(service.store, "save_offer", _boom)
    resp = service.handle_post({"operation": "save_offer", "offer_id": OFFER_ID})
    assert (resp.success, resp.message) == (False, "SERVER_ERROR: disk on fire")


def test_unconfigured_store_asks_for_setup():
    reset_workbooks()
    svc = OfferService(Settings(STORE_URL=""))
    resp = svc.handle_get({"id": OFFER_ID})
    assert resp.success is False
    assert resp.message == SETUP_REQUIRED


def test_memory_store_url_is_shared_per_process():
    reset_workbooks()
    s = Settings(STORE_URL="memory://shared-test")
    first = OfferService(s)
    first.handle_post({"operation": "add_product", "offer_id": "O-1", "product_id": "P-1"})

    second = OfferService(s)
    assert len(second.handle_get({"id": "O-1"}).data["items"]) == 3
    reset_workbooks()


def test_services_on_one_url_share_the_store_lock():
    reset_workbooks()
    s = Settings(STORE_URL="memory://shared-lock", LOCK_WAIT_SECONDS=0.1)
    first = OfferService(s)
    second = OfferService(s)
    added = first.handle_post({"operation": "add_product", "offer_id": "O-1", "product_id": "P-1"})
    item_id = added.data[0]["Offer Item ID"]

    assert first.store.lock is second.store.lock
    with first.store.lock.hold():
        resp = second.handle_post(
            {"operation": "toggle_included", "offer_item_id": item_id, "included": False}
        )

    assert (resp.success, resp.message) == (False, BUSY_MESSAGE)
    assert second.handle_get({"id": "O-1"}).data["items"][0]["Included"] is True
    reset_workbooks()
