import json

import pytest
import requests

from app.verticals.offers.client.backend import CONNECTIVITY_HINT, HttpBackendClient, LocalBackendClient
from app.verticals.offers.errors import TransportError

URL = "http://offers.test/api/offers"


def _response(status=200, payload=None, text=None):
    r = requests.Response()
    r.status_code = status
    r.url = URL
    r.encoding = "utf-8"
    r._content = (text if text is not None else json.dumps(payload)).encode("utf-8")
    return r


class FakeSession:
    """Plays back queued outcomes (Response or exception) and records calls."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def request(self, method, url, params=None, data=None, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "params": params, "data": data, "headers": headers, "timeout": timeout})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


OK = {"success": True, "message": "Success", "data": {"offer": None, "items": []}}


@pytest.fixture
def sleeps():
    return []


def _client(settings, sleeps, *outcomes):
    session = FakeSession(*outcomes)
    return HttpBackendClient(URL, settings=settings, session=session, sleep=sleeps.append), session


def test_load_offer_is_a_cache_busted_get(settings, sleeps):
    client, session = _client(settings, sleeps, _response(payload=OK))

    resp = client.load_offer("OFF-1")

    assert resp.success is True
    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["params"]["id"] == "OFF-1"
    assert call["params"]["_cb"].isdigit()
    assert call["timeout"] == settings.CLIENT_TIMEOUT_SECONDS


def test_reads_retry_network_errors(settings, sleeps):
    client, session = _client(
        settings,
        sleeps,
        requests.ConnectionError("reset"),
        requests.Timeout("slow"),
        _response(payload=OK),
    )
    assert client.load_offer("OFF-1").success is True
    assert len(session.calls) == 3
    assert len(sleeps) == 2


def test_reads_give_up_with_connectivity_hint(settings, sleeps):
    client, session = _client(settings, sleeps, *[requests.ConnectionError("down")] * 3)
    with pytest.raises(TransportError) as exc:
        client.load_offer("OFF-1")
    assert exc.value.message == CONNECTIVITY_HINT
    assert len(session.calls) == 3


def test_non_idempotent_operation_is_sent_once(settings, sleeps):
    client, session = _client(settings, sleeps, requests.ConnectionError("down"), _response(payload=OK))
    with pytest.raises(TransportError):
        client.send({"operation": "add_product", "offer_id": "O", "product_id": "P"})
    assert len(session.calls) == 1
    assert sleeps == []


def test_toggle_is_retried(settings, sleeps):
    client, session = _client(settings, sleeps, requests.ConnectionError("down"), _response(payload=OK))
    assert client.send({"operation": "toggle_included", "offer_item_id": "A", "included": True}).success
    assert len(session.calls) == 2


def test_post_is_text_plain_json(settings, sleeps):
    client, session = _client(settings, sleeps, _response(payload=OK))
    client.send({"operation": "save_offer", "offer_id": "O"})

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["headers"] == {"Content-Type": "text/plain"}
    assert json.loads(call["data"]) == {"operation": "save_offer", "offer_id": "O"}


def test_http_status_is_transport_error_without_retry(settings, sleeps):
    client, session = _client(settings, sleeps, _response(status=502, payload={}))
    with pytest.raises(TransportError, match="HTTP Error: 502"):
        client.load_offer("OFF-1")
    assert len(session.calls) == 1


def test_non_envelope_body_is_transport_error(settings, sleeps):
    client, _ = _client(settings, sleeps, _response(text="<html>login</html>"))
    with pytest.raises(TransportError, match="Invalid response"):
        client.load_offer("OFF-1")


def test_domain_failure_is_not_an_exception(settings, sleeps):
    client, _ = _client(settings, sleeps, _response(payload={"success": False, "message": "Item not found", "data": None}))
    resp = client.send({"operation": "toggle_included", "offer_item_id": "X", "included": True})
    assert (resp.success, resp.message) == (False, "Item not found")


def test_rates_round_trip(settings, sleeps):
    rates = {"Solvay": {"validity": "", "tiers": []}}
    client, session = _client(
        settings,
        sleeps,
        _response(payload={"success": True, "message": "Rates Saved", "data": None}),
        _response(payload={"success": True, "message": "Success", "data": {"supplierRates": rates}}),
    )
    assert client.save_rates(rates).message == "Rates Saved"
    assert client.get_rates() == rates
    assert json.loads(session.calls[0]["data"])["action"] == "saveSupplierRates"
    assert session.calls[1]["params"]["action"] == "getCRMData"


def test_local_client_talks_to_service(local_client):
    assert local_client.load_offer("OFF-2025-001").data["offer"]["Offer ID"] == "OFF-2025-001"
    assert "Aromat Vertex" in local_client.get_rates()
    assert local_client.send({"operation": "explode"}).message == "Unknown operation: explode"
