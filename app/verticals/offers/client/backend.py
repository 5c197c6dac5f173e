from __future__ import annotations

import json
import time
from typing import Any, Dict, Mapping, Optional, Protocol

import requests

from app.core.logging_config import logger
from app.core.settings import Settings, get_settings
from app.infra.retry import Backoff, retry_on

from ..errors import TransportError
from ..schemas.envelope import ACTION_GET_RATES, ACTION_SAVE_RATES, ApiResponse
from ..service import OfferService

CONNECTIVITY_HINT = (
    "Network Error: unable to reach the offer API.\n\n"
    "POSSIBLE CAUSES:\n"
    "1. The API server is not running or BACKEND_URL points to the wrong host.\n"
    "2. The server has no store configured (STORE_URL).\n"
    "3. A proxy or firewall blocks the request."
)

# Safe to repeat after a lost response. add/duplicate would create duplicate rows.
IDEMPOTENT_OPERATIONS = frozenset({"toggle_included"})

_BACKOFF = Backoff(base=1.5, factor=2.0, cap=5.0)


class BackendClient(Protocol):
    def load_offer(self, offer_id: Optional[str]) -> ApiResponse: ...

    def send(self, payload: Mapping[str, Any]) -> ApiResponse: ...

    def get_rates(self) -> Dict[str, Any]: ...

    def save_rates(self, rates: Mapping[str, Any]) -> ApiResponse: ...


# =============================================================================
# In-process client (tests, scripts)
# =============================================================================


class LocalBackendClient:
    def __init__(self, service: OfferService):
        self.service = service

    def load_offer(self, offer_id: Optional[str]) -> ApiResponse:
        return self.service.handle_get({"id": offer_id})

    def send(self, payload: Mapping[str, Any]) -> ApiResponse:
        return self.service.handle_post(dict(payload))

    def get_rates(self) -> Dict[str, Any]:
        resp = self.service.handle_get({"action": ACTION_GET_RATES})
        return ((resp.data or {}).get("supplierRates") or {}) if resp.success else {}

    def save_rates(self, rates: Mapping[str, Any]) -> ApiResponse:
        return self.service.handle_post({"action": ACTION_SAVE_RATES, "rates": dict(rates)})


# =============================================================================
# HTTP client
# =============================================================================


def _is_network_error(e: Exception) -> bool:
    return isinstance(e, (requests.ConnectionError, requests.Timeout))


class HttpBackendClient:
    """
    requests-based client for the offer API.

    Every exchange failure (network, HTTP status, body that is not an
    envelope) is raised as TransportError, distinct from a {success: false}
    domain answer.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        sleep=time.sleep,
    ):
        s = settings or get_settings()
        self.base_url = base_url or s.BACKEND_URL
        self.timeout = s.CLIENT_TIMEOUT_SECONDS
        self.retries = max(0, int(s.CLIENT_RETRIES))
        self.session = session or requests.Session()
        self._sleep = sleep

    # -----------------
    # plumbing
    # -----------------

    def _exchange(self, method: str, *, params=None, body=None, retry: bool) -> ApiResponse:
        def _once() -> requests.Response:
            resp = self.session.request(
                method,
                self.base_url,
                params=params,
                data=body,
                # text/plain: no CORS preflight from browsers sharing this endpoint
                headers={"Content-Type": "text/plain"} if body is not None else None,
                timeout=self.timeout,
            )
            resp.raise_for_status()
            return resp

        attempts = self.retries + 1 if retry else 1
        try:
            resp = retry_on(
                _once,
                attempts=attempts,
                backoff=_BACKOFF,
                is_retryable=_is_network_error,
                sleep=self._sleep,
            )
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            raise TransportError(f"HTTP Error: {status}", {"url": self.base_url}) from e
        except requests.RequestException as e:
            logger.bind(url=self.base_url, method=method).warning("offer_api_unreachable", error=repr(e))
            raise TransportError(CONNECTIVITY_HINT, {"url": self.base_url}) from e

        try:
            return ApiResponse.model_validate(resp.json())
        except ValueError as e:
            raise TransportError("Invalid response from offer API", {"url": self.base_url}) from e

    def _get(self, params: Dict[str, Any]) -> ApiResponse:
        # cache buster: stale intermediaries must not answer reads
        params = {**params, "_cb": str(int(time.time() * 1000))}
        return self._exchange("GET", params=params, retry=True)

    def _post(self, payload: Mapping[str, Any], *, retry: bool) -> ApiResponse:
        return self._exchange("POST", body=json.dumps(dict(payload)), retry=retry)

    # -----------------
    # contract
    # -----------------

    def load_offer(self, offer_id: Optional[str]) -> ApiResponse:
        return self._get({"id": offer_id} if offer_id else {})

    def send(self, payload: Mapping[str, Any]) -> ApiResponse:
        return self._post(payload, retry=payload.get("operation") in IDEMPOTENT_OPERATIONS)

    def get_rates(self) -> Dict[str, Any]:
        resp = self._get({"action": ACTION_GET_RATES})
        if not resp.success:
            logger.warning("rate_tables_unavailable", message=resp.message)
            return {}
        return (resp.data or {}).get("supplierRates") or {}

    def save_rates(self, rates: Mapping[str, Any]) -> ApiResponse:
        # whole-table replace: repeating it is harmless
        return self._post({"action": ACTION_SAVE_RATES, "rates": dict(rates)}, retry=True)
