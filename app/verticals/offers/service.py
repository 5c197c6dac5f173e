from __future__ import annotations

import json
import threading
import time
from typing import Any, Callable, Mapping, Optional, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from app.core.logging_config import logger
from app.core.settings import Settings, get_settings

from .errors import OffersError, ValidationError
from .schemas.envelope import (
    ACTION_GET_RATES,
    ACTION_SAVE_RATES,
    OPERATIONS,
    AddProductRequest,
    ApiResponse,
    DeleteItemRequest,
    DeleteItemsRequest,
    DuplicateItemRequest,
    OperationRequest,
    SaveOfferRequest,
    SaveSupplierRatesRequest,
    ToggleIncludedRequest,
    UpdateItemFieldsRequest,
)
from .schemas.rates import rates_to_wire
from .storage.factory import build_store
from .storage.item_store import ItemStore

_operation_adapter: TypeAdapter = TypeAdapter(OperationRequest)


def _pydantic_message(prefix: str, e: PydanticValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return f"{prefix}: " + "; ".join(parts)


def _reject_constant(name: str) -> Any:
    # NaN / Infinity / -Infinity are not JSON
    raise ValueError(f"Non-finite number in body: {name}")


class OfferService:
    """
    Request dispatcher in front of ItemStore.

    Domain errors come back as {success: false, message}; nothing is raised
    to the caller. The store is built lazily so a missing STORE_URL is a
    per-request SETUP_REQUIRED answer instead of an import-time crash.
    """

    def __init__(self, settings: Optional[Settings] = None, store: Optional[ItemStore] = None):
        self.settings = settings or get_settings()
        self._store_obj = store
        self._init_lock = threading.Lock()

    @property
    def store(self) -> ItemStore:
        if self._store_obj is None:
            with self._init_lock:
                if self._store_obj is None:
                    self._store_obj = build_store(self.settings)
        return self._store_obj

    # ----------------------------
    # envelope wrapper
    # ----------------------------
    def _run(self, kind: str, fn: Callable[[], ApiResponse]) -> ApiResponse:
        t0 = time.time()
        try:
            resp = fn()
        except OffersError as e:
            resp = ApiResponse.fail(e.message)
            logger.bind(kind=kind, code=e.code, **e.meta).warning("offer_api_rejected", message=e.message)
        except Exception as e:  # noqa: BLE001 (envelope boundary)
            logger.bind(kind=kind).exception("offer_api_failed")
            resp = ApiResponse.fail(f"SERVER_ERROR: {e}")

        logger.bind(
            kind=kind,
            result="ok" if resp.success else "failed",
            duration_ms=round((time.time() - t0) * 1000, 2),
        ).info("offer_api_request")
        return resp

    # ----------------------------
    # GET
    # ----------------------------
    def handle_get(self, params: Mapping[str, Any]) -> ApiResponse:
        action = params.get("action")
        offer_id = params.get("id")
        kind = f"get:{action or ('offer' if offer_id else 'status')}"

        def _do() -> ApiResponse:
            store = self.store
            if action == ACTION_GET_RATES:
                return ApiResponse.ok("Success", {"supplierRates": store.get_rate_tables()})
            if offer_id:
                return ApiResponse.ok("Success", store.get_offer_data(str(offer_id)))
            return ApiResponse.ok(
                "Offer API Ready",
                {"status": "connected", "store": store.workbook.backend_name},
            )

        return self._run(kind, _do)

    # ----------------------------
    # POST
    # ----------------------------
    def handle_post(self, body: Union[bytes, str, Mapping[str, Any], None]) -> ApiResponse:
        def _do() -> ApiResponse:
            payload = self._parse_body(body)
            store = self.store

            if payload.get("action") == ACTION_SAVE_RATES:
                try:
                    req = SaveSupplierRatesRequest.model_validate(payload)
                except PydanticValidationError as e:
                    raise ValidationError(_pydantic_message("Invalid rates", e)) from e
                store.save_rate_tables(rates_to_wire(req.rates))
                return ApiResponse.ok("Rates Saved")

            if payload.get("operation"):
                return self._dispatch_operation(payload)

            raise ValidationError("Missing operation in payload")

        kind = "post"
        if isinstance(body, Mapping):
            kind = f"post:{body.get('operation') or body.get('action')}"
        return self._run(kind, _do)

    @staticmethod
    def _parse_body(body: Union[bytes, str, Mapping[str, Any], None]) -> Mapping[str, Any]:
        if isinstance(body, Mapping):
            return body
        try:
            payload = json.loads(body or "{}", parse_constant=_reject_constant)
        except (TypeError, ValueError) as e:
            raise ValidationError("Invalid JSON Body in Request") from e
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON Body in Request")
        return payload

    def _dispatch_operation(self, payload: Mapping[str, Any]) -> ApiResponse:
        op = payload.get("operation")
        if op not in OPERATIONS:
            raise ValidationError(f"Unknown operation: {op}")

        try:
            req = _operation_adapter.validate_python(dict(payload))
        except PydanticValidationError as e:
            raise ValidationError(_pydantic_message(f"Invalid payload for {op}", e)) from e

        store = self.store

        if isinstance(req, AddProductRequest):
            data: Any = store.add_product_tiers(req.offer_id, req.product_id)
        elif isinstance(req, UpdateItemFieldsRequest):
            data = store.update_item_fields(req.offer_item_id, req.fields)
        elif isinstance(req, ToggleIncludedRequest):
            data = store.toggle_included(req.offer_item_id, req.included)
        elif isinstance(req, DuplicateItemRequest):
            data = store.duplicate_item(req.offer_item_id, req.overrides)
        elif isinstance(req, DeleteItemRequest):
            data = store.delete_item(req.offer_item_id)
            if not data.get("deleted"):
                return ApiResponse.ok(data.get("message", "Item not found"), data)
        elif isinstance(req, DeleteItemsRequest):
            data = store.delete_items(req.offer_item_ids)
        elif isinstance(req, SaveOfferRequest):
            data = store.save_offer(req.offer_id)
        else:  # pragma: no cover
            raise ValidationError(f"Unknown operation: {op}")

        return ApiResponse.ok("Operation Successful", data)
