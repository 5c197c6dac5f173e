from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from app.core.settings import get_settings
from app.verticals.offers.schemas.envelope import ApiResponse
from app.verticals.offers.service import OfferService

# ----------------------------
# Router
# ----------------------------
router = APIRouter(prefix="/api/offers", tags=["offers"])


@lru_cache(maxsize=1)
def get_offer_service() -> OfferService:
    # one service = one store = one global store lock per process
    return OfferService(get_settings())


# ----------------------------
# Reads: ?id=<offer> | ?action=getCRMData | (status)
# ----------------------------
@router.get("", response_model=ApiResponse)
def offers_get(
    id: Optional[str] = None,
    action: Optional[str] = None,
    svc: OfferService = Depends(get_offer_service),
) -> ApiResponse:
    return svc.handle_get({"id": id, "action": action})


# ----------------------------
# Mutations: {operation: ...} | {action: saveSupplierRates}
# Body is read raw: clients post JSON as text/plain (no CORS preflight).
# ----------------------------
@router.post("", response_model=ApiResponse)
async def offers_post(
    request: Request,
    svc: OfferService = Depends(get_offer_service),
) -> ApiResponse:
    body = await request.body()
    # store calls block on the global lock: keep them off the event loop
    return await run_in_threadpool(svc.handle_post, body)
