# app/main.py
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from app.core.settings import settings
from app.core.logging_config import bind_request_context, setup_logging, logger
from app.verticals.offers.api.routes import get_offer_service, router as offers_router
from app.verticals.offers.errors import OffersError
from app.verticals.offers.storage.seed import load_seed, seed_store


# ----------------------------------------------------
# App init
# ----------------------------------------------------
app = FastAPI(title="Offer Pricing API", version="0.1.0")

setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
logger.info("startup", service=settings.APP_NAME)


# ----------------------------------------------------
# Health
# ----------------------------------------------------
@app.get("/health", include_in_schema=True)
def health() -> dict:
    return {"status": "ok"}


# ----------------------------------------------------
# Logging middleware
# ----------------------------------------------------
@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    start = time.time()

    request_id = request.headers.get("X-Request-ID", "unknown")
    client_ip = request.client.host if request.client else "unknown"

    # request_id also ends up on store_mutation / offer_api_request events
    bind_request_context(request_id=request_id)
    bound_logger = logger.bind(
        ip=client_ip,
        endpoint=str(request.url.path),
        method=request.method,
    )

    bound_logger.info("request_started")
    response = await call_next(request)
    latency_ms = round((time.time() - start) * 1000, 2)

    bound_logger.bind(status_code=response.status_code, latency_ms=latency_ms).info(
        "request_finished"
    )
    return response


# ----------------------------------------------------
# Middleware
# ----------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------------------------------------
# Routers
# ----------------------------------------------------
app.include_router(offers_router)


# ----------------------------------------------------
# Startup
# ----------------------------------------------------
@app.on_event("startup")
def on_startup():
    if not settings.SEED_ON_STARTUP:
        return
    try:
        seed_store(get_offer_service().store, load_seed())
    except OffersError as e:
        # API still starts; requests report the store problem themselves
        logger.bind(code=e.code).warning("seed_skipped", message=e.message)
