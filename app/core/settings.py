# app/core/settings.py
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "offer-pricing"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = Field("json", description="json | console")

    # --- Store ---
    # "memory://" of een SQLAlchemy url (sqlite:///./offers.db)
    STORE_URL: str = ""
    LOCK_BACKEND: str = Field("thread", description="thread | file")
    LOCK_FILE_PATH: str = "./.offers.lock"
    LOCK_WAIT_SECONDS: float = 10.0

    # --- Transport / incoterms ---
    INTERMEDIARY_NAME: str = "Aromat Vertex"
    INTERMEDIARY_LABEL: str = "A-V"
    INCOTERM_EXW_INTERMEDIARY: str = "EXW A-V"
    INCOTERM_EXW_SUPPLIER: str = "EXW SUPPLIER"
    RATE_CURRENCY: str = "EUR"

    # --- Offer defaults ---
    DEFAULT_PRICE_VALIDITY: Optional[str] = None
    MIN_MARKUP_PCT: float = 10.0
    # load app/verticals/offers/data/seed.yaml at startup (handy with memory://)
    SEED_ON_STARTUP: bool = False

    # --- Client ---
    BACKEND_URL: str = "http://localhost:8000/api/offers"
    CLIENT_TIMEOUT_SECONDS: float = 30.0
    CLIENT_RETRIES: int = 2

    ALLOWED_ORIGINS: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()  # leest .env
