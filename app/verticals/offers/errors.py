from __future__ import annotations

from typing import Any, Dict, Optional


class OffersError(Exception):
    """
    Base for all domain errors of the offers vertical.

    The dispatcher turns these into a {success: false, message} envelope;
    they never cross the store/client boundary as exceptions.
    """

    code: str = "OFFERS_ERROR"
    retryable: bool = False

    def __init__(self, message: str, meta: Optional[Dict[str, Any]] = None):
        self.message = str(message)
        self.meta = meta or {}
        super().__init__(self.message)


class ConfigError(OffersError):
    """Backing store missing or misconfigured. Fatal to the whole request."""

    code = "CONFIG_ERROR"


class BusyError(OffersError):
    """Store lock not acquired within the configured wait."""

    code = "BUSY"
    retryable = True


class ValidationError(OffersError):
    """Malformed payload, unknown operation or missing field. Nothing was mutated."""

    code = "VALIDATION_ERROR"


class NotFoundError(OffersError):
    code = "NOT_FOUND"


class TransportError(OffersError):
    """The request/response exchange itself failed (client side)."""

    code = "TRANSPORT_ERROR"
    retryable = True
