"""
Transport error classification.

Every raw transport result maps to exactly one DeliveryOutcome:

    2xx                             -> SUCCESS
    408, 425, 429, 5xx              -> TRANSIENT_FAILURE
    any other status                -> PERMANENT_FAILURE
    httpx timeouts / network errors -> TRANSIENT_FAILURE
    PermanentDeliveryError          -> PERMANENT_FAILURE
    TransientDeliveryError          -> TRANSIENT_FAILURE
    any other exception             -> TRANSIENT_FAILURE

Unknown exceptions are treated as transient; the retry budget bounds them.
"""

import asyncio

import httpx

from ..delivery.models import DeliveryOutcome
from ..errors import PermanentDeliveryError, TransientDeliveryError

TRANSIENT_STATUS_CODES = frozenset({408, 425, 429})


def classify_status(status_code: int, detail: str = "") -> DeliveryOutcome:
    """Map an HTTP status from the email API onto an outcome."""
    if 200 <= status_code < 300:
        return DeliveryOutcome.success()

    reason = f"HTTP {status_code}"
    if detail:
        reason = f"{reason}: {detail[:300]}"

    if status_code in TRANSIENT_STATUS_CODES or status_code >= 500:
        return DeliveryOutcome.transient(reason)
    return DeliveryOutcome.permanent(reason)


def classify_exception(exc: BaseException) -> DeliveryOutcome:
    """Map an exception raised while sending onto an outcome."""
    if isinstance(exc, PermanentDeliveryError):
        return DeliveryOutcome.permanent(exc.reason)
    if isinstance(exc, TransientDeliveryError):
        return DeliveryOutcome.transient(exc.reason)
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_status(exc.response.status_code, exc.response.text)
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return DeliveryOutcome.transient(f"timeout: {type(exc).__name__}")
    if isinstance(exc, httpx.TransportError):
        return DeliveryOutcome.transient(f"transport error: {type(exc).__name__}: {exc}")
    return DeliveryOutcome.transient(f"unexpected error: {type(exc).__name__}: {exc}")
