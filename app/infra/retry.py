# app/infra/retry.py
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from app.core.logging_config import logger

T = TypeVar("T")


@dataclass(frozen=True)
class Backoff:
    """Exponential backoff: base * factor**attempt, capped, plus up to 25% jitter."""

    base: float = 0.2
    factor: float = 2.0
    cap: float = 2.0
    jitter: float = 0.25

    def delay(self, attempt: int) -> float:
        d = min(self.base * (self.factor ** attempt), self.cap)
        return d + random.uniform(0, d * self.jitter)


def is_marked_retryable(e: Exception) -> bool:
    # domain errors carry their own flag (BusyError, TransportError)
    return bool(getattr(e, "retryable", False))


def retry_on(
    fn: Callable[[], T],
    *,
    attempts: int = 3,
    backoff: Backoff = Backoff(),
    is_retryable: Callable[[Exception], bool] = is_marked_retryable,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn up to `attempts` times. Exceptions rejected by is_retryable are
    raised at once; the last retryable one is raised when attempts run out.
    """
    attempts = max(1, attempts)
    for i in range(attempts):
        try:
            return fn()
        except Exception as e:
            if not is_retryable(e) or i == attempts - 1:
                raise
            sleep_s = backoff.delay(i)
            if on_retry:
                on_retry(i + 1, e, sleep_s)
            else:
                logger.warning(
                    "retry_scheduled", attempt=i + 1, sleep_s=round(sleep_s, 2), error=repr(e)
                )
            sleep(sleep_s)
    raise RuntimeError("unreachable")  # pragma: no cover
