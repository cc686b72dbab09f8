"""
Retry for weather provider HTTP calls.

One retry by default with a short exponential backoff plus jitter. Only
transient failures are retried: timeouts, connection errors, 408, 429 and
any 5xx. Everything else (bad key, unknown city, garbage JSON) would come
back the same on a second try, so it is re-raised at once and the
FallbackAggregator moves on to the next provider.
"""

import asyncio
import functools
import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar('T')

TRANSIENT_STATUS_CODES = frozenset({408, 429})


class FailureKind(Enum):
    """How a provider request went wrong, for log lines."""
    TIMEOUT = "timeout"
    NETWORK = "network"
    RATE_LIMITED = "rate_limited"
    HTTP_STATUS = "http_status"
    BAD_PAYLOAD = "bad_payload"
    OTHER = "other"


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 1  # 2 attempts in total
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 4.0
    jitter: bool = True


DEFAULT_RETRY_CONFIG = RetryConfig()


def describe_failure(exc: BaseException) -> Tuple[FailureKind, str]:
    """Classify a request failure and give a short message for it."""
    detail = str(exc)[:200]

    if isinstance(exc, httpx.TimeoutException):
        return FailureKind.TIMEOUT, f"Timeout: {detail}"
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        if code == 429:
            return FailureKind.RATE_LIMITED, "HTTP 429 rate limited"
        return FailureKind.HTTP_STATUS, f"HTTP {code}"
    if isinstance(exc, httpx.RequestError):
        return FailureKind.NETWORK, f"Connection failed: {detail}"
    if isinstance(exc, ValueError):
        return FailureKind.BAD_PAYLOAD, f"Bad payload: {detail}"
    return FailureKind.OTHER, detail


def backoff_delay(retry_number: int, config: RetryConfig) -> float:
    """Seconds to wait before retry `retry_number` (1-based)."""
    delay = min(config.base_delay_seconds * 2 ** (retry_number - 1), config.max_delay_seconds)
    if config.jitter:
        delay *= 1 + random.random() / 4
    return delay


def is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        return code in TRANSIENT_STATUS_CODES or code >= 500
    return isinstance(exc, (httpx.TimeoutException, httpx.RequestError))


def with_retry(
    config: Optional[RetryConfig] = None,
    provider_name: str = "provider",
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Wrap an async request function with retry on transient failures.

    The final exception propagates unchanged.
    """
    config = config or DEFAULT_RETRY_CONFIG
    attempts = config.max_retries + 1

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            started = time.monotonic()
            attempt = 0
            while True:
                attempt += 1
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    kind, message = describe_failure(e)
                    logger.warning(f"[{provider_name}] Attempt {attempt}/{attempts} failed ({kind.value}): {message}")
                    if not is_transient(e) or attempt == attempts:
                        if attempt > 1:
                            logger.error(f"[{provider_name}] Giving up after {attempt} attempts "
                                         f"in {time.monotonic() - started:.2f}s")
                        raise
                    delay = backoff_delay(attempt, config)
                    logger.info(f"[{provider_name}] Retrying in {delay:.1f}s")
                    await asyncio.sleep(delay)
                    continue

                if attempt > 1:
                    logger.info(f"[{provider_name}] Recovered on attempt {attempt}")
                return result

        return wrapper

    return decorator
