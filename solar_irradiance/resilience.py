"""
Resilience Infrastructure for Solar Irradiance

Provides bounded retry with linear backoff for upstream provider calls.
Strategy: 1 retry by default, 250ms x attempt between attempts.

Features:
- @with_retry decorator for async functions
- Error categorization (timeout, rate_limit, api_error, parse_error)
- Parse errors and client-side HTTP errors are never retried
- The last error is always re-raised; nothing is swallowed
"""

import asyncio
import functools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from solar_irradiance.errors import (
    DataFormatError,
    IrradianceError,
    UpstreamConnectionError,
    UpstreamHttpError,
    UpstreamTimeoutError,
    categorize_error,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 1  # 1 retry = 2 total attempts
    backoff_step_seconds: float = 0.25

    # HTTP status codes that should NOT trigger retry
    non_retryable_status_codes: tuple = (400, 401, 403, 404, 422)

    # HTTP status codes that SHOULD trigger retry
    retryable_status_codes: tuple = (408, 429, 500, 502, 503, 504)


DEFAULT_RETRY_CONFIG = RetryConfig()


def calculate_backoff_delay(attempt: int, config: RetryConfig) -> float:
    """
    Linear backoff delay before the given retry.

    Args:
        attempt: The retry number (1 for the first retry)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    return config.backoff_step_seconds * attempt


def is_retryable_error(exception: Exception, config: RetryConfig) -> bool:
    """
    Determine if an exception should trigger a retry.

    Args:
        exception: The caught exception
        config: Retry configuration

    Returns:
        True if should retry, False otherwise
    """
    if isinstance(exception, UpstreamHttpError):
        status = exception.status_code
        if status in config.non_retryable_status_codes:
            return False
        return status in config.retryable_status_codes or status >= 500

    # Timeouts and connection failures are always retryable
    if isinstance(exception, (UpstreamTimeoutError, UpstreamConnectionError)):
        return True

    # Parse errors are NOT retryable (same bad payload will come back)
    if isinstance(exception, DataFormatError):
        return False

    # Validation/configuration errors and anything foreign
    return False


def with_retry(
    config: Optional[RetryConfig] = None,
    provider_name: str = "unknown"
) -> Callable:
    """
    Decorator that adds bounded retry with linear backoff.

    Works with async functions only. After the last attempt the final
    exception is re-raised unchanged.

    Usage:
        @with_retry(provider_name="PVGIS")
        async def _attempt():
            ...

    Args:
        config: Retry configuration (uses DEFAULT_RETRY_CONFIG if None)
        provider_name: Name for logging purposes
    """
    if config is None:
        config = DEFAULT_RETRY_CONFIG

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            start_time = time.time()

            for attempt in range(config.max_retries + 1):
                if attempt > 0:
                    delay = calculate_backoff_delay(attempt, config)
                    logger.info(
                        f"[{provider_name}] Retry {attempt}/{config.max_retries} "
                        f"after {delay:.2f}s delay"
                    )
                    await asyncio.sleep(delay)

                try:
                    result = await func(*args, **kwargs)
                except IrradianceError as e:
                    error_type = categorize_error(e)
                    logger.warning(
                        f"[{provider_name}] Attempt {attempt + 1} failed: "
                        f"{error_type.value} - {e.message[:200]}"
                    )

                    if not is_retryable_error(e, config):
                        logger.error(f"[{provider_name}] Error not retryable, giving up")
                        raise

                    if attempt >= config.max_retries:
                        elapsed = time.time() - start_time
                        logger.error(
                            f"[{provider_name}] All {config.max_retries + 1} attempts failed "
                            f"({elapsed:.2f}s total). Last error: {error_type.value}"
                        )
                        raise
                    continue

                if attempt > 0:
                    elapsed = time.time() - start_time
                    logger.info(
                        f"[{provider_name}] Succeeded on attempt {attempt + 1} "
                        f"({elapsed:.2f}s total)"
                    )
                return result

            # max_retries < 0 leaves the loop without an attempt
            raise IrradianceError(f"[{provider_name}] no attempt was made")

        return async_wrapper

    return decorator
