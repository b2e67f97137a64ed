"""Retry logic and exponential backoff utilities."""

import time
import random
import logging
from functools import wraps
from typing import Callable, Any

logger = logging.getLogger(__name__)


def exponential_backoff(attempt: int, base_delay: float = 1.0, max_delay: float = 60.0) -> float:
    """Calculate exponential backoff delay with jitter."""
    delay = min(base_delay * (2 ** attempt), max_delay)
    jitter = random.uniform(0, delay * 0.1)
    return delay + jitter


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exceptions: tuple = (Exception,)
):
    """Decorator for exponential backoff retry logic."""
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries:
                        logger.error(f"Function {func.__name__} failed after {max_retries} retries: {e}")
                        raise

                    delay = exponential_backoff(attempt, base_delay, max_delay)
                    logger.warning(
                        f"Attempt {attempt + 1} of {func.__name__} failed: {e}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    time.sleep(delay)

        return wrapper
    return decorator


class RetryableError(Exception):
    """Base class for errors that should trigger retries."""
    pass


class APIRateLimitError(RetryableError):
    """Raised when API rate limit is hit."""
    pass


class NetworkError(RetryableError):
    """Raised for network-related errors."""
    pass


class TemporaryServiceError(RetryableError):
    """Raised for temporary service unavailability."""
    pass


def classify_api_error(e: Exception) -> Exception:
    """Map a raw client exception to a retryable error where one applies."""
    message = str(e).lower()
    if "rate limit" in message or "resource_exhausted" in message or "429" in message:
        return APIRateLimitError(f"Rate limit hit: {e}")
    if "network" in message or "connection" in message or "timed out" in message:
        return NetworkError(f"Network error: {e}")
    if "unavailable" in message or "503" in message:
        return TemporaryServiceError(f"Service unavailable: {e}")
    return e


def retry_api_call(max_retries: int = 5, base_delay: float = 2.0):
    """Retry decorator specifically for API calls with longer delays."""
    return retry_with_backoff(
        max_retries=max_retries,
        base_delay=base_delay,
        max_delay=120.0,
        exceptions=(APIRateLimitError, NetworkError, TemporaryServiceError)
    )
