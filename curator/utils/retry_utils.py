"""Classification of transient errors.

The curation core never retries a membership update on its own; this module
only decides whether a failure is worth offering the operator a retry for,
and whether an idempotent read may be retried by the HTTP client.
"""

import logging

import httpx

logger = logging.getLogger(__name__)

# HTTP status codes that indicate a temporary condition
TRANSIENT_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


def is_transient_error(error: BaseException) -> bool:
    """Determine if an error is transient and worth retrying.

    Args:
        error: The exception to check

    Returns:
        True if the error appears to be transient, False otherwise

    Transient errors include:
    - Network-related errors (connection, timeout, DNS)
    - Rate limiting errors
    - Temporary server errors (5xx)
    """
    if isinstance(error, (httpx.TimeoutException, httpx.NetworkError, TimeoutError)):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in TRANSIENT_STATUS_CODES

    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int):
        return status_code in TRANSIENT_STATUS_CODES

    retryable = getattr(error, "retryable", None)
    if isinstance(retryable, bool):
        return retryable

    error_str = str(error).lower()
    transient_keywords = [
        "timeout",
        "timed out",
        "connection",
        "network",
        "rate limit",
        "too many requests",
        "temporary",
        "unavailable",
        "bad gateway",
        "try again",
    ]
    return any(keyword in error_str for keyword in transient_keywords)
