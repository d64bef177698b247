"""Rate-limit detection for oracle responses.

The oracle signals throttling either with HTTP 429 or with a plain-text body
such as "Rate limit exceeded" under another status code. Every call site
classifies responses through this module only.
"""

from enum import Enum

from vaultnav.exceptions import OracleRateLimitedError

_RATE_LIMIT_STATUS = 429

# Lower-cased prefixes of plain-text throttling bodies
_RATE_LIMIT_BODY_PREFIXES = ("rate limit", "too many requests")


class ResponseKind(str, Enum):
    """Classification of a raw oracle HTTP response."""

    OK = "ok"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


def classify_response(status_code: int, body: str) -> ResponseKind:
    """Classify a response by status code and body text."""
    if status_code == _RATE_LIMIT_STATUS:
        return ResponseKind.RATE_LIMITED
    if body.lstrip().lower().startswith(_RATE_LIMIT_BODY_PREFIXES):
        return ResponseKind.RATE_LIMITED
    if status_code >= 400:
        return ResponseKind.ERROR
    return ResponseKind.OK


def is_rate_limit_error(error: BaseException) -> bool:
    """True if an exception represents a rate limit rather than a hard failure."""
    return isinstance(error, OracleRateLimitedError)
