"""API-key authentication and rate limiting shared by every Iris router.

Authentication is via the ``X-API-Key`` header and is only enforced when
``IRIS_API_KEY`` is configured; a local install without a key serves the
intake form openly.  Rate limiting allows at most 100 requests per minute
per caller using an in-memory sliding window counter.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections import defaultdict

from fastapi import Header, HTTPException, Request, status

from iris.config import settings

logger = logging.getLogger("iris.api")

# ---------------------------------------------------------------------------
# In-memory rate limiter
# ---------------------------------------------------------------------------

# Maps caller key → list of request timestamps (monotonic seconds)
_rate_limit_windows: dict[str, list[float]] = defaultdict(list)

_RATE_LIMIT_MAX = 100       # requests
_RATE_LIMIT_WINDOW = 60.0   # seconds


def _check_rate_limit(caller: str) -> None:
    """Enforce 100 requests / 60-second sliding window per caller.

    Raises HTTP 429 when the limit is exceeded.
    """
    now = time.monotonic()
    cutoff = now - _RATE_LIMIT_WINDOW
    window = [t for t in _rate_limit_windows[caller] if t > cutoff]
    if len(window) >= _RATE_LIMIT_MAX:
        _rate_limit_windows[caller] = window
        logger.warning("Rate limit exceeded for caller=%s", caller[:8])
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded: 100 requests per 60 seconds.",
        )
    window.append(now)
    _rate_limit_windows[caller] = window


def reset_rate_limits() -> None:
    _rate_limit_windows.clear()


# ---------------------------------------------------------------------------
# Auth dependency
# ---------------------------------------------------------------------------


async def require_api_key(
    request: Request,
    x_api_key: str | None = Header(None, alias="X-API-Key"),
) -> str:
    """Validate the ``X-API-Key`` header and enforce rate limiting.

    Returns
    -------
    str
        The caller key used for rate limiting: the API key, or the client
        host when authentication is disabled.

    Raises
    ------
    HTTPException
        403 if a key is configured and the header does not match; 429 if
        the rate limit is exceeded.
    """
    expected = settings.iris_api_key
    if expected:
        if not x_api_key or not secrets.compare_digest(x_api_key, expected):
            logger.warning("Invalid API key attempt: %s...", (x_api_key or "")[:6])
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid API key.",
            )
        caller = x_api_key
    else:
        caller = request.client.host if request.client else "anonymous"
    _check_rate_limit(caller)
    return caller
