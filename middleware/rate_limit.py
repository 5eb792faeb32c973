# middleware/rate_limit.py
"""
Rate limiting configuration using slowapi.

Usage in route files:
    from middleware.rate_limit import limiter

    @router.post("/analyze")
    @limiter.limit("5/minute")
    async def analyze(request: Request):
        ...
"""
import hashlib
import logging
import os

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-Gemini-Api-Key"


def _get_rate_limit_key(request: Request) -> str:
    """
    Identify the caller for rate-limiting.

    Callers that bring their own Gemini key get a bucket per key (hashed, the
    key itself never reaches the limiter storage); everyone else is bucketed
    by client IP and shares the server's key.
    """
    own_key = (request.headers.get(API_KEY_HEADER) or "").strip()
    if own_key:
        digest = hashlib.sha256(own_key.encode("utf-8")).hexdigest()[:16]
        return f"key:{digest}"
    return get_remote_address(request)


DEFAULT_RATE_LIMIT = os.getenv("RATE_LIMIT_DEFAULT", "60/minute")

limiter = Limiter(
    key_func=_get_rate_limit_key,
    default_limits=[DEFAULT_RATE_LIMIT],
    storage_uri=os.getenv("REDIS_URL", "memory://"),
    strategy="fixed-window",
)
