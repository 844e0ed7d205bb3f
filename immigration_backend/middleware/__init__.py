"""
Middleware Package
==================

Rate limiting and security headers.
"""

from .rate_limit import (
    RateLimiter,
    get_rate_limiter,
    set_rate_limiter,
    rate_limit,
)
from .security import SecurityHeadersMiddleware

__all__ = [
    "RateLimiter",
    "get_rate_limiter",
    "set_rate_limiter",
    "rate_limit",
    "SecurityHeadersMiddleware",
]
