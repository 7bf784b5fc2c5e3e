"""
Middleware package for the MedEase Clinic API.
"""

from .logging_middleware import RequestLoggingMiddleware
from .rate_limit import auth_rate_limit, auth_rate_limiter

__all__ = [
    "RequestLoggingMiddleware",
    "auth_rate_limit",
    "auth_rate_limiter",
]
