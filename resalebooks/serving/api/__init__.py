"""
API Module
"""
from .main import create_api_app
from .middleware import RequestLoggingMiddleware, RateLimitMiddleware

__all__ = [
    "create_api_app",
    "RequestLoggingMiddleware",
    "RateLimitMiddleware",
]
