"""
Middleware components for request processing.

This package contains middleware for:
- Request context (request ID, client IP) and request logging
- CORS for the browser client
"""

from offerready.middleware.cors import CORSMiddleware
from offerready.middleware.request_context import RequestContextMiddleware
from offerready.middleware.request_logging import RequestLoggingMiddleware

__all__ = [
    "CORSMiddleware",
    "RequestContextMiddleware",
    "RequestLoggingMiddleware",
]
