"""
Gateway Logging
===============
Structured logging setup and request context propagation.
"""

from .setup import setup_logging, mask_secret, request_id_var, service_name_var
from .middleware import RequestContextMiddleware, generate_request_id, REQUEST_ID_HEADER

__all__ = [
    "setup_logging",
    "mask_secret",
    "request_id_var",
    "service_name_var",
    "RequestContextMiddleware",
    "generate_request_id",
    "REQUEST_ID_HEADER",
]
