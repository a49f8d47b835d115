"""
Middleware package.
"""
from orderflow.middleware.error_handler import ErrorHandlerMiddleware, app_error_handler
from orderflow.middleware.request_id import RequestIdMiddleware

__all__ = [
    "ErrorHandlerMiddleware",
    "RequestIdMiddleware",
    "app_error_handler",
]
