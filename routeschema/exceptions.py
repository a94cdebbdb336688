"""
Exceptions raised by routeschema.

Two families exist. Configuration errors are raised synchronously while routes
are declared or a document is generated. HTTP errors are raised while a request
is processed and always travel to the server's error handlers.
"""
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

__all__ = [
    "ValidationError",
    "RouteSchemaError",
    "ConfigurationError",
    "DuplicateRouteError",
    "RegistrationClosedError",
    "InvalidResponsesError",
    "RouteSchemaHTTPError",
    "RequestValidationError",
    "BodyParsingError",
    "RouteNotFoundError",
    "MethodNotAllowedError",
]


class RouteSchemaError(Exception):
    """Base exception for routeschema errors."""

    pass


class ConfigurationError(RouteSchemaError):
    """Raised when routes or documents are declared incorrectly."""

    pass


class DuplicateRouteError(ConfigurationError):
    """Raised when a router already holds a route for the same method and path."""

    def __init__(self, method: str, path: str):
        self.method = method
        self.path = path
        super().__init__(f"Duplicate route: {method} {path}")


class RegistrationClosedError(ConfigurationError):
    """Raised when routes are registered after the build phase has ended."""

    pass


class InvalidResponsesError(ConfigurationError):
    """Raised when a route schema's responses map cannot be documented."""

    def __init__(self, message: str, method: Optional[str] = None, path: Optional[str] = None):
        self.method = method
        self.path = path
        if method and path:
            message = f"{method} {path}: {message}"
        super().__init__(message)


class RouteSchemaHTTPError(RouteSchemaError):
    """Base class for errors that map onto an HTTP status code."""

    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def errors(self) -> List[Dict[str, Any]]:
        """Return per-field error details (empty for most errors)."""
        return []


class RequestValidationError(RouteSchemaHTTPError):
    """Raised when a part of the request fails its declared schema.

    Args:
        location: Which part of the request failed ("body", "params", "query" or "headers")
        errors: Per-field errors in pydantic's error format
    """

    status_code = 400
    message = "Validation failed"

    def __init__(self, location: str, errors: List[Dict[str, Any]]):
        self.location = location
        self._errors = [
            {**error, "loc": (location, *tuple(error.get("loc", ())))}
            for error in errors
        ]
        super().__init__(f"Invalid request {location}")

    def errors(self) -> List[Dict[str, Any]]:
        return list(self._errors)


class BodyParsingError(RouteSchemaHTTPError):
    """Raised when a body parser cannot decode the request body."""

    status_code = 400
    message = "Failed to parse request body"

    def __init__(self, message: Optional[str] = None, original_exception: Optional[Exception] = None):
        self.original_exception = original_exception
        super().__init__(message)


class RouteNotFoundError(RouteSchemaHTTPError):
    """Raised when no mounted router has a route for the request path."""

    status_code = 404
    message = "Not found"


class MethodNotAllowedError(RouteSchemaHTTPError):
    """Raised when the path exists but not for the request method."""

    status_code = 405
    message = "Method not allowed"

    def __init__(self, allowed: List[str]):
        self.allowed = allowed
        super().__init__()
