"""
Error response models and error handlers.
"""

import inspect
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import BodyParsingError, RequestValidationError, RouteSchemaHTTPError
from .models import Request, Response


class ErrorResponse(BaseModel):
    """Standard error response model.

    This model represents the structure of error responses returned when a
    request fails. It includes an error message and optional per-field details.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Validation failed",
                "details": [
                    {
                        "type": "missing",
                        "loc": ["body", "name"],
                        "msg": "Field required",
                        "input": {}
                    }
                ]
            }
        }
    )

    error: str = Field(
        ...,
        description="Human-readable error message describing what went wrong"
    )

    details: Optional[List[Dict[str, Any]]] = Field(
        None,
        description="Detailed validation errors following the pydantic error schema"
    )

    @classmethod
    def from_error(cls, error: RouteSchemaHTTPError) -> "ErrorResponse":
        """Create an ErrorResponse from any routeschema HTTP error."""
        return cls(error=error.message, details=error.errors() or None)

    @classmethod
    def from_validation_error(cls, error: RequestValidationError, message: str = "Validation failed") -> "ErrorResponse":
        """Create an ErrorResponse from a RequestValidationError.

        Args:
            error: The failed validation
            message: Custom error message (defaults to "Validation failed")
        """
        return cls(error=message, details=error.errors())


class ErrorHandler:
    """Represents a custom error handler.

    The handler is called as ``handler(error, request, response)`` for errors that
    are instances of one of ``exception_types`` (every ``Exception`` when none are
    given). It may be sync or async and finishes the request by sending the response.
    """

    def __init__(self, handler: Callable, *exception_types: Type[BaseException]):
        self.handler = handler
        self.exception_types: Tuple[Type[BaseException], ...] = exception_types or (Exception,)

    def __repr__(self):
        names = ", ".join(t.__name__ for t in self.exception_types)
        return f"ErrorHandler({getattr(self.handler, '__name__', self.handler)!r}, {names})"

    def handles(self, error: BaseException) -> bool:
        """Check if this handler handles the given error."""
        return isinstance(error, self.exception_types)

    async def __call__(self, error: Exception, request: Request, response: Response) -> None:
        result = self.handler(error, request, response)
        if inspect.isawaitable(result):
            await result


def _respond_with_validation_errors(error: Exception, request: Request, response: Response) -> None:
    if isinstance(error, RequestValidationError):
        body = ErrorResponse.from_validation_error(error)
    else:
        body = ErrorResponse.from_error(error)  # type: ignore[arg-type]
    response.status(400).json(body.model_dump(exclude_none=True))


validation_error_handler = ErrorHandler(
    _respond_with_validation_errors, RequestValidationError, BodyParsingError
)
"""Answers validation and body parsing failures with 400 and the per-field errors."""
