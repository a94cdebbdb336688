"""
Request validation middleware built from a RouteSchema.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .exceptions import RequestValidationError
from .models import MultiValueHeaders, Request, Response
from .schema import Content, RouteSchema, Schema

logger = logging.getLogger(__name__)


def _errors_from(error: ValueError, value: Any) -> List[Dict[str, Any]]:
    """Per-field error list for a failed validation."""
    if isinstance(error, ValidationError):
        # Round-trip through JSON so error contexts holding exceptions stay serializable
        return json.loads(error.json(include_url=False))
    return [{"type": "value_error", "loc": [], "msg": str(error), "input": value}]


def _run(schema: Schema, value: Any, location: str) -> Any:
    try:
        return schema.validate(value)
    except ValueError as e:
        logger.debug(f"Request {location} failed validation: {e}")
        raise RequestValidationError(location, _errors_from(e, value)) from e


def _body_schema(content: Content, request: Request) -> Optional[Schema]:
    """Schema matching the request's Content-Type, else the priority winner."""
    schema = content.get(request.headers.get("content-type"))
    if schema is not None:
        return schema
    primary = content.primary()
    return primary[1] if primary else None


def _header_values(headers: MultiValueHeaders, declared: List[str]) -> Dict[str, str]:
    """Header mapping where declared field names are matched case-insensitively."""
    values = headers.to_dict()
    for name in declared:
        value = headers.get(name)
        if value is not None:
            values[name] = value
    return values


def validate_request(schema: RouteSchema):
    """Build the step that validates a request against ``schema``.

    Body, params and query are replaced by the validated values so that
    transformations declared in the schemas are what handlers observe. Headers
    are validated but left untouched.

    Raises (from the returned step):
        RequestValidationError: If any declared part fails its schema.
    """
    body = schema.body
    params = schema.params
    query = schema.query
    headers = schema.headers
    declared_headers = list(headers.json_schema().get("properties", {})) if headers is not None else []

    async def validate(request: Request, response: Response) -> None:
        if body is not None:
            body_schema = _body_schema(body, request)
            if body_schema is not None:
                request.body = _run(body_schema, request.body, "body")
        if params is not None:
            request.params = _run(params, request.params, "params")
        if query is not None:
            request.query = _run(query, request.query, "query")
        if headers is not None:
            _run(headers, _header_values(request.headers, declared_headers), "headers")

    return validate
