"""
Type projection of a RouteSchema.

Statically, ``Request`` and ``Response`` are generic and ``RouteSchema`` carries
the validated types as type parameters, so a handler registered next to its
schema is checked as ``Handler[Params, Query, Body, ResponseBody]`` without
restating anything.

The functions below expose the same projection at runtime for introspection
(tooling, tests, generated stubs). They never validate anything. When a body or
response declares several content types, only the highest-priority one
(JSON, multipart, plain text, HTML) is projected; the generated document still
lists all of them.
"""

from typing import Any, Awaitable, Callable, Dict, NamedTuple, Optional, TypeVar, Union

from .models import Request, Response
from .schema import RouteSchema, Schema, _ContentSlots

ParamsT = TypeVar("ParamsT")
QueryT = TypeVar("QueryT")
BodyT = TypeVar("BodyT")
ResponseT = TypeVar("ResponseT")

Handler = Callable[
    [Request[ParamsT, QueryT, BodyT], Response[ResponseT]],
    Union[None, Awaitable[None]],
]
"""A route middleware or handler; sync or async."""

# Shapes used when a schema omits a request part
PermissiveParams = Dict[str, str]
PermissiveQuery = Dict[str, str]
PermissiveHeaders = Dict[str, str]


class RouteTypes(NamedTuple):
    params: Any
    query: Any
    headers: Any
    body: Any
    response_body: Any


def _annotation(schema: Optional[Schema], default: Any) -> Any:
    if schema is None:
        return default
    return schema.annotation


def _primary(content: Optional[_ContentSlots]) -> Any:
    if content is None:
        return None
    primary = content.primary()
    return primary[1].annotation if primary else None


def params_type(schema: RouteSchema) -> Any:
    return _annotation(schema.params, PermissiveParams)


def query_type(schema: RouteSchema) -> Any:
    return _annotation(schema.query, PermissiveQuery)


def headers_type(schema: RouteSchema) -> Any:
    return _annotation(schema.headers, PermissiveHeaders)


def body_type(schema: RouteSchema) -> Any:
    """Type of the validated body, ``Any`` when no body is declared."""
    annotation = _primary(schema.body)
    return Any if annotation is None else annotation


def response_body_type(schema: RouteSchema) -> Any:
    """Union of every declared response body type, ``Any`` when none is declared."""
    members = []
    for spec in schema.responses.values():
        annotation = _primary(spec)
        if annotation is not None and annotation not in members:
            members.append(annotation)
    if not members:
        return Any
    if len(members) == 1:
        return members[0]
    return Union[tuple(members)]


def route_types(schema: RouteSchema) -> RouteTypes:
    """Project every request and response type of a route schema."""
    return RouteTypes(
        params=params_type(schema),
        query=query_type(schema),
        headers=headers_type(schema),
        body=body_type(schema),
        response_body=response_body_type(schema),
    )
