"""
Route schema model.

A ``RouteSchema`` is the single declaration of a route's contract: the schemas
its path parameters, query string, headers and body must satisfy, and the
responses it can produce per status code and content type. The router derives
request validation from it and the generator derives the OpenAPI operation.

Schemas are pluggable: anything implementing the ``Schema`` protocol works, and
plain types (pydantic models, ``str``, ``List[Pet]``...) are wrapped in
``PydanticSchema`` automatically.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import (
    Any,
    Dict,
    Generic,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Type,
    TypeVar,
    Union,
    cast,
    runtime_checkable,
)

from pydantic import BaseModel, TypeAdapter

from .exceptions import InvalidResponsesError

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)
ParamsT = TypeVar("ParamsT")
QueryT = TypeVar("QueryT")
HeadersT = TypeVar("HeadersT")
BodyT = TypeVar("BodyT")
ResponseT = TypeVar("ResponseT")

DEFAULT_REF_TEMPLATE = "#/components/schemas/{model}"


@runtime_checkable
class Schema(Protocol[T_co]):
    """A validator that can also describe itself.

    ``validate`` returns the parsed (possibly transformed) value and raises
    ``ValueError`` on failure; pydantic's ``ValidationError`` is a ``ValueError``.
    ``json_schema`` returns a JSON Schema description used for documentation.
    """

    @property
    def annotation(self) -> Any: ...

    def validate(self, value: Any) -> T_co: ...

    def json_schema(self, ref_template: str = DEFAULT_REF_TEMPLATE) -> Dict[str, Any]: ...


class PydanticSchema(Generic[T]):
    """Schema backed by a pydantic ``TypeAdapter``."""

    def __init__(self, annotation: Type[T]):
        self._annotation = annotation
        self._adapter: TypeAdapter[T] = TypeAdapter(annotation)

    def __repr__(self):
        return f"PydanticSchema({getattr(self._annotation, '__name__', self._annotation)!r})"

    @property
    def annotation(self) -> Type[T]:
        return self._annotation

    @property
    def is_model(self) -> bool:
        """True when the schema is a pydantic model class."""
        return isinstance(self._annotation, type) and issubclass(self._annotation, BaseModel)

    def validate(self, value: Any) -> T:
        return self._adapter.validate_python(value)

    def json_schema(self, ref_template: str = DEFAULT_REF_TEMPLATE) -> Dict[str, Any]:
        return self._adapter.json_schema(ref_template=ref_template)


SchemaLike = Union[Schema[T], Type[T]]


def as_schema(value: Any) -> Schema:
    """Coerce a type or ``Schema`` into a ``Schema``."""
    if not isinstance(value, type) and isinstance(value, Schema):
        return value
    try:
        return PydanticSchema(value)
    except TypeError as e:
        raise TypeError(f"Cannot use {value!r} as a schema: {e}") from e


def _coerce(value: Any) -> Optional[Schema]:
    return None if value is None else as_schema(value)


class ContentType(str, Enum):
    """Supported body content types, in projection priority order."""

    APPLICATION_JSON = "application/json"
    MULTIPART_FORM_DATA = "multipart/form-data"
    TEXT_PLAIN = "text/plain"
    TEXT_HTML = "text/html"

    @classmethod
    def from_header(cls, value: Optional[str]) -> Optional["ContentType"]:
        """Map a Content-Type header value (parameters ignored) onto a member."""
        if not value:
            return None
        media_type = value.split(";")[0].strip().lower()
        for member in cls:
            if member.value == media_type:
                return member
        return None


_SLOTS: Dict[ContentType, str] = {
    ContentType.APPLICATION_JSON: "application_json",
    ContentType.MULTIPART_FORM_DATA: "multipart_form_data",
    ContentType.TEXT_PLAIN: "text_plain",
    ContentType.TEXT_HTML: "text_html",
}


class _ContentSlots:
    """Shared behaviour of records holding one optional schema per content type."""

    def _coerce_slots(self) -> None:
        for attr in _SLOTS.values():
            object.__setattr__(self, attr, _coerce(getattr(self, attr)))

    def items(self) -> Iterator[Tuple[ContentType, Schema]]:
        """Yield populated (content type, schema) pairs in priority order."""
        for content_type, attr in _SLOTS.items():
            schema = getattr(self, attr)
            if schema is not None:
                yield content_type, schema

    def primary(self) -> Optional[Tuple[ContentType, Schema]]:
        """The highest-priority populated slot."""
        return next(self.items(), None)

    def get(self, content_type: Union[ContentType, str, None]) -> Optional[Schema]:
        if not isinstance(content_type, ContentType):
            content_type = ContentType.from_header(content_type)
        if content_type is None:
            return None
        return getattr(self, _SLOTS[content_type])

    def content_types(self) -> List[ContentType]:
        return [content_type for content_type, _ in self.items()]


@dataclass(frozen=True)
class Content(_ContentSlots, Generic[T]):
    """Request body schemas keyed by content type."""

    application_json: Optional[SchemaLike[T]] = None
    multipart_form_data: Optional[SchemaLike[T]] = None
    text_plain: Optional[SchemaLike[T]] = None
    text_html: Optional[SchemaLike[T]] = None

    def __post_init__(self):
        self._coerce_slots()


@dataclass(frozen=True)
class ResponseSpec(_ContentSlots, Generic[T]):
    """One documented response: a description plus body schemas per content type."""

    description: str
    application_json: Optional[SchemaLike[T]] = None
    multipart_form_data: Optional[SchemaLike[T]] = None
    text_plain: Optional[SchemaLike[T]] = None
    text_html: Optional[SchemaLike[T]] = None

    def __post_init__(self):
        self._coerce_slots()


@dataclass(frozen=True)
class RequestSchema(Generic[ParamsT, QueryT, HeadersT, BodyT]):
    """Schemas for the parts of an inbound request.

    ``body`` is normally a ``Content``; a bare schema or type is shorthand for
    ``Content(application_json=...)``.
    """

    params: Optional[SchemaLike[ParamsT]] = None
    query: Optional[SchemaLike[QueryT]] = None
    headers: Optional[SchemaLike[HeadersT]] = None
    body: Optional[Content[BodyT]] = None

    def __post_init__(self):
        object.__setattr__(self, "params", _coerce(self.params))
        object.__setattr__(self, "query", _coerce(self.query))
        object.__setattr__(self, "headers", _coerce(self.headers))
        if self.body is not None and not isinstance(self.body, Content):
            object.__setattr__(self, "body", Content(application_json=self.body))


@dataclass(frozen=True)
class RouteSchema(Generic[ParamsT, QueryT, HeadersT, BodyT, ResponseT]):
    """The declared contract of one route."""

    responses: Mapping[int, ResponseSpec[ResponseT]]
    request: Optional[RequestSchema[ParamsT, QueryT, HeadersT, BodyT]] = None
    summary: Optional[str] = None
    operation_id: Optional[str] = None
    description: Optional[str] = None
    tags: Tuple[str, ...] = ()
    deprecated: bool = False

    def __post_init__(self):
        # Malformed responses are reported by check_responses() at generation time
        if isinstance(self.responses, Mapping):
            object.__setattr__(self, "responses", MappingProxyType(dict(self.responses)))
        object.__setattr__(self, "tags", tuple(self.tags))

    # __post_init__ of RequestSchema coerces every declared part to a Schema
    @property
    def params(self) -> Optional[Schema[ParamsT]]:
        return cast(Optional[Schema[ParamsT]], self.request.params if self.request else None)

    @property
    def query(self) -> Optional[Schema[QueryT]]:
        return cast(Optional[Schema[QueryT]], self.request.query if self.request else None)

    @property
    def headers(self) -> Optional[Schema[HeadersT]]:
        return cast(Optional[Schema[HeadersT]], self.request.headers if self.request else None)

    @property
    def body(self) -> Optional[Content]:
        return self.request.body if self.request else None


def check_responses(
    schema: RouteSchema, method: Optional[str] = None, path: Optional[str] = None
) -> List[Tuple[int, ResponseSpec]]:
    """Validate a route's responses map and return (status, spec) pairs.

    Raises:
        InvalidResponsesError: If the map is missing or empty, a key is not an
            HTTP status code, or a value is not a ``ResponseSpec``.
    """
    responses = getattr(schema, "responses", None)
    if not isinstance(responses, Mapping):
        raise InvalidResponsesError("responses must be a mapping of status code to ResponseSpec", method, path)
    if not responses:
        raise InvalidResponsesError("responses must declare at least one status code", method, path)

    result = []
    for key, spec in responses.items():
        try:
            status = int(key)
        except (TypeError, ValueError):
            raise InvalidResponsesError(f"status code {key!r} is not numeric", method, path) from None
        if not 100 <= status <= 599:
            raise InvalidResponsesError(f"status code {status} is not a valid HTTP status", method, path)
        if not isinstance(spec, ResponseSpec):
            raise InvalidResponsesError(f"response {status} must be a ResponseSpec, got {type(spec).__name__}", method, path)
        result.append((status, spec))
    return result
