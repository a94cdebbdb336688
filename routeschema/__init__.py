"""
Schema-first routing for Python HTTP services.

Every route is declared with a RouteSchema describing its path parameters,
query string, headers, body and responses. The router turns the schema into a
validation step that runs before the route's handlers, and the generator turns
the server's aggregated routes into an OpenAPI document.
"""

from http import HTTPStatus

from .config import ServerConfig
from .error_models import ErrorHandler, ErrorResponse, validation_error_handler
from .exceptions import (
    BodyParsingError,
    ConfigurationError,
    DuplicateRouteError,
    InvalidResponsesError,
    MethodNotAllowedError,
    RegistrationClosedError,
    RequestValidationError,
    RouteNotFoundError,
    RouteSchemaError,
    RouteSchemaHTTPError,
    ValidationError,
)
from .generator import generate, generate_spec, to_openapi_path, write_spec
from .models import HTTPMethod, MultiValueHeaders, Request, Response
from .parsers import body_parser, form_parser, json_parser, multipart_parser, text_parser
from .projection import Handler, RouteTypes, route_types
from .router import RouteRegistrar, Router, RouterRoute
from .schema import (
    Content,
    ContentType,
    PydanticSchema,
    RequestSchema,
    ResponseSpec,
    RouteSchema,
    Schema,
    as_schema,
)
from .server import Server
from .servers import UvicornDriver, serve
from .validation import validate_request

__version__ = "0.1.0"
__author__ = "routeschema contributors"
__license__ = "MIT"

__all__ = [
    "Server",
    "ServerConfig",
    "RouteRegistrar",
    "Router",
    "RouterRoute",
    "RouteSchema",
    "RequestSchema",
    "ResponseSpec",
    "Content",
    "ContentType",
    "Schema",
    "PydanticSchema",
    "as_schema",
    "Request",
    "Response",
    "HTTPMethod",
    "HTTPStatus",
    "MultiValueHeaders",
    "Handler",
    "RouteTypes",
    "route_types",
    "validate_request",
    "ErrorHandler",
    "ErrorResponse",
    "validation_error_handler",
    "body_parser",
    "json_parser",
    "form_parser",
    "multipart_parser",
    "text_parser",
    "generate",
    "generate_spec",
    "to_openapi_path",
    "write_spec",
    "UvicornDriver",
    "serve",
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
    "ValidationError",
]
