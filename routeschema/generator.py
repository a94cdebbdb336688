"""
OpenAPI document generation from a server's aggregated route registry.
"""

import copy
import json
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Union

import yaml

from .exceptions import ConfigurationError
from .schema import DEFAULT_REF_TEMPLATE, Content, PydanticSchema, RouteSchema, Schema, check_responses

if TYPE_CHECKING:
    from .server import Server

logger = logging.getLogger(__name__)

DEFAULT_OPENAPI_VERSION = "3.1.0"

_PATH_PARAM = re.compile(r":(\w+)")
_PASSTHROUGH = ("servers", "tags", "security", "externalDocs")


def to_openapi_path(path: str) -> str:
    """Translate a route path to OpenAPI syntax.

    Examples:
        to_openapi_path("/pets/:id") -> "/pets/{id}"
        to_openapi_path("pets/:id/") -> "/pets/{id}"
    """
    path = _PATH_PARAM.sub(r"{\1}", path)
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/")
    if not path.startswith("/"):
        path = "/" + path
    return path


def _convert_schema_to_openapi_30(schema: Any) -> Any:
    """Convert a JSON Schema (2020-12, as pydantic emits) to OpenAPI 3.0."""
    if isinstance(schema, dict):
        converted: Dict[str, Any] = {}
        for key, value in schema.items():
            if key in ("properties", "schemas", "$defs") and isinstance(value, dict):
                # Keys here are names, not keywords
                converted[key] = {name: _convert_schema_to_openapi_30(item) for name, item in value.items()}
            elif key == "anyOf" and isinstance(value, list):
                # Handle anyOf patterns for optional fields
                converted.update(_convert_anyof_to_nullable(value))
            elif key == "exclusiveMinimum" and isinstance(value, (int, float)) and not isinstance(value, bool):
                converted["minimum"] = value
                converted["exclusiveMinimum"] = True
            elif key == "exclusiveMaximum" and isinstance(value, (int, float)) and not isinstance(value, bool):
                converted["maximum"] = value
                converted["exclusiveMaximum"] = True
            elif key == "examples" and isinstance(value, list) and "example" not in schema:
                if value:
                    converted["example"] = _convert_schema_to_openapi_30(value[0])
            elif key == "const":
                converted["enum"] = [value]
            else:
                converted[key] = _convert_schema_to_openapi_30(value)
        return converted
    if isinstance(schema, list):
        return [_convert_schema_to_openapi_30(item) for item in schema]
    return schema


def _convert_anyof_to_nullable(anyof_list: List[Any]) -> Dict[str, Any]:
    """Convert anyOf with null to a nullable schema for OpenAPI 3.0."""
    non_null = [item for item in anyof_list if not (isinstance(item, dict) and item.get("type") == "null")]
    if len(non_null) == len(anyof_list):
        return {"anyOf": [_convert_schema_to_openapi_30(item) for item in anyof_list]}

    if len(non_null) == 1:
        inner = _convert_schema_to_openapi_30(non_null[0])
        if "$ref" in inner:
            # Siblings of $ref are ignored in 3.0
            return {"allOf": [inner], "nullable": True}
        inner["nullable"] = True
        return inner

    return {"anyOf": [_convert_schema_to_openapi_30(item) for item in non_null], "nullable": True}


class _SpecBuilder:
    """Accumulates paths and component schemas while walking the registry."""

    def __init__(self):
        self.paths: Dict[str, Dict[str, Any]] = {}
        self.schemas: Dict[str, Any] = {}

    def _collect(self, schema: Schema) -> Dict[str, Any]:
        json_schema = dict(schema.json_schema(ref_template=DEFAULT_REF_TEMPLATE))
        for name, definition in json_schema.pop("$defs", {}).items():
            self.schemas.setdefault(name, definition)
        return json_schema

    def schema_ref(self, schema: Schema) -> Dict[str, Any]:
        """JSON schema for a body; models are emitted once and referenced."""
        json_schema = self._collect(schema)
        if isinstance(schema, PydanticSchema) and schema.is_model:
            name = schema.annotation.__name__
            self.schemas.setdefault(name, json_schema)
            return {"$ref": DEFAULT_REF_TEMPLATE.format(model=name)}
        return json_schema

    def parameters(self, schema: Optional[Schema], location: str) -> List[Dict[str, Any]]:
        """One parameter per property of an object schema."""
        if schema is None:
            return []
        json_schema = self._collect(schema)
        required = set(json_schema.get("required", []))
        params = []
        for name, prop in json_schema.get("properties", {}).items():
            prop = dict(prop)
            prop.pop("title", None)
            description = prop.pop("description", None)
            param: Dict[str, Any] = {
                "name": name,
                "in": location,
                "required": location == "path" or name in required,
                "schema": prop,
            }
            if description:
                param["description"] = description
            params.append(param)
        return params

    def content(self, content: Content) -> Dict[str, Any]:
        return {content_type.value: {"schema": self.schema_ref(schema)} for content_type, schema in content.items()}

    def operation(self, schema: RouteSchema, responses) -> Dict[str, Any]:
        operation: Dict[str, Any] = {}
        if schema.operation_id:
            operation["operationId"] = schema.operation_id
        if schema.summary:
            operation["summary"] = schema.summary
        if schema.description:
            operation["description"] = schema.description
        if schema.tags:
            operation["tags"] = list(schema.tags)
        if schema.deprecated:
            operation["deprecated"] = True

        parameters = (
            self.parameters(schema.params, "path")
            + self.parameters(schema.query, "query")
            + self.parameters(schema.headers, "header")
        )
        if parameters:
            operation["parameters"] = parameters

        if schema.body is not None:
            body_content = self.content(schema.body)
            if body_content:
                operation["requestBody"] = {"required": True, "content": body_content}

        operation["responses"] = {}
        for status, spec in responses:
            response: Dict[str, Any] = {"description": spec.description}
            response_content = self.content(spec)
            if response_content:
                response["content"] = response_content
            operation["responses"][str(status)] = response
        return operation


def generate(document: Mapping[str, Any], server: "Server") -> Dict[str, Any]:
    """Generate an OpenAPI document describing every route of ``server``.

    ``document`` holds the top-level metadata: ``info`` is required; ``openapi``
    defaults to 3.1.0; ``servers``, ``tags``, ``security``, ``externalDocs`` and
    ``components`` are merged verbatim. For 3.0.x documents the generated JSON
    Schema is down-converted to the OpenAPI 3.0 dialect.

    Raises:
        ConfigurationError: If ``info`` is missing
        InvalidResponsesError: If any route declares an unusable responses map
    """
    if "info" not in document:
        raise ConfigurationError("OpenAPI document requires an 'info' object")

    routes = list(server.routes)
    # Check every route before producing anything
    checked = [check_responses(route.schema, route.method.value, route.path) for route in routes]

    version = str(document.get("openapi", DEFAULT_OPENAPI_VERSION))
    builder = _SpecBuilder()
    for route, responses in zip(routes, checked):
        path = to_openapi_path(route.path)
        method = route.method.value.lower()
        path_item = builder.paths.setdefault(path, {})
        if method in path_item:
            logger.warning(f"Operation {method.upper()} {path} is declared more than once; keeping the last one")
        path_item[method] = builder.operation(route.schema, responses)
        logger.debug(f"Documented {method.upper()} {path}")

    paths: Dict[str, Any] = builder.paths
    schemas: Dict[str, Any] = builder.schemas
    if version.startswith("3.0"):
        paths = _convert_schema_to_openapi_30(paths)
        schemas = _convert_schema_to_openapi_30(schemas)

    spec: Dict[str, Any] = {"openapi": version, "info": copy.deepcopy(document["info"])}
    for key in _PASSTHROUGH:
        if key in document:
            spec[key] = copy.deepcopy(document[key])
    spec["paths"] = paths

    components = copy.deepcopy(dict(document.get("components", {})))
    if schemas:
        components["schemas"] = {**schemas, **components.get("schemas", {})}
    if components:
        spec["components"] = components

    for key, value in document.items():
        if key not in spec and key != "paths":
            spec[key] = copy.deepcopy(value)

    return spec


def write_spec(document: Mapping[str, Any], file_name: Union[str, Path], format: Optional[str] = None) -> Path:
    """Write ``document`` as JSON or YAML.

    The format is inferred from the suffix (``.yaml``/``.yml`` are YAML, anything
    else JSON) unless given. Parent directories are created.

    Raises:
        ValueError: If ``format`` is neither "json" nor "yaml"
        OSError: If the file cannot be written
    """
    path = Path(file_name)
    if format is None:
        format = "yaml" if path.suffix.lower() in (".yaml", ".yml") else "json"
    format = format.lower()

    if format == "json":
        content = json.dumps(document, indent=2)
    elif format in ("yaml", "yml"):
        content = yaml.safe_dump(dict(document), default_flow_style=False, sort_keys=False, allow_unicode=True)
    else:
        raise ValueError(f"Unsupported document format: {format!r}")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content if content.endswith("\n") else content + "\n", encoding="utf-8")
    logger.info(f"Wrote OpenAPI document to {path}")
    return path


def generate_spec(
    document: Mapping[str, Any],
    server: "Server",
    file_name: Optional[Union[str, Path]] = None,
    format: Optional[str] = None,
) -> Dict[str, Any]:
    """Generate the document for ``server`` and optionally write it to ``file_name``."""
    spec = generate(document, server)
    if file_name is not None:
        write_spec(spec, file_name, format)
    return spec
