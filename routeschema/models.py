"""
Core data models: headers, HTTP methods, requests and responses.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar, Union

from pydantic_core import to_jsonable_python

# Set up logger for this module
logger = logging.getLogger(__name__)

ParamsT = TypeVar("ParamsT")
QueryT = TypeVar("QueryT")
BodyT = TypeVar("BodyT")
ResponseT = TypeVar("ResponseT")


class MultiValueHeaders:
    """
    Multi-value, case-insensitive headers container.

    HTTP headers are case-insensitive per RFC 7230, and the same header can appear
    multiple times. Lookups ignore case and every value is kept.

    Example::

        headers = MultiValueHeaders()
        headers.add('Set-Cookie', 'session=abc')
        headers.add('Set-Cookie', 'user=123')
        headers.get('set-cookie')      # Returns 'session=abc' (first value)
        headers.get_all('set-cookie')  # Returns ['session=abc', 'user=123']
    """

    def __init__(self, data=None):
        # Internal storage: Dict[lowercase_name, List[Tuple[original_name, value]]]
        self._headers: Dict[str, List[Tuple[str, str]]] = {}

        if data is not None:
            if isinstance(data, MultiValueHeaders):
                self._headers = {k: list(v) for k, v in data._headers.items()}
            elif isinstance(data, dict):
                for key, value in data.items():
                    if isinstance(value, list):
                        for v in value:
                            self.add(key, v)
                    else:
                        self.add(key, value)
            elif isinstance(data, (list, tuple)):
                for key, value in data:
                    self.add(key, value)

    def add(self, name: str, value: str) -> None:
        """Add a header value, allowing multiple values for the same name."""
        self._headers.setdefault(name.lower(), []).append((name, value))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get the first value for a header name."""
        if not isinstance(name, str):
            return default
        values = self._headers.get(name.lower())
        if values:
            return values[0][1]
        return default

    def get_all(self, name: str) -> List[str]:
        """Get all values for a header name (empty list if not found)."""
        return [value for _, value in self._headers.get(name.lower(), [])]

    def set(self, name: str, value: str) -> None:
        """Set a header to a single value, replacing any existing values."""
        self._headers[name.lower()] = [(name, value)]

    def __setitem__(self, name: str, value: str) -> None:
        self.set(name, value)

    def __getitem__(self, name: str) -> str:
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return name.lower() in self._headers

    def __iter__(self):
        """Iterate over header names (using original casing of first occurrence)."""
        for values in self._headers.values():
            if values:
                yield values[0][0]

    def __len__(self):
        return len(self._headers)

    def __repr__(self):
        return f"MultiValueHeaders({self.items()!r})"

    def items(self):
        """Return (name, first_value) pairs."""
        return [(values[0][0], values[0][1]) for values in self._headers.values() if values]

    def items_all(self):
        """Return all (name, value) pairs including duplicates."""
        result = []
        for values in self._headers.values():
            result.extend(values)
        return result

    def to_dict(self) -> Dict[str, str]:
        """Convert to a simple dict with the first value for each header."""
        return {values[0][0]: values[0][1] for values in self._headers.values() if values}


class HTTPMethod(Enum):
    """Enumeration of the HTTP methods a route can be registered for."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    HEAD = "HEAD"
    TRACE = "TRACE"


@dataclass
class Request(Generic[ParamsT, QueryT, BodyT]):
    """Represents an inbound HTTP request.

    ``params``, ``query`` and ``body`` start out as the raw values taken from the
    wire (body parsing middleware fills ``body`` from ``raw_body``). When a route
    declares schemas for them, the validation step replaces each with the
    validated value before any handler runs.
    """

    method: HTTPMethod
    path: str
    headers: MultiValueHeaders = field(default_factory=MultiValueHeaders)
    query: QueryT = field(default_factory=dict)  # type: ignore[assignment]
    params: ParamsT = field(default_factory=dict)  # type: ignore[assignment]
    body: BodyT = None  # type: ignore[assignment]
    raw_body: bytes = b""

    def __post_init__(self):
        if not isinstance(self.headers, MultiValueHeaders):
            self.headers = MultiValueHeaders(self.headers)

    def content_type(self) -> Optional[str]:
        """Media type of the request body, without parameters such as charset."""
        value = self.headers.get("content-type")
        if not value:
            return None
        return value.split(";")[0].strip().lower()


class Response(Generic[ResponseT]):
    """Mutable response handed to every step of a route's chain.

    A step finishes the request by calling ``json``, ``send`` or ``end``; once the
    response is sent the rest of the chain is skipped.
    """

    def __init__(self, status_code: int = HTTPStatus.OK):
        self.status_code = int(status_code)
        self.headers = MultiValueHeaders()
        self.body: Any = None
        self.sent = False
        self._json = False

    def __repr__(self):
        return f"Response(status_code={self.status_code}, sent={self.sent})"

    def status(self, status_code: int) -> "Response[ResponseT]":
        """Set the status code (chainable)."""
        self.status_code = int(status_code)
        return self

    def set_header(self, name: str, value: str) -> "Response[ResponseT]":
        self.headers[name] = value
        return self

    def json(self, data: ResponseT) -> None:
        """Send ``data`` as a JSON body. Pydantic models are dumped in JSON mode."""
        self.body = to_jsonable_python(data)
        self._json = True
        if "content-type" not in self.headers:
            self.headers["Content-Type"] = "application/json"
        self.end()

    def send(self, body: Union[str, bytes, None] = None, content_type: Optional[str] = None) -> None:
        """Send a text or binary body."""
        self.body = body
        self._json = False
        if content_type:
            self.headers["Content-Type"] = content_type
        elif "content-type" not in self.headers:
            if isinstance(body, str):
                self.headers["Content-Type"] = "text/plain; charset=utf-8"
            elif isinstance(body, bytes):
                self.headers["Content-Type"] = "application/octet-stream"
        self.end()

    def end(self) -> None:
        """Mark the response as sent without changing the body."""
        if self.sent:
            logger.warning("Response already sent, ignoring second send")
        self.sent = True

    def render(self) -> bytes:
        """Encode the body for the wire."""
        if self._json:
            return json.dumps(self.body).encode("utf-8")
        if self.body is None:
            return b""
        if isinstance(self.body, bytes):
            return self.body
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return json.dumps(self.body).encode("utf-8")
