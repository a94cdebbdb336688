"""
Request body parsing middleware.

Validation expects ``request.body`` to hold a structured value. These
middlewares fill it from ``request.raw_body`` according to the request's
Content-Type and are attached globally with ``Server.use``.
"""

import json
import logging
from email import policy
from email.parser import BytesParser
from email.utils import collapse_rfc2231_value
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs

from .exceptions import BodyParsingError
from .models import Request, Response

logger = logging.getLogger(__name__)

Parser = Callable[[Request], Any]


def _charset(request: Request, default: str = "utf-8") -> str:
    content_type = request.headers.get("content-type") or ""
    for param in content_type.split(";")[1:]:
        key, _, value = param.strip().partition("=")
        if key.lower() == "charset" and value:
            return value.strip('"')
    return default


def _decode(request: Request) -> str:
    try:
        return request.raw_body.decode(_charset(request))
    except LookupError as e:
        raise BodyParsingError(f"Unknown charset: {e}", original_exception=e) from e
    except UnicodeDecodeError as e:
        raise BodyParsingError(f"Request body is not valid {e.encoding}", original_exception=e) from e


def parse_json(request: Request) -> Any:
    text = _decode(request)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise BodyParsingError(f"Invalid JSON - {e}", original_exception=e) from e


def parse_form(request: Request) -> Dict[str, Any]:
    parsed = parse_qs(_decode(request), keep_blank_values=True)
    return {key: values[0] if len(values) == 1 else values for key, values in parsed.items()}


def parse_multipart(request: Request) -> Dict[str, Any]:
    """Parse a multipart/form-data body: fields become strings, files bytes."""
    content_type = request.headers.get("content-type") or ""
    if "boundary=" not in content_type:
        raise BodyParsingError("multipart/form-data request without a boundary")

    envelope = f"Content-Type: {content_type}\r\nMIME-Version: 1.0\r\n\r\n".encode("latin-1")
    message = BytesParser(policy=policy.HTTP).parsebytes(envelope + request.raw_body)
    if not message.is_multipart():
        raise BodyParsingError("Malformed multipart/form-data body")

    fields: Dict[str, Any] = {}
    for part in message.iter_parts():
        raw_name = part.get_param("name", header="content-disposition")
        if not raw_name:
            continue
        name = collapse_rfc2231_value(raw_name)
        decoded = part.get_payload(decode=True)
        payload = decoded if isinstance(decoded, bytes) else b""
        if part.get_filename() is None:
            charset = part.get_content_charset() or "utf-8"
            try:
                fields[name] = payload.decode(charset)
            except (LookupError, UnicodeDecodeError) as e:
                raise BodyParsingError(f"Cannot decode multipart field {name!r}", original_exception=e) from e
        else:
            fields[name] = payload
    return fields


def parse_text(request: Request) -> str:
    return _decode(request)


PARSERS: Dict[str, Parser] = {
    "application/json": parse_json,
    "application/x-www-form-urlencoded": parse_form,
    "multipart/form-data": parse_multipart,
    "text/plain": parse_text,
    "text/html": parse_text,
}


def _middleware(parsers: Dict[str, Parser]):
    async def parse_body(request: Request, response: Response) -> None:
        if request.body is not None or not request.raw_body:
            return
        content_type = request.content_type()
        parser: Optional[Parser] = parsers.get(content_type) if content_type else None
        if parser is None:
            return
        logger.debug(f"Parsing {content_type} request body ({len(request.raw_body)} bytes)")
        request.body = parser(request)

    return parse_body


def json_parser():
    """Middleware parsing application/json bodies."""
    return _middleware({"application/json": parse_json})


def form_parser():
    """Middleware parsing application/x-www-form-urlencoded bodies."""
    return _middleware({"application/x-www-form-urlencoded": parse_form})


def multipart_parser():
    """Middleware parsing multipart/form-data bodies."""
    return _middleware({"multipart/form-data": parse_multipart})


def text_parser():
    """Middleware exposing text/plain and text/html bodies as strings."""
    return _middleware({"text/plain": parse_text, "text/html": parse_text})


def body_parser():
    """Middleware parsing every supported content type."""
    return _middleware(dict(PARSERS))
