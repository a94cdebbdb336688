"""
ASGI adapter for routeschema servers.

Converts ASGI scope/receive/send into routeschema's Request/Response models so a
Server can run on any ASGI server (uvicorn is the one shipped).
"""

import logging
import urllib.parse
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict

from .models import HTTPMethod, MultiValueHeaders, Request, Response

if TYPE_CHECKING:
    from .server import Server

logger = logging.getLogger(__name__)


class ASGIAdapter:
    """
    ASGI 3.0 adapter for a routeschema Server.

    The adapter handles:
    - Converting ASGI scope and body messages to a Request (body read in full)
    - Awaiting the server's request handling
    - Converting the Response to ASGI response messages
    - Acknowledging lifespan startup and shutdown
    """

    def __init__(self, server: "Server"):
        self.server = server

    async def __call__(self, scope: Dict[str, Any], receive: Callable[[], Awaitable[Dict[str, Any]]], send: Callable[[Dict[str, Any]], Awaitable[None]]):
        """ASGI 3.0 application entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        if scope["type"] != "http":
            await send({
                "type": "http.response.start",
                "status": 404,
                "headers": [[b"content-type", b"text/plain"]],
            })
            await send({
                "type": "http.response.body",
                "body": b"Not Found - Only HTTP protocol is supported",
            })
            return

        try:
            method = HTTPMethod(scope["method"])
        except ValueError:
            logger.debug(f"Rejecting request with unsupported method {scope['method']!r}")
            await self._send(Response(405), send)
            return

        request = await self._to_request(method, scope, receive)
        response = await self.server.handle(request)
        await self._send(response, send)

    async def _handle_lifespan(self, receive, send):
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def _to_request(self, method: HTTPMethod, scope: Dict[str, Any], receive) -> Request:
        path = scope["path"]

        # Parse into dict (last value wins for duplicate keys); bytes outside UTF-8 become U+FFFD
        query_string = scope.get("query_string", b"").decode("utf-8", errors="replace")
        query = dict(urllib.parse.parse_qsl(query_string, keep_blank_values=True)) if query_string else {}

        headers = MultiValueHeaders()
        for header_name, header_value in scope.get("headers", []):
            headers.add(header_name.decode("latin-1").lower(), header_value.decode("latin-1"))

        chunks = []
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                break
            chunks.append(message.get("body", b""))
            more_body = message.get("more_body", False)

        return Request(method=method, path=path, headers=headers, query=query, raw_body=b"".join(chunks))

    def _prepare_headers(self, response: Response, body: bytes):
        headers = []
        content_length_set = False
        for name, value in response.headers.items_all():
            if name.lower() == "content-length":
                content_length_set = True
            headers.append([name.encode("latin-1"), str(value).encode("latin-1")])

        if response.body is not None and "content-type" not in response.headers and isinstance(response.body, (dict, list)):
            headers.append([b"content-type", b"application/json"])
        if not content_length_set:
            headers.append([b"content-length", str(len(body)).encode("latin-1")])
        return headers

    async def _send(self, response: Response, send):
        body = response.render()
        await send({
            "type": "http.response.start",
            "status": response.status_code,
            "headers": self._prepare_headers(response, body),
        })
        await send({
            "type": "http.response.body",
            "body": body,
        })


__all__ = ["ASGIAdapter"]
