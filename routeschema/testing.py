"""
In-process test client.

Drives ``Server.handle`` directly, without a socket, so route chains, middleware
and error handling can be exercised from synchronous tests.
"""

import asyncio
import json as jsonlib
from typing import Any, Mapping, Optional, Union
from urllib.parse import urlencode

from .models import HTTPMethod, MultiValueHeaders, Request, Response


class TestResponse:
    """Response captured by the TestClient."""

    __test__ = False

    def __init__(self, response: Response):
        self.status_code = response.status_code
        self.headers = response.headers
        self.body = response.body
        self.content = response.render()
        self.sent = response.sent

    def __repr__(self):
        return f"TestResponse(status_code={self.status_code})"

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

    def json(self) -> Any:
        return jsonlib.loads(self.content)


class TestClient:
    """Send requests to a Server in-process.

    Example:
        client = TestClient(server)
        response = client.post("/pets", json={"name": "Rex"})
        assert response.status_code == 201
    """

    __test__ = False

    def __init__(self, server):
        self.server = server

    def request(
        self,
        method: Union[HTTPMethod, str],
        path: str,
        query: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        json: Any = None,
        data: Union[bytes, str, Mapping[str, str], None] = None,
        content_type: Optional[str] = None,
    ) -> TestResponse:
        """Build a Request carrying raw bytes and run it through the server.

        ``json`` is encoded as application/json. A mapping passed as ``data`` is
        form-encoded; a string or bytes is sent as is.
        """
        if not isinstance(method, HTTPMethod):
            method = HTTPMethod(method.upper())

        request_headers = MultiValueHeaders(dict(headers or {}))
        raw_body = b""
        if json is not None:
            raw_body = jsonlib.dumps(json).encode("utf-8")
            content_type = content_type or "application/json"
        elif isinstance(data, Mapping):
            raw_body = urlencode(data).encode("utf-8")
            content_type = content_type or "application/x-www-form-urlencoded"
        elif isinstance(data, str):
            raw_body = data.encode("utf-8")
            content_type = content_type or "text/plain; charset=utf-8"
        elif isinstance(data, bytes):
            raw_body = data
        if content_type and "content-type" not in request_headers:
            request_headers["Content-Type"] = content_type

        request: Request = Request(
            method=method,
            path=path,
            headers=request_headers,
            query=dict(query or {}),
            raw_body=raw_body,
        )
        response = asyncio.run(self.server.handle(request))
        return TestResponse(response)

    def get(self, path: str, **kwargs: Any) -> TestResponse:
        return self.request(HTTPMethod.GET, path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> TestResponse:
        return self.request(HTTPMethod.POST, path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> TestResponse:
        return self.request(HTTPMethod.PUT, path, **kwargs)

    def patch(self, path: str, **kwargs: Any) -> TestResponse:
        return self.request(HTTPMethod.PATCH, path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> TestResponse:
        return self.request(HTTPMethod.DELETE, path, **kwargs)

    def options(self, path: str, **kwargs: Any) -> TestResponse:
        return self.request(HTTPMethod.OPTIONS, path, **kwargs)

    def head(self, path: str, **kwargs: Any) -> TestResponse:
        return self.request(HTTPMethod.HEAD, path, **kwargs)


__all__ = ["TestClient", "TestResponse"]
