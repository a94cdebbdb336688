"""Tests for request validation derived from route schemas."""

import asyncio
from typing import List

import pytest
from pydantic import BaseModel, Field, field_validator

from routeschema import (
    Content,
    HTTPMethod,
    Request,
    RequestSchema,
    RequestValidationError,
    Response,
    ResponseSpec,
    RouteSchema,
    validate_request,
)

OK = {200: ResponseSpec("ok")}


class Params(BaseModel):
    id: int


class Query(BaseModel):
    tags: str

    @field_validator("tags")
    @classmethod
    def split(cls, value):
        return value.split(",")


class Body(BaseModel):
    name: str = Field(..., min_length=1)


class RequestId(BaseModel):
    request_id: str = Field(..., alias="X-Request-Id")


def run(schema, request):
    asyncio.run(validate_request(schema)(request, Response()))
    return request


class TestValidateRequest:

    def test_params_are_replaced_by_parsed_values(self):
        schema = RouteSchema(request=RequestSchema(params=Params), responses=OK)
        request = run(schema, Request(HTTPMethod.GET, "/pets/7", params={"id": "7"}))
        assert request.params == Params(id=7)

    def test_transformations_are_observed(self):
        schema = RouteSchema(request=RequestSchema(query=Query), responses=OK)
        request = run(schema, Request(HTTPMethod.GET, "/pets", query={"tags": "a,b"}))
        assert request.query.tags == ["a", "b"]

    def test_body_is_validated(self):
        schema = RouteSchema(request=RequestSchema(body=Body), responses=OK)
        request = run(schema, Request(HTTPMethod.POST, "/pets", body={"name": "Rex"}))
        assert request.body == Body(name="Rex")

    def test_undeclared_parts_are_untouched(self):
        schema = RouteSchema(responses=OK)
        request = run(schema, Request(HTTPMethod.POST, "/pets", query={"a": "1"}, body=b"raw"))
        assert request.query == {"a": "1"}
        assert request.body == b"raw"

    def test_body_failure(self):
        schema = RouteSchema(request=RequestSchema(body=Body), responses=OK)
        with pytest.raises(RequestValidationError) as exc_info:
            run(schema, Request(HTTPMethod.POST, "/pets", body={"name": ""}))

        error = exc_info.value
        assert error.status_code == 400
        assert error.location == "body"
        assert error.errors()[0]["loc"] == ("body", "name")
        assert error.errors()[0]["type"] == "string_too_short"

    def test_failure_chains_original_error(self):
        schema = RouteSchema(request=RequestSchema(params=Params), responses=OK)
        with pytest.raises(RequestValidationError) as exc_info:
            run(schema, Request(HTTPMethod.GET, "/pets/x", params={"id": "x"}))
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_body_schema_follows_content_type(self):
        schema = RouteSchema(
            request=RequestSchema(body=Content(application_json=Body, text_plain=str)),
            responses=OK,
        )
        request = run(schema, Request(
            HTTPMethod.POST, "/notes", headers={"Content-Type": "text/plain"}, body="hello",
        ))
        assert request.body == "hello"

    def test_body_schema_falls_back_to_primary(self):
        schema = RouteSchema(
            request=RequestSchema(body=Content(application_json=List[int], text_plain=str)),
            responses=OK,
        )
        with pytest.raises(RequestValidationError):
            run(schema, Request(HTTPMethod.POST, "/numbers", body="hello"))


class TestHeaderValidation:

    def test_header_names_are_case_insensitive(self):
        schema = RouteSchema(request=RequestSchema(headers=RequestId), responses=OK)
        request = run(schema, Request(HTTPMethod.GET, "/", headers={"x-request-id": "abc"}))
        # Headers are validated but not replaced
        assert request.headers.get("X-Request-Id") == "abc"

    def test_missing_header(self):
        schema = RouteSchema(request=RequestSchema(headers=RequestId), responses=OK)
        with pytest.raises(RequestValidationError) as exc_info:
            run(schema, Request(HTTPMethod.GET, "/"))
        assert exc_info.value.location == "headers"
        assert exc_info.value.errors()[0]["loc"] == ("headers", "X-Request-Id")
