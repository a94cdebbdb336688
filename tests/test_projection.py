"""Tests for the runtime type projection of route schemas."""

from typing import Any, Dict, List, Union, get_args

from pydantic import BaseModel

from routeschema import Content, RequestSchema, ResponseSpec, RouteSchema, route_types
from routeschema.projection import body_type, params_type, response_body_type


class Params(BaseModel):
    id: int


class Query(BaseModel):
    q: str


class Body(BaseModel):
    name: str


class Pet(BaseModel):
    id: int


class Problem(BaseModel):
    detail: str


class TestRouteTypes:

    def test_declared_parts_are_projected(self):
        schema = RouteSchema(
            request=RequestSchema(params=Params, query=Query, body=Body),
            responses={200: ResponseSpec("ok", application_json=Pet)},
        )
        types = route_types(schema)
        assert types.params is Params
        assert types.query is Query
        assert types.body is Body
        assert types.response_body is Pet

    def test_omitted_parts_are_permissive(self):
        schema = RouteSchema(responses={204: ResponseSpec("No content")})
        types = route_types(schema)
        assert types.params == Dict[str, str]
        assert types.query == Dict[str, str]
        assert types.headers == Dict[str, str]
        assert types.body is Any
        assert types.response_body is Any

    def test_body_projects_highest_priority_content_type(self):
        schema = RouteSchema(
            request=RequestSchema(body=Content(text_plain=str, application_json=Body)),
            responses={200: ResponseSpec("ok")},
        )
        assert body_type(schema) is Body

    def test_text_only_body(self):
        schema = RouteSchema(
            request=RequestSchema(body=Content(text_html=str)),
            responses={200: ResponseSpec("ok")},
        )
        assert body_type(schema) is str

    def test_response_body_is_union_of_statuses(self):
        schema = RouteSchema(
            responses={
                200: ResponseSpec("ok", application_json=Pet),
                201: ResponseSpec("created", application_json=Pet),
                404: ResponseSpec("missing", application_json=Problem),
                204: ResponseSpec("empty"),
            },
        )
        projected = response_body_type(schema)
        assert projected == Union[Pet, Problem]
        assert set(get_args(projected)) == {Pet, Problem}

    def test_response_body_with_generic_type(self):
        schema = RouteSchema(responses={200: ResponseSpec("ok", application_json=List[Pet])})
        assert response_body_type(schema) == List[Pet]

    def test_params_type_of_schema_without_request(self):
        assert params_type(RouteSchema(responses={200: ResponseSpec("ok")})) == Dict[str, str]
