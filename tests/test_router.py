"""Tests for Router registration, chaining and dispatch."""

import asyncio

import pytest
from pydantic import BaseModel

from routeschema import (
    DuplicateRouteError,
    HTTPMethod,
    RegistrationClosedError,
    Request,
    RequestSchema,
    RequestValidationError,
    Response,
    ResponseSpec,
    Router,
    RouteSchema,
)
from routeschema.router import normalize_path, route_key

SCHEMA = RouteSchema(responses={200: ResponseSpec("ok")})


class ItemParams(BaseModel):
    id: int


def dispatch(router, method, path, **kwargs):
    request = Request(method, path, **kwargs)
    response = Response()
    matched = asyncio.run(router.dispatch(request, response))
    return matched, request, response


class TestPathNormalization:
    """Test path normalization utility."""

    def test_root_with_slash_path(self):
        assert normalize_path("/", "/users") == "/users"

    def test_root_with_no_slash_path(self):
        assert normalize_path("/", "users") == "/users"

    def test_prefix_with_slash_path(self):
        assert normalize_path("/api", "/users") == "/api/users"

    def test_prefix_with_trailing_slash(self):
        assert normalize_path("/api/", "/users") == "/api/users"

    def test_root_to_root(self):
        assert normalize_path("/", "/") == "/"

    def test_prefix_with_param(self):
        assert normalize_path("/users", "/:id") == "/users/:id"

    def test_route_key_ignores_trailing_slash(self):
        assert route_key("/users/") == route_key("/users") == "/users"
        assert route_key("/") == "/"

    def test_route_key_ignores_parameter_names(self):
        assert route_key("/pets/:id") == route_key("/pets/:name/") == "/pets/:"


class TestRegistration:

    def test_routes_in_registration_order(self):
        router = Router()
        router.get("/a", SCHEMA, [], lambda req, res: res.end())
        router.post("/b", SCHEMA, [], lambda req, res: res.end())

        assert [(r.method, r.path) for r in router.routes] == [
            (HTTPMethod.GET, "/a"),
            (HTTPMethod.POST, "/b"),
        ]
        assert router.routes[0].schema is SCHEMA

    def test_prefix_is_applied(self):
        router = Router(prefix="/v1")
        router.get("/pets", SCHEMA, [], lambda req, res: res.end())
        assert router.routes[0].path == "/v1/pets"

    def test_register_is_chainable(self):
        router = Router()
        returned = router.register(HTTPMethod.GET, "/a", SCHEMA, [], lambda req, res: res.end())
        assert returned is router

    def test_method_given_as_string(self):
        router = Router()
        router.register("patch", "/a", SCHEMA, [], lambda req, res: res.end())
        assert router.routes[0].method is HTTPMethod.PATCH

    def test_duplicate_route_is_rejected(self):
        router = Router()
        router.get("/pets", SCHEMA, [], lambda req, res: res.end())
        with pytest.raises(DuplicateRouteError) as exc_info:
            router.get("/pets", SCHEMA, [], lambda req, res: res.end())
        assert exc_info.value.method == "GET"
        assert len(router.routes) == 1

    def test_trailing_slash_counts_as_duplicate(self):
        router = Router()
        router.get("/pets", SCHEMA, [], lambda req, res: res.end())
        with pytest.raises(DuplicateRouteError):
            router.get("/pets/", SCHEMA, [], lambda req, res: res.end())

    def test_parameter_name_counts_as_duplicate(self):
        router = Router()
        router.get("/pets/:id", SCHEMA, [], lambda req, res: res.json({"by": "id"}))
        with pytest.raises(DuplicateRouteError):
            router.get("/pets/:name", SCHEMA, [], lambda req, res: res.json({"by": "name"}))

        assert [r.path for r in router.routes] == ["/pets/:id"]
        _, request, response = dispatch(router, HTTPMethod.GET, "/pets/7")
        assert response.body == {"by": "id"}
        assert request.params == {"id": "7"}

    def test_sibling_parameters_under_different_parents(self):
        router = Router()
        router.get("/pets/:id", SCHEMA, [], lambda req, res: res.end())
        router.get("/owners/:name", SCHEMA, [], lambda req, res: res.end())
        _, request, _ = dispatch(router, HTTPMethod.GET, "/owners/ann")
        assert request.params == {"name": "ann"}

    def test_same_path_different_method_is_allowed(self):
        router = Router()
        router.get("/pets", SCHEMA, [], lambda req, res: res.end())
        router.post("/pets", SCHEMA, [], lambda req, res: res.end())
        assert len(router.routes) == 2

    def test_schema_must_be_route_schema(self):
        with pytest.raises(TypeError):
            Router().get("/pets", {"responses": {}}, [], lambda req, res: res.end())

    def test_registration_after_freeze(self):
        router = Router()
        router.freeze()
        with pytest.raises(RegistrationClosedError):
            router.get("/pets", SCHEMA, [], lambda req, res: res.end())

    def test_decorator_form(self):
        router = Router()

        @router.get("/pets", SCHEMA)
        def list_pets(request, response):
            response.json([])

        assert callable(list_pets)
        matched, _, response = dispatch(router, HTTPMethod.GET, "/pets")
        assert matched
        assert response.body == []

    def test_handler_in_middleware_position(self):
        router = Router()
        router.get("/pets", SCHEMA, lambda req, res: res.send("ok"))
        _, _, response = dispatch(router, HTTPMethod.GET, "/pets")
        assert response.body == "ok"


class TestDispatch:

    def test_chain_runs_validation_then_middlewares_then_handlers(self):
        calls = []
        router = Router()
        schema = RouteSchema(request=RequestSchema(params=ItemParams), responses={200: ResponseSpec("ok")})

        def audit(request, response):
            calls.append(("middleware", request.params))

        async def handler(request, response):
            calls.append(("handler", request.params))
            response.json({"id": request.params.id})

        router.get("/items/:id", schema, [audit], handler)
        matched, _, response = dispatch(router, HTTPMethod.GET, "/items/5")

        assert matched
        assert calls == [("middleware", ItemParams(id=5)), ("handler", ItemParams(id=5))]
        assert response.body == {"id": 5}

    def test_chain_stops_once_response_is_sent(self):
        calls = []
        router = Router()

        def first(request, response):
            calls.append("first")
            response.send("done")

        def second(request, response):
            calls.append("second")

        router.get("/x", SCHEMA, [], first, second)
        dispatch(router, HTTPMethod.GET, "/x")
        assert calls == ["first"]

    def test_validation_failure_skips_handlers(self):
        called = []
        router = Router()
        schema = RouteSchema(request=RequestSchema(params=ItemParams), responses={200: ResponseSpec("ok")})
        router.get("/items/:id", schema, [], lambda req, res: called.append(True))

        with pytest.raises(RequestValidationError):
            dispatch(router, HTTPMethod.GET, "/items/abc")
        assert called == []

    def test_async_exception_propagates(self):
        router = Router()

        async def broken(request, response):
            raise RuntimeError("database unavailable")

        router.get("/x", SCHEMA, [], broken)
        with pytest.raises(RuntimeError, match="database unavailable"):
            dispatch(router, HTTPMethod.GET, "/x")

    def test_unmatched_path(self):
        router = Router()
        router.get("/x", SCHEMA, [], lambda req, res: res.end())
        matched, _, response = dispatch(router, HTTPMethod.GET, "/y")
        assert not matched
        assert not response.sent

    def test_static_segment_wins_over_parameter(self):
        router = Router()
        router.get("/pets/:id", SCHEMA, [], lambda req, res: res.send("param"))
        router.get("/pets/mine", SCHEMA, [], lambda req, res: res.send("static"))

        assert dispatch(router, HTTPMethod.GET, "/pets/mine")[2].body == "static"
        assert dispatch(router, HTTPMethod.GET, "/pets/9")[2].body == "param"

    def test_parameter_names_per_route(self):
        router = Router()
        router.get("/users/:user_id", SCHEMA, [], lambda req, res: res.end())
        router.delete("/users/:id", SCHEMA, [], lambda req, res: res.end())

        assert router.match("/users/1", HTTPMethod.GET)[1] == {"user_id": "1"}
        assert router.match("/users/1", HTTPMethod.DELETE)[1] == {"id": "1"}

    def test_trailing_slash_matches(self):
        router = Router()
        router.get("/pets", SCHEMA, [], lambda req, res: res.send("ok"))
        assert dispatch(router, HTTPMethod.GET, "/pets/")[0]

    def test_allowed_methods(self):
        router = Router()
        router.get("/pets", SCHEMA, [], lambda req, res: res.end())
        router.post("/pets", SCHEMA, [], lambda req, res: res.end())
        assert router.allowed_methods("/pets") == ["GET", "POST"]
        assert router.allowed_methods("/cats") == []
