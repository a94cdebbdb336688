"""Router module: route registration, duplicate detection and dispatch."""

import functools
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple, TypeVar, Union, overload

from .exceptions import DuplicateRouteError, RegistrationClosedError
from .models import HTTPMethod, Request, Response
from .projection import Handler
from .schema import RouteSchema
from .validation import validate_request

logger = logging.getLogger(__name__)

Step = Callable[[Request, Response], Any]

ParamsT = TypeVar("ParamsT")
QueryT = TypeVar("QueryT")
HeadersT = TypeVar("HeadersT")
BodyT = TypeVar("BodyT")
ResponseT = TypeVar("ResponseT")


@dataclass(frozen=True)
class RouterRoute:
    """One registered route: the method, the declared path and its schema."""

    method: HTTPMethod
    path: str
    schema: RouteSchema


@dataclass
class _Endpoint:
    route: RouterRoute
    param_names: List[str]
    chain: List[Step]


class RouteNode:
    """A node in the route trie structure.

    Each node represents a path segment and can have:
    - static_children: Dict mapping exact segment strings to child nodes
    - param_child: Single child node for path parameters (e.g., :id)
    - endpoints: Dict mapping HTTP methods to the endpoint registered at this path
    """

    def __init__(self):
        self.static_children: Dict[str, "RouteNode"] = {}
        self.param_child: Optional["RouteNode"] = None
        self.endpoints: Dict[HTTPMethod, _Endpoint] = {}

    def add_route(self, segments: List[str], method: HTTPMethod, endpoint: _Endpoint) -> None:
        """Add an endpoint to the trie.

        Args:
            segments: Path segments (e.g., ['v1', 'pets', ':id'])
            method: HTTP method
            endpoint: Endpoint to store at the leaf
        """
        if not segments:
            if method in self.endpoints:
                raise DuplicateRouteError(method.value, endpoint.route.path)
            self.endpoints[method] = endpoint
            return

        segment, remaining = segments[0], segments[1:]
        if segment.startswith(":"):
            # Parameter names live on the endpoint so sibling routes may name them differently
            if self.param_child is None:
                self.param_child = RouteNode()
            self.param_child.add_route(remaining, method, endpoint)
        else:
            if segment not in self.static_children:
                self.static_children[segment] = RouteNode()
            self.static_children[segment].add_route(remaining, method, endpoint)

    def match(self, segments: List[str], method: HTTPMethod) -> Optional[Tuple[_Endpoint, List[str]]]:
        """Match a path against the trie.

        Returns:
            Tuple of (endpoint, parameter values in path order) if matched, None otherwise
        """
        if not segments:
            endpoint = self.endpoints.get(method)
            return (endpoint, []) if endpoint else None

        segment, remaining = segments[0], segments[1:]

        # Try static match first (more specific)
        if segment in self.static_children:
            result = self.static_children[segment].match(remaining, method)
            if result:
                return result

        if self.param_child:
            result = self.param_child.match(remaining, method)
            if result:
                endpoint, values = result
                return endpoint, [segment, *values]

        return None

    def methods(self, segments: List[str]) -> Set[HTTPMethod]:
        """All methods registered for a concrete request path."""
        if not segments:
            return set(self.endpoints)

        segment, remaining = segments[0], segments[1:]
        found: Set[HTTPMethod] = set()
        if segment in self.static_children:
            found |= self.static_children[segment].methods(remaining)
        if self.param_child:
            found |= self.param_child.methods(remaining)
        return found


def normalize_path(prefix: str, path: str) -> str:
    """Normalize a path by combining prefix and path, handling double slashes.

    Examples:
        normalize_path("/", "/users") -> "/users"
        normalize_path("/", "users") -> "/users"
        normalize_path("/api", "/users") -> "/api/users"
        normalize_path("/api/", "users/:id") -> "/api/users/:id"
    """
    if not prefix.startswith('/'):
        prefix = '/' + prefix

    if prefix != '/' and prefix.endswith('/'):
        prefix = prefix.rstrip('/')

    if not path.startswith('/'):
        path = '/' + path

    if prefix == '/':
        return path

    return prefix + path


def route_path(path: str) -> str:
    """Normalized form of a declared route path."""
    return normalize_path("/", path).rstrip("/") or "/"


def route_key(path: str) -> str:
    """Identity of a route path.

    Parameter names are ignored, so ``/pets/:id`` and ``/pets/:name`` are the
    same route.
    """
    segments = [":" if s.startswith(":") else s for s in _segments(path)]
    return "/" + "/".join(segments)


def _segments(path: str) -> List[str]:
    return [s for s in path.split('/') if s]


def wrap_handler(func: Callable) -> Step:
    """Wrap a sync or async middleware/handler into a uniform async step.

    Whatever the callable raises, synchronously or from the awaitable it
    returns, propagates out of the step to the server's error handlers.
    """
    @functools.wraps(func)
    async def step(request: Request, response: Response) -> None:
        result = func(request, response)
        if inspect.isawaitable(result):
            await result

    return step


class RouteRegistrar:
    """Registers routes for one HTTP method of a router.

    ``router.get``, ``router.post`` and the other verbs return one of these.
    Calling it mirrors ``Router.register`` without the method. Its overloads
    bind the middlewares and handlers to the types the schema projects, so a
    type checker rejects a handler whose ``Request`` or ``Response`` parameters
    disagree with the declared schemas.

    Example:
        pets.get("/pets/:id", PET_SCHEMA, [], get_pet)

        @pets.get("/pets/:id", PET_SCHEMA)
        def get_pet(request: Request[PetParams, Any, Any], response: Response[Pet]) -> None:
            ...
    """

    def __init__(self, router: "Router", method: HTTPMethod):
        self.router = router
        self.method = method

    def __repr__(self):
        return f"RouteRegistrar({self.method.value}, {self.router!r})"

    @overload
    def __call__(
        self,
        path: str,
        schema: RouteSchema[ParamsT, QueryT, HeadersT, BodyT, ResponseT],
        middlewares: Sequence[Handler[ParamsT, QueryT, BodyT, ResponseT]] = ...,
    ) -> Callable[[Handler[ParamsT, QueryT, BodyT, ResponseT]], Handler[ParamsT, QueryT, BodyT, ResponseT]]: ...

    @overload
    def __call__(
        self,
        path: str,
        schema: RouteSchema[ParamsT, QueryT, HeadersT, BodyT, ResponseT],
        middlewares: Handler[ParamsT, QueryT, BodyT, ResponseT],
        *handlers: Handler[ParamsT, QueryT, BodyT, ResponseT],
    ) -> "Router": ...

    @overload
    def __call__(
        self,
        path: str,
        schema: RouteSchema[ParamsT, QueryT, HeadersT, BodyT, ResponseT],
        middlewares: Sequence[Handler[ParamsT, QueryT, BodyT, ResponseT]],
        handler: Handler[ParamsT, QueryT, BodyT, ResponseT],
        *handlers: Handler[ParamsT, QueryT, BodyT, ResponseT],
    ) -> "Router": ...

    def __call__(self, path, schema, middlewares=(), *handlers):
        if handlers or callable(middlewares):
            return self.router.register(self.method, path, schema, middlewares, *handlers)

        def decorator(func):
            self.router.register(self.method, path, schema, middlewares, func)
            return func

        return decorator


class Router:
    """Collection of routes, each declared with a RouteSchema.

    Every registration builds the route's chain: the validation step derived from
    the schema, then the middlewares, then the handlers. A router is frozen when it
    is mounted on a server; registering afterwards raises RegistrationClosedError.

    Example:
        pets = Router(prefix="/v1")
        pets.get("/pets/:id", PET_SCHEMA, [], get_pet)

        @pets.post("/pets", CREATE_PET_SCHEMA)
        async def create_pet(request, response):
            response.status(201).json(request.body)
    """

    def __init__(self, prefix: str = ""):
        self.prefix = prefix
        self._routes: List[RouterRoute] = []
        self._keys: Set[Tuple[HTTPMethod, str]] = set()
        self._route_tree = RouteNode()
        self._frozen = False

    def __repr__(self):
        return f"Router(prefix={self.prefix!r}, routes={len(self._routes)})"

    @property
    def routes(self) -> Tuple[RouterRoute, ...]:
        """Registered routes in registration order."""
        return tuple(self._routes)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """End the build phase; later registrations raise RegistrationClosedError."""
        self._frozen = True

    def register(
        self,
        method: Union[HTTPMethod, str],
        path: str,
        schema: RouteSchema[ParamsT, QueryT, HeadersT, BodyT, ResponseT],
        middlewares: Union[
            Sequence[Handler[ParamsT, QueryT, BodyT, ResponseT]],
            Handler[ParamsT, QueryT, BodyT, ResponseT],
        ] = (),
        *handlers: Handler[ParamsT, QueryT, BodyT, ResponseT],
    ) -> "Router":
        """Register a route and build its chain.

        Args:
            method: HTTP method
            path: Route path; ``:name`` segments are path parameters
            schema: The route's contract
            middlewares: Steps run after validation and before the handlers
            *handlers: Handlers run in order until one sends the response

        Returns:
            The router, so registrations can be chained

        Raises:
            DuplicateRouteError: If the router already has this method and path,
                parameter names aside
            RegistrationClosedError: If the router has been mounted
        """
        if not isinstance(method, HTTPMethod):
            method = HTTPMethod(method.upper())
        if not isinstance(schema, RouteSchema):
            raise TypeError(f"schema must be a RouteSchema, got {type(schema).__name__}")
        steps: List[Callable[..., Any]]
        if callable(middlewares):
            # A handler given in the middlewares position
            steps = [middlewares, *handlers]
            middlewares = ()
        else:
            steps = list(handlers)
        if self._frozen:
            raise RegistrationClosedError(
                f"Cannot register {method.value} {path}: router is already mounted"
            )

        full_path = normalize_path(self.prefix, path) if self.prefix else path
        key = (method, route_key(full_path))
        if key in self._keys:
            raise DuplicateRouteError(method.value, full_path)

        route = RouterRoute(method, full_path, schema)
        chain = [validate_request(schema)]
        chain.extend(wrap_handler(m) for m in middlewares)
        chain.extend(wrap_handler(h) for h in steps)

        segments = _segments(route_path(full_path))
        param_names = [s[1:] for s in segments if s.startswith(":")]
        self._route_tree.add_route(segments, method, _Endpoint(route, param_names, chain))
        self._keys.add(key)
        self._routes.append(route)

        logger.debug(f"Registered {method.value} {full_path} ({len(chain)} steps)")
        return self

    @property
    def get(self) -> RouteRegistrar:
        """Register GET routes; without handlers, returns a decorator."""
        return RouteRegistrar(self, HTTPMethod.GET)

    @property
    def post(self) -> RouteRegistrar:
        """Register POST routes; without handlers, returns a decorator."""
        return RouteRegistrar(self, HTTPMethod.POST)

    @property
    def put(self) -> RouteRegistrar:
        return RouteRegistrar(self, HTTPMethod.PUT)

    @property
    def patch(self) -> RouteRegistrar:
        return RouteRegistrar(self, HTTPMethod.PATCH)

    @property
    def delete(self) -> RouteRegistrar:
        return RouteRegistrar(self, HTTPMethod.DELETE)

    @property
    def options(self) -> RouteRegistrar:
        return RouteRegistrar(self, HTTPMethod.OPTIONS)

    @property
    def head(self) -> RouteRegistrar:
        return RouteRegistrar(self, HTTPMethod.HEAD)

    @property
    def trace(self) -> RouteRegistrar:
        return RouteRegistrar(self, HTTPMethod.TRACE)

    def match(self, path: str, method: HTTPMethod) -> Optional[Tuple[RouterRoute, Dict[str, str]]]:
        """Find the route for a request path.

        Returns:
            Tuple of (RouterRoute, path_params) if matched, None otherwise
        """
        found = self._route_tree.match(_segments(path), method)
        if found is None:
            return None
        endpoint, values = found
        return endpoint.route, dict(zip(endpoint.param_names, values))

    def allowed_methods(self, path: str) -> List[str]:
        """Methods registered for a request path, sorted."""
        return sorted(m.value for m in self._route_tree.methods(_segments(path)))

    async def dispatch(self, request: Request, response: Response) -> bool:
        """Run the chain of the route matching ``request``.

        Steps run strictly in order and the chain stops once the response is sent.
        Exceptions propagate to the caller.

        Returns:
            True if a route matched, False otherwise
        """
        found = self._route_tree.match(_segments(request.path), request.method)
        if found is None:
            return False

        endpoint, values = found
        request.params = dict(zip(endpoint.param_names, values))
        logger.debug(f"Dispatching {request.method.value} {request.path} to {endpoint.route.path}")

        for step in endpoint.chain:
            await step(request, response)
            if response.sent:
                break
        return True
