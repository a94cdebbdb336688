"""
Server: aggregates routers, dispatches requests and owns the listener.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from .adapters import ASGIAdapter
from .config import ServerConfig
from .error_models import ErrorHandler, ErrorResponse
from .exceptions import (
    MethodNotAllowedError,
    RegistrationClosedError,
    RouteNotFoundError,
    RouteSchemaHTTPError,
)
from .models import Request, Response
from .router import Router, RouterRoute, route_key, wrap_handler
from .servers import UvicornDriver

logger = logging.getLogger(__name__)


class Server:
    """An HTTP server built from mounted routers.

    Registration happens in a build phase: global middleware and error handlers
    are attached with ``use``, routers are mounted with ``use_routers``. The
    build phase ends once ``listen`` succeeds (or at ``freeze``); ``use`` and
    ``use_routers`` afterwards raise ``RegistrationClosedError``.

    Every route of every mounted router is appended to ``routes``, the
    aggregated registry the OpenAPI generator walks.

    Example:
        server = Server()
        server.use(body_parser(), validation_error_handler)
        server.use_routers(pets_router)
        port = server.listen(8080)
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()
        self._middlewares: List[Callable] = []
        self._error_handlers: List[ErrorHandler] = []
        self._routers: List[Router] = []
        self._routes: List[RouterRoute] = []
        self._frozen = False
        self._driver: Optional[UvicornDriver] = None
        self._asgi: Optional[ASGIAdapter] = None

    def __repr__(self):
        return f"Server(routers={len(self._routers)}, routes={len(self._routes)})"

    @property
    def routes(self) -> Tuple[RouterRoute, ...]:
        """Aggregated registry: mount order, then registration order."""
        return tuple(self._routes)

    @property
    def routers(self) -> Tuple[Router, ...]:
        return tuple(self._routers)

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def listening(self) -> bool:
        return self._driver is not None

    def freeze(self) -> None:
        """End the build phase."""
        self._frozen = True

    def use(self, *handlers: Any) -> "Server":
        """Attach global middleware and error handlers.

        Middleware runs before any router, in the order attached. ``ErrorHandler``
        instances join the error channel, also in order.

        Raises:
            RegistrationClosedError: If the server is already listening
        """
        if self._frozen:
            raise RegistrationClosedError("Cannot attach middleware: server is already listening")
        for handler in handlers:
            if isinstance(handler, Router):
                raise TypeError("Routers are mounted with use_routers(), not use()")
            if isinstance(handler, ErrorHandler):
                self._error_handlers.append(handler)
            elif callable(handler):
                self._middlewares.append(wrap_handler(handler))
            else:
                raise TypeError(f"Cannot use {handler!r}: expected a middleware or ErrorHandler")
        return self

    def errorhandler(self, *exception_types: Type[BaseException]):
        """Decorator registering an error handler for the given exception types.

        Example:
            @server.errorhandler(PetNotFound)
            def pet_not_found(error, request, response):
                response.status(404).json({"error": str(error)})
        """
        def decorator(func: Callable):
            self.use(ErrorHandler(func, *exception_types))
            return func

        return decorator

    def use_routers(self, *routers: Router) -> "Server":
        """Mount routers and append their routes to the aggregated registry.

        Raises:
            RegistrationClosedError: If the server is already listening
        """
        if self._frozen:
            raise RegistrationClosedError("Cannot mount routers: server is already listening")

        for router in routers:
            if not isinstance(router, Router):
                raise TypeError(f"Expected a Router, got {type(router).__name__}")
            known = {(r.method, route_key(r.path)) for r in self._routes}
            for route in router.routes:
                if (route.method, route_key(route.path)) in known:
                    logger.warning(
                        f"Route {route.method.value} {route.path} is registered by more than one router; "
                        "the first mounted router handles it"
                    )
                self._routes.append(route)
            router.freeze()
            self._routers.append(router)
            logger.debug(f"Mounted {router!r}")
        return self

    async def handle(self, request: Request) -> Response:
        """Run ``request`` through middleware, routers and the error channel."""
        response: Response = Response()
        try:
            await self._dispatch(request, response)
        except Exception as error:
            await self._handle_error(error, request, response)

        if not response.sent:
            logger.warning(f"No response sent for {request.method.value} {request.path}")
        return response

    async def _dispatch(self, request: Request, response: Response) -> None:
        for middleware in self._middlewares:
            await middleware(request, response)
            if response.sent:
                return

        for router in self._routers:
            if await router.dispatch(request, response):
                return

        allowed = sorted({m for router in self._routers for m in router.allowed_methods(request.path)})
        if allowed:
            raise MethodNotAllowedError(allowed)
        raise RouteNotFoundError(f"No route for {request.method.value} {request.path}")

    async def _handle_error(self, error: Exception, request: Request, response: Response) -> None:
        for handler in self._error_handlers:
            if not handler.handles(error):
                continue
            try:
                await handler(error, request, response)
            except Exception:
                logger.error(f"Error handler {handler!r} failed", exc_info=True)
                break
            if response.sent:
                return

        self._respond_last_resort(error, request, response)

    def _respond_last_resort(self, error: Exception, request: Request, response: Response) -> None:
        # Discard anything a failed step left behind
        response.headers = type(response.headers)()
        response.sent = False

        if isinstance(error, RouteSchemaHTTPError):
            logger.debug(f"{request.method.value} {request.path} -> {error.status_code}: {error.message}")
            if isinstance(error, MethodNotAllowedError):
                response.set_header("Allow", ", ".join(error.allowed))
            response.status(error.status_code).json(ErrorResponse.from_error(error).model_dump(exclude_none=True))
            return

        logger.error(f"Unhandled error processing {request.method.value} {request.path}", exc_info=error)
        response.status(500).json({"error": "Internal server error"})

    @property
    def asgi(self) -> ASGIAdapter:
        """ASGI 3 application serving this server."""
        if self._asgi is None:
            self._asgi = ASGIAdapter(self)
        return self._asgi

    def listen(self, port: int, callback: Optional[Callable[[], Any]] = None, host: Optional[str] = None) -> int:
        """Start serving in a background thread.

        Args:
            port: Port to bind (0 picks a free port)
            callback: Called with no arguments once the listener is up
            host: Interface to bind; defaults to ``config.host``

        Returns:
            The bound port

        Raises:
            OSError: If the address cannot be bound; the server stays in the build phase
            RuntimeError: If the server is already listening
        """
        if self._driver is not None:
            raise RuntimeError("Server is already listening")

        was_frozen = self._frozen
        self.freeze()
        driver = UvicornDriver(
            self.asgi,
            host=host or self.config.host,
            port=port,
            log_level=self.config.log_level,
        )
        try:
            bound_port = driver.start(timeout=self.config.startup_timeout)
        except BaseException:
            self._frozen = was_frozen
            raise
        self._driver = driver
        if callback is not None:
            callback()
        return bound_port

    def close(self, callback: Optional[Callable[[Optional[Exception]], Any]] = None) -> None:
        """Stop the listener; a no-op when the server never listened."""
        if self._driver is None:
            return
        driver, self._driver = self._driver, None
        driver.stop(timeout=self.config.shutdown_timeout)
        if callback is not None:
            callback(None)

    def generate_spec(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """Generate the OpenAPI document for the aggregated registry."""
        from .generator import generate

        return generate(document, self)
