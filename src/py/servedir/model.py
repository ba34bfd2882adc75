from typing import Optional, Iterable, ClassVar, Any, Coroutine

from .routing import Handler, Dispatcher
from .http.model import HTTPRequest, HTTPResponse

# -----------------------------------------------------------------------------
#
# SERVICE
#
# -----------------------------------------------------------------------------


class Service:
    PREFIX: ClassVar[str] = ""
    NO_HANDLER: ClassVar[list[str]] = [
        "name",
        "app",
        "prefix",
        "_handlers",
        "isMounted",
        "handlers",
        "start",
        "stop",
    ]

    def __init__(
        self, name: Optional[str] = None, *, prefix: str | None = None
    ) -> None:
        self.name: str = name or self.__class__.__name__
        self.app: Optional[Application] = None
        self.prefix = prefix or self.PREFIX
        self._handlers: Optional[list[Handler]] = None

    async def start(self) -> None:
        """Can be overridden to do asynchronous pre-start work"""
        pass

    async def stop(self) -> None:
        """Can be overridden to do asynchronous post-stop work"""
        pass

    @property
    def isMounted(self) -> bool:
        return self.app is not None

    @property
    def handlers(self) -> list[Handler]:
        if self._handlers is None:
            self._handlers = list(self.iterHandlers())
        return self._handlers

    def iterHandlers(self) -> Iterable[Handler]:
        for value in (getattr(self, _) for _ in dir(self) if _ not in self.NO_HANDLER):
            handler = Handler.Get(value)
            if handler:
                yield handler

    def __repr__(self) -> str:
        return f"(Service {self.name}{' :mounted' if self.isMounted else ''})"


# -----------------------------------------------------------------------------
#
# APPLICATION
#
# -----------------------------------------------------------------------------


class Application:
    def __init__(self, services: list[Service] | None = None) -> None:
        self.dispatcher: Dispatcher = Dispatcher()
        self.services: list[Service] = []
        for service in services or ():
            self.mount(service)

    async def start(self) -> "Application":
        for srv in self.services:
            await srv.start()
        return self

    async def stop(self) -> "Application":
        for srv in self.services:
            await srv.stop()
        return self

    def process(
        self, request: HTTPRequest
    ) -> HTTPResponse | Coroutine[Any, Any, HTTPResponse]:
        route, params = self.dispatcher.match(
            request.method or "GET", request.path or "/"
        )
        if route:
            handler = route.handler
            if not handler:
                raise RuntimeError(f"Route has no handler defined: {route}")
            return handler(request, params or {})
        else:
            return self.onRouteNotFound(request)

    def onRouteNotFound(self, request: HTTPRequest) -> HTTPResponse:
        allowed = self.dispatcher.allowed(request.path or "/")
        return request.notAllowed(allowed) if allowed else request.notFound()

    def mount(self, service: Service, prefix: Optional[str] = None) -> Service:
        if service.isMounted:
            raise RuntimeError(
                f"Cannot mount service, it is already mounted: {service}"
            )
        for handler in service.handlers:
            self.dispatcher.register(handler, prefix or service.prefix)
        service.app = self
        self.services.append(service)
        return service


def mount(*components: Application | Service) -> Application:
    """Mounts the given services into an application, which is either the
    first given application or a new one."""
    apps: list[Application] = [_ for _ in components if isinstance(_, Application)]
    app: Application = apps[0] if apps else Application()
    for item in components:
        if isinstance(item, Service):
            app.mount(item)
        elif not isinstance(item, Application):
            raise RuntimeError(f"Unsupported component type {type(item)}: {item}")
    return app


# EOF
