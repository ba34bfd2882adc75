from typing import ClassVar, Union, Callable, TypeVar, Any, cast

T = TypeVar("T")


class Meta:
    """Defines the attributes used by decorators to annotate handlers"""

    ON: ClassVar[str] = "_servedir_on"
    ON_PRIORITY: ClassVar[str] = "_servedir_on_priority"
    # Values that can't hold attributes get their annotations by object id.
    Annotations: ClassVar[dict[int, dict[str, Any]]] = {}

    @staticmethod
    def Get(scope: Any) -> dict[str, Any]:
        """Returns the dictionary of meta attributes for the given value."""
        if hasattr(scope, "__dict__"):
            return cast(dict[str, Any], scope.__dict__)
        else:
            sid = id(scope)
            if sid not in Meta.Annotations:
                Meta.Annotations[sid] = {}
            return Meta.Annotations[sid]


def on(
    priority: int = 0, **methods: Union[str, list[str], tuple[str, ...]]
) -> Callable[[T], T]:
    """The @on decorator binds a service method to HTTP methods and URL
    patterns. Keyword names are HTTP methods, joined by `_` when the same
    patterns apply to more than one, and values are one or more route
    patterns (see `Route`).

    >    @on(GET_HEAD=("/", "/{path:any}"))
    >    def read(self, request, path):
    >        return request.respond(...)

    The decorated method takes the request and the parameters extracted from
    the pattern, and returns a response (or a coroutine of one)."""

    def decorator(function: T) -> T:
        meta = Meta.Get(function)
        v = meta.setdefault(Meta.ON, [])
        meta.setdefault(Meta.ON_PRIORITY, priority)
        for http_methods, url in list(methods.items()):
            urls = (url,) if isinstance(url, str) else url
            for http_method in http_methods.upper().split("_"):
                for _ in urls:
                    v.append((http_method, _))
        return function

    return decorator


# EOF
