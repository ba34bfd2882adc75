import asyncio

from servedir.decorators import on
from servedir.http.model import HTTPRequest, NotFoundError
from servedir.model import Service, mount
from servedir.routing import Dispatcher, Handler, Route

ROUTES = {
	"post": (["post"], ["", "/post", "post/", "poster"]),
	"post/": (["post/"], ["", "/post/", "/post", "poster/"]),
	"post/{id}": (["post/a", "post/ab"], ["", "post/", "/post", "post/a/"]),
	"/{path:any}": (["/", "/a", "/a/b/c", "/a\nb"], ["", "a"]),
}


def test_route_match():
	for expr, (ok, no_ok) in ROUTES.items():
		route = Route(expr)
		for t in ok:
			assert route.match(t) is not None, f"{t!r} should match {expr!r}"
		for t in no_ok:
			assert route.match(t) is None, f"{t!r} should not match {expr!r}"


def test_route_params():
	assert Route("/post/{id}").match("/post/42") == {"id": "42"}
	assert Route("/post/{id:digits}").match("/post/42") == {"id": 42}
	assert Route("/files/{path:any}").match("/files/a/b") == {"path": "a/b"}
	# Text chunks are literal, not regular expressions
	assert Route("/a.b").match("/axb") is None


class Echo(Service):
	@on(GET_HEAD="/echo/{name}")
	def echo(self, request: HTTPRequest, name: str):
		return request.respondText(name)

	@on(GET="/missing")
	def missing(self, request: HTTPRequest):
		raise NotFoundError("Nothing here")


def test_handlers_registered():
	service = Echo()
	handlers = {_.functor.__name__: _ for _ in service.handlers}
	assert set(handlers) == {"echo", "missing"}
	assert handlers["echo"].methods == {"GET": ["/echo/{name}"], "HEAD": ["/echo/{name}"]}
	assert Handler.Get(service.start) is None


def test_dispatcher_allowed():
	app = mount(Echo())
	dispatcher: Dispatcher = app.dispatcher
	route, params = dispatcher.match("GET", "/echo/hi")
	assert route is not None and params == {"name": "hi"}
	assert dispatcher.match("POST", "/echo/hi") == (None, None)
	assert sorted(dispatcher.allowed("/echo/hi")) == ["GET", "HEAD"]
	assert dispatcher.allowed("/nowhere") == []


def test_application_errors():
	app = mount(Echo())
	res = asyncio.run(app.process(HTTPRequest("GET", "/echo/hi")))
	assert res.status == 200
	res = asyncio.run(app.process(HTTPRequest("GET", "/missing")))
	assert res.status == 404
	assert res.body.payload == b"404 Not Found"
	res = app.process(HTTPRequest("DELETE", "/echo/hi"))
	assert res.status == 405
	assert res.getHeader("Allow") in ("GET, HEAD", "HEAD, GET")
	res = app.process(HTTPRequest("GET", "/nowhere"))
	assert res.status == 404


# EOF
