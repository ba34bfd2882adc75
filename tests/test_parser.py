from servedir.http.model import (
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	headername,
)
from servedir.http.parser import MAX_HEADERS, HTTPParser, parseQuery


def parse(*chunks: bytes) -> list:
	parser = HTTPParser()
	return [atom for chunk in chunks for atom in parser.feed(chunk)]


def requests(*chunks: bytes) -> list[HTTPRequest]:
	return [_ for _ in parse(*chunks) if isinstance(_, HTTPRequest)]


def test_parser_chunked_feed():
	atoms = parse(
		b"GET /time/5 ",
		b"HTTP/1.1\r\nHost: ",
		b"127.0.0.1\r",
		b"\nConn",
		b"ection: close\r\n",
		b"\r",
		b"\n",
	)
	assert isinstance(atoms[0], HTTPRequestLine)
	assert atoms[0] == HTTPRequestLine("GET", "/time/5", "", "HTTP/1.1")
	assert isinstance(atoms[1], HTTPHeaders)
	assert atoms[1].headers == {"Host": "127.0.0.1", "Connection": "close"}
	req = atoms[2]
	assert isinstance(req, HTTPRequest)
	assert req.method == "GET"
	assert req.path == "/time/5"
	assert req.header("connection") == "close"
	assert not req.keepAlive


def test_parser_query():
	(req,) = requests(b"GET /dir/a%20b.txt?x=1&y HTTP/1.1\r\n\r\n")
	# The path is kept encoded, decoding happens when resolving it
	assert req.path == "/dir/a%20b.txt"
	assert req.query == {"x": "1", "y": ""}
	assert parseQuery("") == {}


def test_parser_pipelined():
	reqs = requests(
		b"GET /a HTTP/1.1\r\nHost: x\r\n\r\nHEAD /b HTTP/1.1\r\n\r\n",
	)
	assert [(_.method, _.path) for _ in reqs] == [("GET", "/a"), ("HEAD", "/b")]


def test_parser_skips_body():
	reqs = requests(
		b"POST /a HTTP/1.1\r\nContent-Length: 5\r\n\r\nhe",
		b"lloGET /b HTTP/1.1\r\n\r\n",
	)
	assert [(_.method, _.path) for _ in reqs] == [("POST", "/a"), ("GET", "/b")]


def test_parser_keep_alive():
	(a,) = requests(b"GET / HTTP/1.1\r\n\r\n")
	(b,) = requests(b"GET / HTTP/1.0\r\n\r\n")
	(c,) = requests(b"GET / HTTP/1.0\r\nConnection: Keep-Alive\r\n\r\n")
	assert a.keepAlive
	assert not b.keepAlive
	assert c.keepAlive


def test_parser_bad_format():
	for payload in (
		b"NONSENSE\r\n\r\n",
		b"GET /\r\n\r\n",
		b"GET / FTP/1.0\r\n\r\n",
		b"GET / HTTP/1.1\r\nContent-Length: x\r\n\r\n",
		b"GET / HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n",
		b"GET /\xff HTTP/1.1\r\n\r\n",
	):
		assert HTTPProcessingStatus.BadFormat in parse(payload), payload


def test_parser_line_too_long():
	atoms = parse(b"GET /" + b"a" * 20_000)
	assert atoms == [HTTPProcessingStatus.BadFormat]


def headers(prefix: str, count: int) -> bytes:
	return b"".join(f"{prefix}-{i}: 1\r\n".encode("ascii") for i in range(count))


def test_parser_header_names_bounded():
	headername.cache_clear()
	for i in range(5):
		(req,) = requests(
			b"GET / HTTP/1.1\r\n" + headers(f"x-junk-{i}", MAX_HEADERS) + b"\r\n"
		)
		assert len(req.headers) == MAX_HEADERS
	# Names sent by clients do not accumulate in the process
	info = headername.cache_info()
	assert info.currsize <= info.maxsize < 5 * MAX_HEADERS
	assert req.header("X-JUNK-4-0") == "1"
	assert headername("content-TYPE") == "Content-Type"


def test_parser_too_many_headers():
	atoms = parse(b"GET / HTTP/1.1\r\n" + headers("x-junk", MAX_HEADERS + 1) + b"\r\n")
	assert HTTPProcessingStatus.BadFormat in atoms
	assert not [_ for _ in atoms if isinstance(_, HTTPRequest)]
	# Repeating a header does not count twice
	(req,) = requests(
		b"GET / HTTP/1.1\r\n" + b"X-Same: 1\r\n" * (MAX_HEADERS + 1) + b"\r\n"
	)
	assert req.header("x-same") == "1"


# EOF
