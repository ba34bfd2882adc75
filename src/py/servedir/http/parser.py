from typing import Iterator, Literal
from ..utils.io import LineParser, LineTooLong
from .model import (
	HTTPRequest,
	HTTPRequestLine,
	HTTPHeaders,
	HTTPAtom,
	HTTPProcessingStatus,
	headername,
)

# Most headers a request can carry
MAX_HEADERS: int = 100


class RequestLineParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | None = None

	def flush(self) -> HTTPRequestLine | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "RequestLineParser":
		self.line.reset()
		self.value = None
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		"""Returns `True` when a request line was parsed, and the number of
		bytes read. Raises `ValueError` on a malformed line."""
		line, read = self.line.feed(chunk, start)
		if not line:
			# Empty lines between requests are ignored
			return None, read
		ln = line.decode("ascii")
		parts: list[str] = ln.split(" ")
		if len(parts) != 3 or not parts[0] or not parts[2].startswith("HTTP/"):
			raise ValueError(f"Malformed request line: {ln!r}")
		method, target, protocol = parts
		p: list[str] = target.split("?", 1)
		self.value = HTTPRequestLine(method, p[0], p[1] if len(p) > 1 else "", protocol)
		return True, read

	def __str__(self) -> str:
		return f"RequestLineParser({self.value})"


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the number of bytes read. When the value is `None`, no
		header has been extracted, when the value is `False` it's the empty
		line ending the headers, otherwise it is the name of the parsed header."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif not line:
			return False, read
		# Headers are expected to be in ASCII format
		ln: str = line.decode("ascii")
		i = ln.find(":")
		if i == -1:
			return None, read
		h = ln[:i].lower().strip()
		v = ln[i + 1 :].strip()
		if h == "content-length":
			try:
				self.contentLength = int(v)
			except ValueError:
				raise ValueError(f"Malformed Content-Length: {v!r}")
			if self.contentLength < 0:
				raise ValueError(f"Negative Content-Length: {v!r}")
		elif h == "content-type":
			self.contentType = v
		n: str = headername(h)
		if n not in self.headers and len(self.headers) >= MAX_HEADERS:
			raise ValueError(f"More than {MAX_HEADERS} headers")
		self.headers[n] = v
		return n, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodySkipParser:
	"""Consumes the body of a request with Content-Length set. Bodies are
	not used by the server, so they are read and discarded to keep the
	connection in sync."""

	__slots__ = ["expected", "read"]

	def __init__(self) -> None:
		self.expected: int = 0
		self.read: int = 0

	def reset(self, length: int = 0) -> "BodySkipParser":
		self.expected = length
		self.read = 0
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		left: int = len(chunk) - start
		to_read: int = min(left, self.expected - self.read)
		self.read += to_read
		return (True if self.read >= self.expected else None), to_read


class HTTPParser:
	"""A stateful HTTP request parser, fed with chunks as they are read
	from a socket, and yielding requests once they are complete."""

	def __init__(self) -> None:
		self.message: RequestLineParser = RequestLineParser()
		self.headers: HeadersParser = HeadersParser()
		self.body: BodySkipParser = BodySkipParser()
		self.parser: RequestLineParser | HeadersParser | BodySkipParser = self.message
		self.requestLine: HTTPRequestLine | None = None
		self.requestHeaders: HTTPHeaders | None = None

	def reset(self) -> "HTTPParser":
		self.message.reset()
		self.headers.reset()
		self.parser = self.message
		self.requestLine = None
		self.requestHeaders = None
		return self

	def request(self) -> HTTPRequest:
		line = self.requestLine
		if line is None:
			raise RuntimeError("Parser has no request line")
		return HTTPRequest(
			method=line.method,
			path=line.path,
			query=parseQuery(line.query),
			headers=self.requestHeaders or HTTPHeaders({}),
			protocol=line.protocol,
		)

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			# The underlying parsers keep a buffer until they are flushed, so a
			# partially read chunk never needs to be fed again.
			try:
				ln, read = self.parser.feed(chunk, offset)
			except (ValueError, UnicodeDecodeError, LineTooLong):
				# The connection can't be recovered past a malformed request
				self.reset()
				yield HTTPProcessingStatus.BadFormat
				return
			offset += read
			if ln is None:
				continue
			elif self.parser is self.message:
				self.requestLine = self.message.flush()
				self.requestHeaders = None
				if self.requestLine is not None:
					yield self.requestLine
					self.parser = self.headers
			elif self.parser is self.headers:
				if ln is False:
					headers = self.headers.flush()
					self.requestHeaders = headers
					yield headers
					if "Transfer-Encoding" in headers.headers:
						# Chunked request bodies are not supported
						self.reset()
						yield HTTPProcessingStatus.BadFormat
						return
					elif headers.contentLength:
						self.parser = self.body.reset(headers.contentLength)
						yield HTTPProcessingStatus.Body
					else:
						yield self.request()
						self.parser = self.message.reset()
			elif self.parser is self.body:
				yield self.request()
				self.parser = self.message.reset()
			else:
				raise RuntimeError(f"Unsupported parser: {self.parser}")


def parseQuery(text: str) -> dict[str, str]:
	res: dict[str, str] = {}
	if not text:
		return res
	for item in text.split("&"):
		kv = item.split("=", 1)
		if len(kv) == 1:
			res[item] = ""
		else:
			res[kv[0]] = kv[1]
	return res


# EOF
