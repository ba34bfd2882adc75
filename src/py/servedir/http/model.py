import asyncio
from functools import lru_cache
from abc import ABC, abstractmethod
from enum import Enum
from typing import (
	Any,
	BinaryIO,
	Callable,
	NamedTuple,
	TypeAlias,
	Union,
)

from ..utils.io import DEFAULT_ENCODING
from .api import ResponseFactory
from .body import HTTPBodyBlob, HTTPBodyFile, THTTPBody
from .status import HTTP_STATUS


# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------


@lru_cache(maxsize=256)
def headername(name: str) -> str:
	"""Normalizes the header name as `Kebab-Case`. Names come from clients,
	so the cache is bounded."""
	return "-".join(_.capitalize() for _ in name.split("-"))


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line"""

	method: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for request processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Body = 1
	Complete = 2
	Timeout = 10
	NoData = 11
	BadFormat = 12


# Type alias for what the parser produces
HTTPAtom: TypeAlias = Union[
	HTTPRequestLine,
	HTTPHeaders,
	HTTPProcessingStatus,
	"HTTPRequest",
]

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPRequestError(Exception):
	"""To be raised by handlers to generate an error response. The message
	is for the logs, the client only gets the status."""

	STATUS: int = 500

	def __init__(self, message: str, status: int | None = None):
		super().__init__(message)
		self.message: str = message
		self.status: int = self.STATUS if status is None else status


class DecodeError(HTTPRequestError):
	"""The request path is not a valid percent-encoded UTF-8 string."""

	STATUS = 400


class ForbiddenError(HTTPRequestError):
	"""The request path resolves outside of the served root."""

	STATUS = 403


class NotFoundError(HTTPRequestError):
	STATUS = 404


class FileIOError(HTTPRequestError):
	"""Any other filesystem or stream failure."""

	STATUS = 500


# -----------------------------------------------------------------------------
#
# BODY WRITER
#
# -----------------------------------------------------------------------------


class HTTPBodyWriter(ABC):
	"""A generic writer for bodies, files are streamed in chunks of
	at most `chunksize` bytes."""

	__slots__ = ["chunksize", "shouldClose"]

	def __init__(self, chunksize: int = 64_000) -> None:
		self.chunksize: int = chunksize
		self.shouldClose: bool = False

	async def write(self, body: THTTPBody | bytes | None) -> bool:
		"""Writes the given type of body."""
		if isinstance(body, bytes):
			return await self._writeBytes(body)
		elif isinstance(body, HTTPBodyBlob):
			return await self._writeBytes(body.payload)
		elif isinstance(body, HTTPBodyFile):
			return await self._writeFile(body)
		elif body is None:
			return True
		else:
			raise ValueError(f"Unsupported body format: {body}")

	async def _writeFile(self, body: HTTPBodyFile) -> bool:
		if body.file is not None:
			return await self._streamFile(body.file, body.length)
		try:
			f: BinaryIO = await asyncio.to_thread(open, body.path, "rb")
		except OSError as e:
			raise FileIOError(f"Could not open file: {e}") from e
		try:
			return await self._streamFile(f, body.length)
		finally:
			f.close()

	async def _streamFile(self, file: BinaryIO, length: int) -> bool:
		"""Streams exactly `length` bytes from the file, failing with a
		`FileIOError` when the file can't be read or ends early."""
		remaining: int = length
		while remaining > 0:
			try:
				chunk: bytes = await asyncio.to_thread(
					file.read, min(self.chunksize, remaining)
				)
			except OSError as e:
				raise FileIOError(f"Could not read file: {e}") from e
			if not chunk:
				raise FileIOError(
					f"File ended {remaining} bytes before its announced length"
				)
			await self._writeBytes(chunk)
			remaining -= len(chunk)
		return True

	@abstractmethod
	async def _writeBytes(self, chunk: bytes) -> bool:
		...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""Represents an HTTP requests, which also acts as a factory for
	responses."""

	__slots__ = [
		"protocol",
		"method",
		"path",
		"query",
		"_headers",
		"_onClose",
	]

	def __init__(
		self,
		method: str,
		path: str,
		query: dict[str, str] | None = None,
		headers: HTTPHeaders | None = None,
		protocol: str = "HTTP/1.1",
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.query: dict[str, str] | None = query
		self.protocol: str = protocol
		self._headers: HTTPHeaders = headers or HTTPHeaders({})
		self._onClose: Callable[[HTTPRequest], None] | None = None

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	@property
	def keepAlive(self) -> bool:
		"""Tells if the client expects the connection to stay open after
		the response."""
		connection: str = (self.header("Connection") or "").lower()
		if self.protocol == "HTTP/1.0":
			return connection == "keep-alive"
		else:
			return connection != "close"

	def onClose(
		self, callback: Callable[["HTTPRequest"], None] | None
	) -> "HTTPRequest":
		self._onClose = callback
		return self

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			contentLength=contentLength,
			protocol=self.protocol,
			headers=headers,
		)

	def __str__(self) -> str:
		return f"Request({self.method} {self.path}{f'?{self.query}' if self.query else ''} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	@staticmethod
	def Create(
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects."""
		body: THTTPBody | None = None
		if content is None:
			contentLength = 0 if contentLength is None else contentLength
		elif isinstance(content, str):
			body = HTTPBodyBlob.FromBytes(content.encode(DEFAULT_ENCODING))
		elif isinstance(content, bytes):
			body = HTTPBodyBlob.FromBytes(content)
		elif isinstance(content, HTTPBodyFile):
			body = content
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		if body is not None:
			contentLength = body.length
		updated_headers: dict[str, str] = {}
		if contentType is not None:
			updated_headers["Content-Type"] = contentType
		updated_headers["Content-Length"] = str(contentLength)
		return HTTPResponse(
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(
				(headers | updated_headers) if headers else updated_headers,
				contentType=contentType,
				contentLength=contentLength,
			),
			body=body,
			protocol=protocol,
		)

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
		"shouldClose",
		"_onClose",
	]

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: THTTPBody | None = None,
		shouldClose: bool = False,
	):
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: THTTPBody | None = body
		self._onClose: Callable[[HTTPResponse], None] | None = None
		self.shouldClose: bool = shouldClose

	@property
	def contentType(self) -> str | None:
		return self.getHeader("Content-Type")

	@property
	def contentLength(self) -> int | None:
		value = self.getHeader("Content-Length")
		return None if value is None else int(value)

	def getHeader(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def setHeader(self, name: str, value: str | int | None) -> "HTTPResponse":
		if value is None:
			self.headers.headers.pop(headername(name), None)
		else:
			self.headers.headers[headername(name)] = str(value)
		return self

	def head(self) -> bytes:
		"""Serializes the head as a payload."""
		message: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = [
			f"{headername(k)}: {v}" for k, v in self.headers.headers.items()
		]
		lines.insert(0, f"{self.protocol} {self.status} {message}")
		lines.append("")
		lines.append("")
		return "\r\n".join(lines).encode("ascii")

	def onClose(
		self, callback: Callable[["HTTPResponse"], None] | None
	) -> "HTTPResponse":
		self._onClose = callback
		return self

	def close(self) -> None:
		"""Runs the close callback once, releasing whatever the response
		holds on to."""
		callback, self._onClose = self._onClose, None
		if callback:
			callback(self)

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers.headers} {self.body})"


# EOF
