from pathlib import Path
from typing import BinaryIO, NamedTuple, TypeAlias


class HTTPBodyBlob(NamedTuple):
	"""Represents a whole body as bytes."""

	payload: bytes = b""
	length: int = 0

	@staticmethod
	def FromBytes(data: bytes) -> "HTTPBodyBlob":
		return HTTPBodyBlob(payload=data, length=len(data))


class HTTPBodyFile(NamedTuple):
	"""Represents an HTTP body streamed from a file. The `length` is the
	size the file had when it was stat'ed, which is what the response
	announces. When `file` is set, it is the already opened handle to read
	from."""

	path: Path
	length: int
	file: BinaryIO | None = None


# The different types of bodies that are managed
THTTPBody: TypeAlias = HTTPBodyBlob | HTTPBodyFile


# EOF
