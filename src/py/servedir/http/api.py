from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, BinaryIO, Generic, TypeVar

from ..utils.files import contentType as getContentType
from .body import HTTPBodyFile
from .status import HTTP_STATUS, statusText

T = TypeVar("T")

# -----------------------------------------------------------------------------
#
# API
#
# -----------------------------------------------------------------------------

# --
# == HTTP Request Response API
#
# Defines the high level API functions (orthogonal to the underlying model)
# to create responses from a request.


class ResponseFactory(ABC, Generic[T]):
	@abstractmethod
	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> T: ...

	def error(
		self,
		status: int,
		headers: dict[str, str] | None = None,
	) -> T:
		"""Responds with a generic plain text body that only states the
		status, never any detail about the failure."""
		return self.respond(
			content=statusText(status),
			contentType="text/plain",
			status=status,
			message=HTTP_STATUS.get(status, "Server Error"),
			headers=headers,
		)

	def notFound(self) -> T:
		return self.error(404)

	def notAllowed(self, allowed: list[str]) -> T:
		return self.error(405, headers={"Allow": ", ".join(allowed)})

	def respondText(
		self,
		content: str | bytes,
		contentType: str = "text/plain; charset=utf-8",
		status: int = 200,
	) -> T:
		return self.respond(content=content, contentType=contentType, status=status)

	def respondHTML(self, html: str | bytes, status: int = 200) -> T:
		return self.respond(
			content=html, contentType="text/html; charset=utf-8", status=status
		)

	def respondFile(
		self,
		path: Path | str,
		*,
		size: int | None = None,
		file: BinaryIO | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		contentType: str | None = None,
	) -> T:
		"""Responds with the contents of the file at `path`. When `file` is
		given, it is the already opened handle to stream from."""
		# NOTE: Ranges and ETags are not supported
		p: Path = path if isinstance(path, Path) else Path(path)
		content_length: int = p.stat().st_size if size is None else size
		return self.respond(
			content=HTTPBodyFile(p, content_length, file),
			contentType=contentType or getContentType(p),
			contentLength=content_length,
			status=status,
			headers=headers,
		)


# EOF
