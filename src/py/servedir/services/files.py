import asyncio
import os
import re
import stat
from pathlib import Path
from urllib.parse import quote, unquote_to_bytes

from ..config import ServerConfig
from ..decorators import on
from ..model import Service
from ..http.model import (
	HTTPRequest,
	HTTPResponse,
	DecodeError,
	ForbiddenError,
	NotFoundError,
	FileIOError,
)
from ..utils.htmpl import Node, H, html, raw
from ..utils.logging import debug
from ..utils.files import FileEntry, contentType, formatSize, formatTime, sortEntries


FILE_CSS: str = """
body {
	font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, "Helvetica Neue", Arial, sans-serif;
	max-width: 1200px;
	margin: 0 auto;
	padding: 20px;
	background: #F5F5F5;
}
h1 {
	color: #333;
	border-bottom: 2px solid #007BFF;
	padding-bottom: 10px;
	word-break: break-all;
}
.files {
	background: white;
	border-radius: 8px;
	box-shadow: 0 2px 4px rgba(0, 0, 0, 0.1);
	overflow: hidden;
}
.file {
	display: flex;
	align-items: center;
	padding: 12px 20px;
	border-bottom: 1px solid #EEE;
	text-decoration: none;
	color: #333;
}
.file:hover {
	background: #F8F9FA;
}
.file:last-child {
	border-bottom: none;
}
.icon {
	width: 24px;
	margin-right: 12px;
	text-align: center;
}
.name {
	flex: 1;
	font-weight: 500;
}
.name.directory {
	color: #007BFF;
}
.size {
	min-width: 100px;
	margin-right: 20px;
	text-align: right;
	color: #666;
}
.modified {
	min-width: 180px;
	text-align: right;
	font-size: 90%;
	color: #999;
}
@media (max-width: 768px) {
	.size, .modified {
		display: none;
	}
}
"""

ICON_DIRECTORY: str = "📁"
ICON_FILE: str = "📄"

# A `%` that does not start a two-digit hexadecimal escape
RE_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

# -----------------------------------------------------------------------------
#
# PATH RESOLUTION
#
# -----------------------------------------------------------------------------


def decodePath(path: str) -> str:
	"""Decodes the percent-escapes of a URL path, which must result in a
	valid UTF-8 string without NUL characters."""
	if RE_BAD_ESCAPE.search(path):
		raise DecodeError(f"Malformed escape sequence in path: {path!r}")
	try:
		decoded: str = unquote_to_bytes(path).decode("utf8")
	except UnicodeDecodeError as e:
		raise DecodeError(f"Path is not valid UTF-8: {path!r}") from e
	if "\x00" in decoded:
		raise DecodeError(f"Path contains a NUL character: {path!r}")
	return decoded


def resolvePath(root: Path, path: str) -> Path:
	"""Returns the normalized local path for the given URL path, which
	must be contained in `root`. Containment compares path segments, so
	that a sibling like `/srv-evil` never passes for `/srv`. Symlinks are
	not resolved."""
	decoded: str = decodePath(path)
	local_path = Path(os.path.normpath(os.path.join(root, decoded.lstrip("/"))))
	if local_path.parts[: len(parts := root.parts)] != parts:
		raise ForbiddenError(f"Path escapes the root: {path!r}")
	return local_path


def statPath(path: Path) -> os.stat_result:
	try:
		return os.stat(path)
	except (FileNotFoundError, NotADirectoryError) as e:
		raise NotFoundError(f"Path does not exist: {path}") from e
	except OSError as e:
		raise FileIOError(f"Could not stat path: {e}") from e


def urlJoin(base: str, name: str) -> str:
	return f"{base.rstrip('/')}/{name}"


def href(url: str) -> str:
	"""Percent-encodes a URL path so that it can be used as a link."""
	return quote(url, safe="/")


def isDecodable(name: str) -> bool:
	"""Tells if a name read from disk is valid UTF-8, which request paths
	must be."""
	try:
		name.encode("utf8")
	except UnicodeEncodeError:
		return False
	return True


# -----------------------------------------------------------------------------
#
# LISTING
#
# -----------------------------------------------------------------------------


def listDirectory(localPath: Path, url: str) -> list[FileEntry]:
	"""Returns the sorted entries of the directory at `localPath`, with a
	parent entry unless `url` is the root. Names that are not valid UTF-8
	are left out, as no request path can reach them. Any failure to read the directory
	or to stat one of its children is a `FileIOError`."""
	entries: list[FileEntry] = []
	if url != "/":
		entries.append(FileEntry.Parent(os.path.dirname(url.rstrip("/")) or "/"))
	try:
		with os.scandir(localPath) as items:
			for item in items:
				if not isDecodable(item.name):
					debug("Skipping undecodable name", Path=str(localPath))
					continue
				entries.append(
					FileEntry.FromStat(item.name, urlJoin(url, item.name), item.stat())
				)
	except OSError as e:
		raise FileIOError(f"Could not list directory: {e}") from e
	return sortEntries(entries)


def renderEntry(entry: FileEntry) -> Node:
	return H.a(
		H.span(ICON_DIRECTORY if entry.isDirectory else ICON_FILE, _="icon"),
		H.span(
			entry.name,
			_="name directory" if entry.isDirectory else "name",
		),
		H.span(
			"" if entry.isDirectory or entry.size is None else formatSize(entry.size),
			_="size",
		),
		H.span(
			"" if entry.isParent or entry.modified is None else formatTime(entry.modified),
			_="modified",
		),
		href=href(entry.href),
		_="file",
	)


def renderListing(url: str, entries: list[FileEntry]) -> str:
	"""Renders the directory listing as a complete HTML document, where
	the URL and the entry names are escaped."""
	title: str = f"Index of {url}"
	return "".join(
		html(
			H.html(
				H.head(
					H.meta(charset="utf-8"),
					H.meta(
						name="viewport",
						content="width=device-width, initial-scale=1.0",
					),
					H.title(title),
					H.style(raw(FILE_CSS)),
				),
				H.body(
					H.h1(title),
					H.div(*[renderEntry(_) for _ in entries], _="files"),
				),
				lang="en",
			),
			doctype="html",
		)
	)


# -----------------------------------------------------------------------------
#
# SERVICE
#
# -----------------------------------------------------------------------------


class FileService(Service):
	"""A service to serve files and directory listings from the local
	filesystem, under a root directory."""

	def __init__(self, config: ServerConfig | None = None):
		super().__init__()
		self.config: ServerConfig = config or ServerConfig.Make()
		self.root: Path = Path(os.path.normpath(self.config.root.absolute()))

	def resolvePath(self, path: str) -> Path:
		return resolvePath(self.root, path)

	def urlPath(self, localPath: Path) -> str:
		"""Returns the normalized URL path of a local path within the root."""
		parts = localPath.parts[len(self.root.parts) :]
		return "/" + "/".join(parts)

	@on(GET_HEAD=("/", "/{path:any}"))
	async def read(self, request: HTTPRequest, path: str = "") -> HTTPResponse:
		local_path = self.resolvePath(path)
		stats = await asyncio.to_thread(statPath, local_path)
		if stat.S_ISDIR(stats.st_mode):
			return await self.renderDir(request, local_path)
		else:
			return await self.renderFile(request, local_path, stats)

	async def renderDir(self, request: HTTPRequest, localPath: Path) -> HTTPResponse:
		url: str = self.urlPath(localPath)
		entries = await asyncio.to_thread(listDirectory, localPath, url)
		return request.respondHTML(renderListing(url, entries))

	async def renderFile(
		self, request: HTTPRequest, localPath: Path, stats: os.stat_result
	) -> HTTPResponse:
		content_type: str = contentType(localPath)
		# HEAD opens the file too, so that it fails the same way as GET
		try:
			f = await asyncio.to_thread(open, localPath, "rb")
		except (FileNotFoundError, NotADirectoryError) as e:
			raise NotFoundError(f"Path does not exist: {localPath}") from e
		except OSError as e:
			raise FileIOError(f"Could not open file: {e}") from e
		if request.method == "HEAD":
			f.close()
			return request.respondFile(
				localPath, size=stats.st_size, contentType=content_type
			)
		return request.respondFile(
			localPath, size=stats.st_size, file=f, contentType=content_type
		).onClose(lambda _: f.close())


# EOF
