import math
import os
import stat
import time
from pathlib import Path
from typing import NamedTuple

DEFAULT_CONTENT_TYPE: str = "application/octet-stream"

# Keyed by lowercase extension, without the leading dot
MIME_TYPES: dict[str, str] = {
	"html": "text/html",
	"htm": "text/html",
	"css": "text/css",
	"js": "application/javascript",
	"mjs": "application/javascript",
	"json": "application/json",
	"png": "image/png",
	"jpg": "image/jpeg",
	"jpeg": "image/jpeg",
	"gif": "image/gif",
	"svg": "image/svg+xml",
	"webp": "image/webp",
	"ico": "image/x-icon",
	"txt": "text/plain",
	"md": "text/markdown",
	"csv": "text/csv",
	"pdf": "application/pdf",
	"zip": "application/zip",
	"gz": "application/gzip",
	"wasm": "application/wasm",
	"mp3": "audio/mpeg",
	"mp4": "video/mp4",
	"webm": "video/webm",
	"xml": "application/xml",
}

SIZE_UNITS: tuple[str, ...] = ("B", "KB", "MB", "GB")


def contentType(path: Path | str) -> str:
	"""Guesses the content type from the extension of the given path,
	ignoring case."""
	ext: str = os.path.splitext(str(path))[1]
	return MIME_TYPES.get(ext[1:].lower(), DEFAULT_CONTENT_TYPE) if ext else DEFAULT_CONTENT_TYPE


def formatSize(size: int) -> str:
	"""Formats a size in bytes using binary units, rounded to two decimals
	with trailing zeros dropped, like `1.5 KB`."""
	if size <= 0:
		return "0 B"
	i: int = 0
	while i < len(SIZE_UNITS) - 1 and size >= 1024 ** (i + 1):
		i += 1
	# Rounds half up, which `round()` does not do
	value: float = math.floor(size / 1024**i * 100 + 0.5) / 100
	text: str = f"{value:.2f}".rstrip("0").rstrip(".")
	return f"{text} {SIZE_UNITS[i]}"


def formatTime(timestamp: float) -> str:
	return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(timestamp))


class FileEntry(NamedTuple):
	"""An entry in a directory listing."""

	name: str
	isDirectory: bool
	href: str
	size: int | None = None
	modified: float | None = None

	@staticmethod
	def FromStat(name: str, href: str, stats: os.stat_result) -> "FileEntry":
		isDirectory = stat.S_ISDIR(stats.st_mode)
		return FileEntry(
			name=name,
			isDirectory=isDirectory,
			href=href,
			size=None if isDirectory else stats.st_size,
			modified=stats.st_mtime,
		)

	@staticmethod
	def Parent(href: str) -> "FileEntry":
		return FileEntry(name="..", isDirectory=True, href=href)

	@property
	def isParent(self) -> bool:
		return self.name == ".."

	@property
	def sortKey(self) -> tuple[int, str]:
		"""The parent comes first, then directories, then files, each
		group ordered by name."""
		return (0 if self.isParent else 1 if self.isDirectory else 2, self.name)


def sortEntries(entries: list[FileEntry]) -> list[FileEntry]:
	return sorted(entries, key=lambda _: _.sortKey)


# EOF
