import os

from servedir.utils.files import (
	DEFAULT_CONTENT_TYPE,
	FileEntry,
	contentType,
	formatSize,
	sortEntries,
)
from servedir.utils.htmpl import H, html, raw


def test_format_size():
	assert formatSize(0) == "0 B"
	assert formatSize(1) == "1 B"
	assert formatSize(1023) == "1023 B"
	assert formatSize(1024) == "1 KB"
	assert formatSize(1536) == "1.5 KB"
	assert formatSize(1048576) == "1 MB"
	assert formatSize(1073741824) == "1 GB"
	# Rounded to two decimals, half up
	assert formatSize(1034) == "1.01 KB"
	assert formatSize(1029) == "1 KB"
	# Terabytes are still expressed in gigabytes
	assert formatSize(2 * 1024**4) == "2048 GB"


def test_content_type():
	assert contentType("index.html") == "text/html"
	assert contentType("/a/b/STYLE.CSS") == "text/css"
	assert contentType("photo.JpEg") == "image/jpeg"
	assert contentType("archive.tar.gz") == "application/gzip"
	assert contentType("a.unknownext") == DEFAULT_CONTENT_TYPE
	assert contentType("Makefile") == DEFAULT_CONTENT_TYPE
	assert contentType(".bashrc") == DEFAULT_CONTENT_TYPE


def test_sort_entries():
	entries = [
		FileEntry("b.txt", False, "/b.txt"),
		FileEntry("a.txt", False, "/a.txt"),
		FileEntry("zdir", True, "/zdir"),
		FileEntry("B", True, "/B"),
		FileEntry.Parent("/"),
	]
	assert [_.name for _ in sortEntries(entries)] == ["..", "B", "zdir", "a.txt", "b.txt"]


def test_file_entry_from_stat(tmp_path):
	(tmp_path / "f").write_bytes(b"12345")
	entry = FileEntry.FromStat("f", "/f", os.stat(tmp_path / "f"))
	assert not entry.isDirectory
	assert entry.size == 5
	assert entry.modified is not None
	entry = FileEntry.FromStat("d", "/d", os.stat(tmp_path))
	assert entry.isDirectory
	assert entry.size is None
	assert not entry.isParent
	assert FileEntry.Parent("/").isParent


def test_htmpl_escaping():
	node = H.a("<b>&", href='/x"y', _="file")
	assert str(node) == '<a href="/x&quot;y" class="file">&lt;b&gt;&amp;</a>'
	assert str(H.style(raw("a > b {}"))) == "<style>a > b {}</style>"
	assert str(H.meta(charset="utf-8")) == '<meta charset="utf-8">'
	assert "".join(html(H.div(), doctype="html")) == "<!DOCTYPE html>\n<div></div>"


# EOF
