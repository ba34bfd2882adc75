import os
import re

import pytest

from conftest import body, request
from servedir.http.body import HTTPBodyFile
from servedir.config import ServerConfig
from servedir.model import mount
from servedir.services.files import FileService

RE_NAME = re.compile(r'<span class="name(?: directory)?">([^<]*)</span>')


def names(page: str) -> list[str]:
	"""Returns the entry names of a listing, in order."""
	return RE_NAME.findall(page)


def test_listing_root(app):
	res = request(app, "GET", "/")
	assert res.status == 200
	assert res.contentType == "text/html; charset=utf-8"
	page = body(res).decode("utf8")
	assert res.contentLength == len(page.encode("utf8"))
	assert page.startswith("<!DOCTYPE html>")
	assert "<title>Index of /</title>" in page
	# Directories come first, and there is no parent at the root
	assert names(page) == ["b", "a.txt"]
	assert page.index('href="/b"') < page.index('href="/a.txt"')
	assert "&lt;" not in page
	assert '"name directory">..<' not in page
	assert "5 B" in page


def test_listing_subdirectory(app):
	page = body(request(app, "GET", "/b")).decode("utf8")
	assert "Index of /b" in page
	assert page.index('href="/"') < page.index('href="/b/data.JSON"')
	assert '<span class="name directory">..</span>' in page
	# A trailing slash lists the same directory
	assert body(request(app, "GET", "/b/")).decode("utf8") == page


def test_listing_escapes_names(root, app):
	(root / "<b>.txt").write_text("bold")
	(root / "a&b c").mkdir()
	page = body(request(app, "GET", "/")).decode("utf8")
	assert "<b>.txt" not in page
	assert "&lt;b&gt;.txt" in page
	assert 'href="/%3Cb%3E.txt"' in page
	assert "a&amp;b c" in page
	assert 'href="/a%26b%20c"' in page
	res = request(app, "GET", "/%3Cb%3E.txt")
	assert res.status == 200
	assert body(res) == b"bold"


def test_file(app):
	res = request(app, "GET", "/a.txt")
	assert res.status == 200
	assert res.contentType == "text/plain"
	assert res.contentLength == 5
	assert isinstance(res.body, HTTPBodyFile)
	f = res.body.file
	assert f is not None
	assert body(res) == b"hello"
	# The handle is released once the response is closed
	assert f.closed


def test_file_content_type(app):
	res = request(app, "GET", "/b/data.JSON")
	assert res.contentType == "application/json"
	assert body(res) == b'{"ok":true}'


def test_head(app):
	res = request(app, "HEAD", "/a.txt")
	assert res.status == 200
	assert res.contentLength == 5
	assert res.contentType == "text/plain"
	assert isinstance(res.body, HTTPBodyFile)
	# HEAD does not open the file
	assert res.body.file is None
	res = request(app, "HEAD", "/")
	assert res.status == 200
	assert res.contentType == "text/html; charset=utf-8"


def test_errors(app):
	for path, status, text in (
		("/missing", 404, b"404 Not Found"),
		("/a.txt/child", 404, b"404 Not Found"),
		("/../etc/passwd", 403, b"403 Forbidden"),
		("/%2e%2e/%2e%2e/etc/passwd", 403, b"403 Forbidden"),
		("/%zz", 400, b"400 Bad Request"),
		("/%ff", 400, b"400 Bad Request"),
	):
		res = request(app, "GET", path)
		assert res.status == status, path
		assert res.contentType == "text/plain"
		# Error bodies only state the status
		assert body(res) == text


def test_method_not_allowed(app):
	for method in ("POST", "PUT", "DELETE"):
		res = request(app, method, "/a.txt")
		assert res.status == 405
		assert res.getHeader("Allow") == "GET, HEAD"
		assert body(res) == b"405 Method Not Allowed"


def test_sibling_directory(tmp_path):
	(tmp_path / "srv").mkdir()
	(tmp_path / "srv-evil").mkdir()
	(tmp_path / "srv-evil" / "secret").write_text("secret")
	app = mount(FileService(ServerConfig.Make(tmp_path / "srv")))
	assert request(app, "GET", "/../srv-evil/secret").status == 403
	assert request(app, "GET", "/%2e%2e/srv-evil/secret").status == 403


def test_symlinks(root, app, tmp_path):
	outside = tmp_path / "outside.txt"
	outside.write_text("outside")
	os.symlink(outside, root / "link.txt")
	# Symlinks inside the root are followed
	res = request(app, "GET", "/link.txt")
	assert res.status == 200
	assert body(res) == b"outside"
	os.symlink(tmp_path / "nowhere", root / "dangling")
	assert request(app, "GET", "/dangling").status == 404
	# Listing a directory with an entry that can't be stat'ed fails
	res = request(app, "GET", "/")
	assert res.status == 500
	assert body(res) == b"500 Internal Server Error"


@pytest.mark.skipif(os.geteuid() == 0, reason="root can read any directory")
def test_unreadable_directory(root, app):
	secret = root / "secret"
	secret.mkdir()
	secret.chmod(0)
	try:
		assert request(app, "GET", "/secret").status == 500
	finally:
		secret.chmod(0o755)


def test_listing_skips_undecodable_names(root, app):
	try:
		fd = os.open(os.path.join(os.fsencode(root), b"caf\xe9.txt"), os.O_CREAT | os.O_WRONLY)
	except OSError:
		pytest.skip("filesystem rejects names that are not valid UTF-8")
	os.close(fd)
	res = request(app, "GET", "/")
	assert res.status == 200
	# Such a name could not be requested, a path must decode as UTF-8
	assert names(body(res).decode("utf8")) == ["b", "a.txt"]
	assert request(app, "GET", "/caf%E9.txt").status == 400


@pytest.mark.skipif(os.geteuid() == 0, reason="root can read any file")
def test_unreadable_file(root, app):
	secret = root / "secret.txt"
	secret.write_text("secret")
	secret.chmod(0)
	try:
		assert request(app, "GET", "/secret.txt").status == 500
		assert request(app, "HEAD", "/secret.txt").status == 500
	finally:
		secret.chmod(0o644)


# EOF
