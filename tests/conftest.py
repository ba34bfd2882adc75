import asyncio
import os
import sys
from pathlib import Path

import pytest

# Makes the package importable when it is not installed
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src", "py"))

from servedir.config import ServerConfig  # noqa: E402
from servedir.http.body import HTTPBodyBlob, HTTPBodyFile  # noqa: E402
from servedir.http.model import HTTPHeaders, HTTPRequest, HTTPResponse  # noqa: E402
from servedir.model import Application, mount  # noqa: E402
from servedir.services.files import FileService  # noqa: E402


@pytest.fixture
def root(tmp_path: Path) -> Path:
	"""A served directory with a 5 bytes `a.txt` file and a `b/` directory."""
	base = tmp_path / "root"
	base.mkdir()
	(base / "a.txt").write_bytes(b"hello")
	(base / "b").mkdir()
	(base / "b" / "data.JSON").write_text('{"ok":true}')
	return base.resolve()


@pytest.fixture
def config(root: Path) -> ServerConfig:
	return ServerConfig.Make(
		root,
		host="127.0.0.1",
		port=0,
		polling=0.05,
		stopSignals=False,
		logRequests=False,
	)


@pytest.fixture
def app(config: ServerConfig) -> Application:
	return mount(FileService(config))


def request(
	app: Application,
	method: str,
	path: str,
	headers: dict[str, str] | None = None,
) -> HTTPResponse:
	"""Processes a request in the application, without any socket."""
	req = HTTPRequest(method, path, headers=HTTPHeaders(headers or {}))
	res = app.process(req)
	return res if isinstance(res, HTTPResponse) else asyncio.run(res)


def body(response: HTTPResponse) -> bytes:
	"""Reads the whole body of the response, releasing what it holds."""
	try:
		if isinstance(response.body, HTTPBodyBlob):
			return response.body.payload
		elif isinstance(response.body, HTTPBodyFile):
			if response.body.file:
				return response.body.file.read()
			else:
				return response.body.path.read_bytes()
		else:
			return b""
	finally:
		response.close()


# EOF
