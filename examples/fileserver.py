"""
Static File Server Example

This demonstrates embedding the file server in a script, next to another
service.
Features shown:
- FileService serving a directory given on the command line
- A second service mounted with a higher priority route
- Configuration through `ServerConfig`

Usage:
    python fileserver.py [DIRECTORY]

Test with:
    curl http://localhost:8000/           # Browse the directory
    curl http://localhost:8000/_status    # Served by the status service
"""

import sys
import time

from servedir import HTTPRequest, HTTPResponse, Service, ServerConfig, on, run
from servedir.services.files import FileService
from servedir.utils.logging import info


class Status(Service):
	def __init__(self):
		super().__init__()
		self.started: float = time.time()

	# The priority makes this route win over the files route
	@on(priority=1, GET_HEAD="/_status")
	def status(self, request: HTTPRequest) -> HTTPResponse:
		return request.respondText(f"Up for {time.time() - self.started:.0f}s")


if __name__ == "__main__":
	config = ServerConfig.Make(sys.argv[1] if len(sys.argv) > 1 else None, port=8000)
	info("Starting static file server", Root=str(config.root))
	run(FileService(config), Status(), config=config)

# EOF
