from os import getenv, getcwd
from pathlib import Path
from typing import Callable, NamedTuple

PORT: int = int(getenv("PORT", 8080))

# The server is meant to be reachable from the local network
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

ROOT: str = getenv("ROOT", "") or getcwd()

LOG_REQUESTS: bool = getenv("LOG_REQUESTS", "1") == "1"

LOG_LEVEL: str = getenv("LOG_LEVEL", "info").lower()


class ServerConfig(NamedTuple):
	"""The immutable configuration of a file server process, built once
	at startup and passed to the service and the socket server."""

	root: Path = Path(ROOT)
	host: str = HOST
	port: int = PORT
	backlog: int = 1_024
	# Maximum time to wait for a client to send a request
	timeout: float = 10.0
	# Idle time after which a keep-alive connection is closed
	keepalive: float = 5.0
	# This is the polling timeout for accepting new connections
	polling: float = 1.0
	readsize: int = 4_096
	chunksize: int = 64_000
	logRequests: bool = LOG_REQUESTS
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True

	@staticmethod
	def Make(root: Path | str | None = None, **options) -> "ServerConfig":
		"""Creates a configuration where the root is an absolute, normalized
		path."""
		path: Path = Path(root or ROOT).expanduser().resolve()
		return ServerConfig(root=path, **options)


# EOF
