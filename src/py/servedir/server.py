import asyncio
import errno
import socket
import sys
import threading
from dataclasses import dataclass
from signal import SIGINT, SIGTERM
from typing import Any, Coroutine

import psutil

from .config import ServerConfig
from .http.model import (
	FileIOError,
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .model import Application, Service, mount
from .utils.limits import LimitType, unlimit
from .utils.logging import LogLevel, debug, event, exception, info, logged, warning, error


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e)


SERVER_BAD_REQUEST: bytes = (
	b"HTTP/1.1 400 Bad Request\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 15\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"400 Bad Request"
)

SERVER_ERROR: bytes = (
	b"HTTP/1.1 500 Internal Server Error\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 25\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"500 Internal Server Error"
)

# Errors raised when the client went away while we were writing
CLIENT_GONE: tuple[type[Exception], ...] = (
	BrokenPipeError,
	ConnectionResetError,
	ConnectionAbortedError,
)


class AIOSocketBodyWriter(HTTPBodyWriter):
	"""Specialized body writer to work with AIO sockets."""

	__slots__ = ["client", "loop"]

	def __init__(
		self,
		client: "socket.socket",
		loop: asyncio.AbstractEventLoop,
		chunksize: int = 64_000,
	) -> None:
		super().__init__(chunksize)
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(self, chunk: bytes) -> bool:
		if chunk:
			await self.loop.sock_sendall(self.client, chunk)
		return True


def networkAddresses() -> list[str]:
	"""Returns the IPv4 addresses of the network interfaces that are up,
	excluding the loopback ones."""
	res: list[str] = []
	stats = psutil.net_if_stats()
	for name, addrs in psutil.net_if_addrs().items():
		iface = stats.get(name)
		if not iface or not iface.isup:
			continue
		for addr in addrs:
			if addr.family == socket.AF_INET and not addr.address.startswith("127."):
				res.append(addr.address)
	return res


def banner(config: ServerConfig, port: int) -> None:
	info("File server started", icon="🚀", Root=str(config.root))
	info("Local", URL=f"http://localhost:{port}")
	try:
		addresses = networkAddresses()
	except (OSError, psutil.Error) as e:
		warning("Could not list network interfaces", Reason=str(e))
		addresses = []
	for address in addresses:
		info("Network", URL=f"http://{address}:{port}")
	info("Press Ctrl+C to stop the server")


# NOTE: Based on benchmarks, using sockets directly gave the best performance.
class AIOSocketServer:
	"""AsyncIO backend using sockets directly."""

	@classmethod
	async def OnRequest(
		cls,
		app: Application,
		client: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		config: ServerConfig,
	) -> None:
		"""Asynchronous worker, processing the requests sent on a client
		connection in the context of an application."""
		size: int = config.readsize
		buffer = bytearray(size)
		keep_alive: bool = True
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		req_count: int = 0
		res_count: int = 0
		try:
			parser: HTTPParser = HTTPParser()
			writer: AIOSocketBodyWriter = AIOSocketBodyWriter(
				client, loop, config.chunksize
			)
			# The connection is kept alive until the client asks to close it,
			# a response requires closing it, or it stays idle for too long.
			while keep_alive and not writer.shouldClose:
				try:
					# Waiting for the first request uses the read timeout, the
					# following ones use the keep-alive idle timeout.
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer),
						timeout=config.keepalive if req_count else config.timeout,
					)
				except (TimeoutError, asyncio.TimeoutError):
					status = HTTPProcessingStatus.Timeout
					break
				except CLIENT_GONE:
					status = HTTPProcessingStatus.NoData
					break
				if not n:
					# A no-data means a close
					status = HTTPProcessingStatus.NoData
					break
				# With HTTP Pipelining, we may receive more than one
				# request in the same payload.
				for atom in parser.feed(bytes(buffer[:n])):
					if atom is HTTPProcessingStatus.BadFormat:
						status = atom
						warning("Malformed request", Client=f"{id(client):x}")
						await loop.sock_sendall(client, SERVER_BAD_REQUEST)
						keep_alive = False
						break
					elif isinstance(atom, HTTPRequest):
						req_count += 1
						keep_alive = atom.keepAlive
						res = await cls.SendResponse(atom, app, writer, keepAlive=keep_alive)
						if res:
							res_count += 1
							if config.logRequests:
								event(atom.method, atom.path, Status=res.status)
						if writer.shouldClose or not keep_alive:
							break
			if res_count != req_count:
				warning("Incomplete responses", Requests=req_count, Responses=res_count)
			elif status is HTTPProcessingStatus.Timeout and not req_count:
				debug("Client timed out before sending a request", Client=f"{id(client):x}")
		except CLIENT_GONE:
			debug("Client closed the connection", Client=f"{id(client):x}")
		except Exception as e:
			exception(e)
		finally:
			client.close()

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		app: Application,
		writer: HTTPBodyWriter,
		*,
		keepAlive: bool = True,
	) -> HTTPResponse | None:
		"""Processes the request within the application and sends a response
		using the given writer. An error while streaming the body, after the
		head was sent, closes the connection."""
		req: HTTPRequest = request
		res: HTTPResponse | None = None
		sent: bool = False
		gone: bool = False
		failed: bool = False
		try:
			r: HTTPResponse | Coroutine[Any, Any, HTTPResponse] = app.process(req)
			res = r if isinstance(r, HTTPResponse) else await r
		except Exception as e:
			exception(e, f"Could not process {req.method} {req.path}")
			res = None
			failed = True
		try:
			if res is None:
				# A failure was already logged with its traceback
				failed or warning(
					"Application did not return a response",
					Method=req.method,
					Path=req.path,
				)
			else:
				if not keepAlive:
					res.setHeader("Connection", "close")
				await writer.write(res.head())
				sent = True
				if req.method != "HEAD":
					await writer.write(res.body)
		except CLIENT_GONE:
			# Client did an early close, we stop streaming.
			logged(LogLevel.Debug) and debug(
				"Client went away during response", Method=req.method, Path=req.path
			)
			gone = True
			writer.shouldClose = True
		except FileIOError as e:
			# The head is already sent, the only way to signal the failure
			# is to truncate the response by closing the connection.
			warning(
				"Response truncated", Method=req.method, Path=req.path, Reason=e.message
			)
			writer.shouldClose = True
		except Exception as e:
			exception(e)
			writer.shouldClose = True
		finally:
			if res:
				try:
					res.close()
				except Exception as e:
					exception(e)
			if req._onClose:
				try:
					req._onClose(req)
				except Exception as e:
					exception(e)
		# Every request gets a response, even when the application failed
		if not sent and not gone:
			try:
				await writer.write(SERVER_ERROR)
			except CLIENT_GONE:
				pass
			writer.shouldClose = True
		return res if sent else None

	@staticmethod
	def Bind(config: ServerConfig) -> socket.socket:
		"""Creates the listening socket, raising `OSError` when the
		address can't be bound."""
		server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
		try:
			server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
			server.bind((config.host, config.port))
			# The argument is the backlog of connections that will be
			# accepted before they are refused.
			server.listen(config.backlog)
		except OSError:
			server.close()
			raise
		# This is what we need to use it with asyncio
		server.setblocking(False)
		return server

	@classmethod
	async def Accept(
		cls,
		app: Application,
		server: socket.socket,
		config: ServerConfig,
		state: ServerState | None = None,
	) -> None:
		"""Accepts connections on the given listening socket until the state
		is stopped, processing each in its own task."""
		loop = asyncio.get_running_loop()
		state = state or ServerState()
		tasks: set[asyncio.Task[None]] = set()
		await app.start()
		try:
			while state.isRunning:
				if config.condition and not config.condition():
					break
				try:
					client, _ = await asyncio.wait_for(
						loop.sock_accept(server), timeout=config.polling or 1.0
					)
				except (TimeoutError, asyncio.TimeoutError):
					continue
				except OSError as e:
					# This can be: [OSError] [Errno 24] Too many open files
					if e.errno == errno.EMFILE:
						await asyncio.sleep(0.1)
					else:
						exception(e)
					continue
				client.setblocking(False)
				task = loop.create_task(
					cls.OnRequest(app, client, loop=loop, config=config)
				)
				tasks.add(task)
				task.add_done_callback(tasks.discard)
		finally:
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)
			await app.stop()

	@classmethod
	async def Serve(
		cls,
		app: Application,
		config: ServerConfig,
		server: socket.socket | None = None,
	) -> None:
		"""Main server coroutine, using the given listening socket or
		binding a new one."""
		server = server or cls.Bind(config)
		port: int = server.getsockname()[1]
		loop = asyncio.get_running_loop()
		state = ServerState()
		# Signal handlers can only be set from the main thread
		if config.stopSignals and threading.current_thread() is threading.main_thread():
			loop.add_signal_handler(SIGINT, state.stop)
			loop.add_signal_handler(SIGTERM, state.stop)
		loop.set_exception_handler(state.onException)
		banner(config, port)
		await cls.Accept(app, server, config, state)


def run(
	*components: Application | Service,
	config: ServerConfig | None = None,
) -> None:
	"""High level function to run the server, exiting the process with a
	non-zero status when the server can't listen."""
	config = config or ServerConfig.Make()
	unlimit(LimitType.Files)
	app = mount(*components)
	try:
		server = AIOSocketServer.Bind(config)
	except OSError as e:
		if e.errno == errno.EADDRINUSE:
			error(f"Port {config.port} is already in use", "EADDRINUSE", Port=config.port)
			info("Try setting a different port, like: PORT=3000 servedir")
		else:
			error(
				f"Could not listen on {config.host}:{config.port}",
				"HOSTPORTERR",
				Reason=str(e),
			)
		sys.exit(1)
	try:
		asyncio.run(AIOSocketServer.Serve(app, config, server))
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")


# EOF
