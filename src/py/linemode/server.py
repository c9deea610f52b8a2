import asyncio
from typing import Any, Callable, NamedTuple

from . import config
from .config import DEBUG, HOST, PORT, READSIZE, TIMEOUT
from .connection import Connection, TUpgrader
from .events import Emitter
from .tls import TCredentials, upgradeTransport
from .transport import StreamTransport
from .utils.logging import debug, error, event, exception, info


class ServerOptions(NamedTuple):
	host: str = HOST
	port: int = PORT
	backlog: int = 1_000
	# Idle timeout for each connection, 0 disables it
	timeout: float = TIMEOUT
	readsize: int = READSIZE
	# Logs the traffic of each connection
	debug: bool = DEBUG
	# Default credentials for `Connection.startTLS`
	credentials: TCredentials = None


OPTIONS: ServerOptions = ServerOptions()


class Server(Emitter):
	"""Accepts TCP connections and emits `connection` with a `Connection`
	for each of them."""

	def __init__(
		self,
		options: ServerOptions = OPTIONS,
		*,
		upgrader: TUpgrader = upgradeTransport,
	) -> None:
		super().__init__()
		self.options: ServerOptions = options
		self.upgrader: TUpgrader = upgrader
		self.server: asyncio.Server | None = None
		self.connections: set[Connection] = set()

	@property
	def port(self) -> int | None:
		"""The port the server is bound to, which is useful when listening on
		port 0."""
		if self.server and self.server.sockets:
			return int(self.server.sockets[0].getsockname()[1])
		return None

	@property
	def isListening(self) -> bool:
		return self.server is not None and self.server.is_serving()

	async def listen(self, port: int | None = None, host: str | None = None) -> "Server":
		host = self.options.host if host is None else host
		port = self.options.port if port is None else port
		try:
			self.server = await asyncio.start_server(
				self.onConnection, host, port, backlog=self.options.backlog
			)
		except OSError:
			error(f"Unable to bind to {host}:{port}", "HOSTPORTERR")
			raise
		info("Linemode server listening", icon="🚀", Host=host, Port=self.port)
		return self

	async def serve(self) -> None:
		"""Serves until the server is closed."""
		if self.server is None:
			await self.listen()
		server = self.server
		assert server
		try:
			await server.serve_forever()
		except asyncio.CancelledError:
			# Closing the server cancels `serve_forever`
			if self.server is not None:
				raise

	async def close(self) -> None:
		"""Stops accepting connections and ends the open ones."""
		if self.server is None:
			return
		server = self.server
		self.server = None
		server.close()
		for connection in list(self.connections):
			connection.end()
		await server.wait_closed()
		info("Linemode server closed")

	async def onConnection(
		self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
	) -> None:
		connection = Connection(
			StreamTransport(reader, writer),
			debug=self.options.debug,
			credentials=self.options.credentials,
			upgrader=self.upgrader,
		)
		if self.options.debug:
			debug("Connection", Client=connection.id, Peer=connection.remoteAddress)
		self.connections.add(connection)
		try:
			self.emit("connection", connection)
			await connection.pump(self.options.readsize, self.options.timeout)
		except Exception as e:
			exception(e, "Connection processing failed")
			connection.onError(e)
		finally:
			self.connections.discard(connection)
			connection.destroy()


def run(
	handler: Callable[[Connection], Any],
	*,
	host: str = HOST,
	port: int = PORT,
	timeout: float = TIMEOUT,
	debug: bool = DEBUG,
	credentials: TCredentials = None,
) -> None:
	"""High level function to run the server, calling `handler` with each
	new connection."""
	options = ServerOptions(
		host=host,
		port=port,
		timeout=timeout,
		debug=debug,
		credentials=credentials if credentials is not None else config.credentials(),
	)

	async def main() -> None:
		server = Server(options).on("connection", handler)
		await server.listen()
		try:
			await server.serve()
		finally:
			await server.close()

	try:
		asyncio.run(main())
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")


# EOF
