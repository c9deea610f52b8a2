import asyncio
from typing import Awaitable, Callable

from .events import Emitter
from .framing import Framer, TerminatorValue
from .model import (
	READY,
	Command,
	Data,
	Mode,
	ProtocolMisuse,
	UpgradeError,
	UpgradeState,
)
from .tls import TCredentials, upgradeTransport
from .transport import Transport
from .utils.io import asLine
from .utils.logging import debug, exception, info, logged, warning

TUpgrader = Callable[[Transport, TCredentials], Awaitable[Transport]]


class Connection(Emitter):
	"""Wraps the transport of a client, turning its byte stream into events.

	Events:
	- `command(name: str, payload: bytes)`: a command line was received
	- `data(payload: bytes)`: a chunk of a data block was received
	- `ready()`: the data block ended and command mode is restored
	- `secure()`: the transport was upgraded to TLS
	- `error(error: Exception)`: a failure, the connection is destroyed
	  unless it's a `ProtocolMisuse`
	- `timeout()`: the client was idle for too long, the connection is closed
	- `end()`: the client disconnected

	The connection is destroyed at most once, which releases all the bound
	handlers."""

	def __init__(
		self,
		transport: Transport,
		*,
		debug: bool = False,
		credentials: TCredentials = None,
		upgrader: TUpgrader = upgradeTransport,
	) -> None:
		super().__init__()
		self.transport: Transport = transport
		self.framer: Framer = Framer()
		self.remoteAddress: str | None = transport.peer
		self.isDebug: bool = debug
		self.credentials: TCredentials = credentials
		self.upgrader: TUpgrader = upgrader
		self.upgrade: UpgradeState = (
			UpgradeState.Secure if transport.isSecure else UpgradeState.Plain
		)
		self.isAlive: bool = True
		# Set while the TLS handshake owns the incoming bytes
		self._ignoreData: bool = False
		self._upgrading: asyncio.Task[None] | None = None
		self._reading: asyncio.Future[bytes] | None = None

	@property
	def id(self) -> str:
		return f"{id(self):x}"

	@property
	def mode(self) -> Mode:
		return self.framer.mode

	@property
	def isSecure(self) -> bool:
		return self.upgrade is UpgradeState.Secure

	# =========================================================================
	# API
	# =========================================================================

	def send(self, data: str | bytes | None = None) -> bool:
		"""Sends the data to the client, followed by CRLF."""
		if not self.isAlive or self.transport.isClosing:
			warning("Sending on a closed connection", Client=self.id)
			return False
		line = asLine(data)
		if self.isDebug:
			debug("OUT", Client=self.id, Data=line)
		self.transport.write(line)
		return True

	def startDataMode(self, terminator: TerminatorValue = None) -> "Connection":
		"""Treats the incoming bytes as a data block until the terminator
		(`CRLF . CRLF` by default) is received. The terminator only applies to
		this block."""
		self.framer.startDataMode(terminator)
		return self

	def startTLS(self, credentials: TCredentials = None) -> bool:
		"""Upgrades the connection to TLS, emitting `secure` on success. The
		bytes received while the handshake is in progress, including the rest
		of the current chunk, are not framed."""
		if self.upgrade is UpgradeState.Secure:
			self.emit("error", ProtocolMisuse("Secure connection already established"))
			return False
		elif self.upgrade is UpgradeState.Upgrading:
			self.emit("error", ProtocolMisuse("Secure connection already in progress"))
			return False
		elif not self.isAlive:
			return False
		self.upgrade = UpgradeState.Upgrading
		self._ignoreData = True
		self._upgrading = asyncio.get_running_loop().create_task(
			self._upgrade(self.credentials if credentials is None else credentials)
		)
		return True

	def end(self) -> None:
		"""Closes the connection, the client's end of stream will then
		trigger the `end` event."""
		if self.isAlive:
			self.transport.close()

	# =========================================================================
	# TRANSPORT CALLBACKS
	# =========================================================================

	def onData(self, chunk: bytes) -> None:
		if self._ignoreData or not self.isAlive:
			return
		if self.isDebug and logged(debug):
			debug("IN", Client=self.id, Mode=self.framer.mode.name, Data=chunk)
		for atom in self.framer.feed(chunk):
			if isinstance(atom, Command):
				self.emit("command", atom.name, atom.payload)
			elif isinstance(atom, Data):
				self.emit("data", atom.payload)
			elif atom is READY:
				self.emit("ready")
			# Stops framing when upgrading or destroyed by a handler
			if self._ignoreData or not self.isAlive:
				break

	def onEnd(self) -> None:
		if self.isAlive:
			self.emit("end")
			self.destroy()

	def onError(self, error: Exception) -> None:
		if self.isAlive:
			info("Connection failed", Client=self.id, Error=str(error))
			self.emit("error", error)
			self.destroy()

	def onTimeout(self) -> None:
		if self.isAlive:
			if not self.transport.isClosing:
				self.transport.close()
			self.emit("timeout")
			self.destroy()

	def onClose(self) -> None:
		self.destroy()

	def destroy(self) -> bool:
		"""Releases the connection, returns `False` when it was already
		destroyed."""
		if not self.isAlive:
			return False
		self.isAlive = False
		if self._upgrading and not self._upgrading.done():
			self._upgrading.cancel()
		self._upgrading = None
		# Unblocks `pump` when the stream does not end by itself
		if self._reading and not self._reading.done():
			self._reading.cancel()
		self.transport.close()
		self.removeAll()
		return True

	# =========================================================================
	# PROCESSING
	# =========================================================================

	async def pump(self, readsize: int = 65_536, timeout: float | None = None) -> None:
		"""Reads chunks from the transport until the connection is
		destroyed. A `timeout` of `0` or `None` disables the idle timeout."""
		try:
			while self.isAlive:
				try:
					# NOTE: The transport is read again each time, as it
					# changes when upgraded.
					transport = self.transport
					self._reading = asyncio.ensure_future(transport.read(readsize))
					chunk = await asyncio.wait_for(self._reading, timeout=timeout or None)
				except asyncio.CancelledError:
					# The read is cancelled by `destroy`, or by an upgrade
					# that replaced the transport
					if not self.isAlive:
						break
					elif self.transport is not transport:
						continue
					raise
				except TimeoutError:
					warning("Client timed out", Client=self.id, Timeout=timeout)
					self.onTimeout()
					break
				except (OSError, asyncio.IncompleteReadError) as e:
					self.onError(e)
					break
				finally:
					self._reading = None
				if not chunk:
					self.onEnd()
					break
				try:
					self.onData(chunk)
				except Exception as e:
					exception(e, "Connection handler failed")
					self.onError(e)
					break
		finally:
			self.onClose()

	async def _upgrade(self, credentials: TCredentials) -> None:
		try:
			transport = await self.upgrader(self.transport, credentials)
		except Exception as e:
			self._upgrading = None
			if self.isAlive:
				self.upgrade = UpgradeState.Plain
				if isinstance(e, UpgradeError):
					self._report(e)
				else:
					exception(e, "Transport upgrade failed")
					self._report(UpgradeError(f"Transport upgrade failed: {e}"))
			return
		self._upgrading = None
		if not self.isAlive:
			transport.close()
			return
		# The secure stream starts anew, nothing received before carries over
		self.framer.reset()
		self.transport = transport
		self._ignoreData = False
		self.upgrade = UpgradeState.Secure
		# A read pending on the previous transport is restarted by `pump`
		if self._reading and not self._reading.done():
			self._reading.cancel()
		info("Connection secured", Client=self.id, Peer=self.remoteAddress)
		try:
			self.emit("secure")
		except Exception as e:
			exception(e, "Connection handler failed")
			self._report(e)

	def _report(self, error: Exception) -> None:
		"""Reports an error of the upgrade task, which has no caller to
		propagate it to."""
		try:
			self.onError(error)
		except Exception as e:
			exception(e, "Connection handler failed")
			self.destroy()

	def __repr__(self) -> str:
		return f"(Connection {self.remoteAddress} {self.framer.mode.name}{' :secure' if self.isSecure else ''}{'' if self.isAlive else ' :destroyed'})"


# EOF
