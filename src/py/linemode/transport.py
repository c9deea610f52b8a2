import asyncio
import ssl
from abc import ABC, abstractmethod

from mypy_extensions import mypyc_attr


@mypyc_attr(allow_interpreted_subclasses=True)
class Transport(ABC):
	"""The byte stream a connection reads from and writes to. A transport
	can be upgraded to a secure one running over the same socket."""

	@property
	@abstractmethod
	def peer(self) -> str | None: ...

	@property
	@abstractmethod
	def isSecure(self) -> bool: ...

	@property
	@abstractmethod
	def isClosing(self) -> bool: ...

	@abstractmethod
	async def read(self, size: int) -> bytes:
		"""Returns the next chunk, which is empty at the end of the stream."""
		...

	@abstractmethod
	def write(self, data: bytes) -> None: ...

	@abstractmethod
	async def drain(self) -> None: ...

	@abstractmethod
	def close(self) -> None:
		"""Closes the transport, can be called more than once."""
		...

	@abstractmethod
	async def upgrade(self, context: ssl.SSLContext) -> "Transport":
		"""Negotiates TLS over this transport and returns the secure one."""
		...


class StreamTransport(Transport):
	"""A transport over asyncio streams."""

	def __init__(
		self,
		reader: asyncio.StreamReader,
		writer: asyncio.StreamWriter,
		*,
		secure: bool = False,
	) -> None:
		self.reader: asyncio.StreamReader = reader
		self.writer: asyncio.StreamWriter = writer
		self.secure: bool = secure

	@property
	def peer(self) -> str | None:
		addr = self.writer.get_extra_info("peername")
		if isinstance(addr, tuple):
			return f"{addr[0]}:{addr[1]}"
		else:
			return str(addr) if addr else None

	@property
	def isSecure(self) -> bool:
		return self.secure

	@property
	def isClosing(self) -> bool:
		return self.writer.is_closing()

	async def read(self, size: int) -> bytes:
		return await self.reader.read(size)

	def write(self, data: bytes) -> None:
		self.writer.write(data)

	async def drain(self) -> None:
		await self.writer.drain()

	def close(self) -> None:
		if not self.writer.is_closing():
			self.writer.close()

	async def upgrade(self, context: ssl.SSLContext) -> "StreamTransport":
		# NOTE: The reader is kept, the stream protocol is fed the decrypted
		# bytes once the handshake completes.
		await self.writer.start_tls(context)
		return StreamTransport(self.reader, self.writer, secure=True)

	def __repr__(self) -> str:
		return f"StreamTransport({self.peer}{' :secure' if self.secure else ''})"


# EOF
