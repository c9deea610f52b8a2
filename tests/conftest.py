import asyncio
import datetime
import ssl
from typing import Any

import pytest

from linemode.connection import Connection
from linemode.tls import Credentials
from linemode.transport import Transport

EVENTS = ("command", "data", "ready", "secure", "error", "timeout", "end")


class MemoryTransport(Transport):
	"""An in-memory transport, `chunks` are returned by `read` and an empty
	chunk is the end of stream. When `hang` is set, reading past the chunks
	never returns."""

	def __init__(
		self,
		chunks: list[bytes | Exception] | None = None,
		*,
		secure: bool = False,
		hang: bool = False,
	) -> None:
		self.chunks: list[bytes | Exception] = list(chunks or [])
		self.secure: bool = secure
		self.hang: bool = hang
		self.written: list[bytes] = []
		self.closed: bool = False

	@property
	def peer(self) -> str | None:
		return "127.0.0.1:4242"

	@property
	def isSecure(self) -> bool:
		return self.secure

	@property
	def isClosing(self) -> bool:
		return self.closed

	async def read(self, size: int) -> bytes:
		if self.chunks:
			chunk = self.chunks.pop(0)
			if isinstance(chunk, Exception):
				raise chunk
			return chunk
		elif self.hang:
			await asyncio.Event().wait()
		return b""

	def write(self, data: bytes) -> None:
		self.written.append(data)

	async def drain(self) -> None:
		pass

	def close(self) -> None:
		self.closed = True

	async def upgrade(self, context: ssl.SSLContext) -> "MemoryTransport":
		return MemoryTransport(secure=True)


def record(connection: Connection) -> list[tuple[Any, ...]]:
	"""Returns the list where all the events of the connection are
	appended as `(event, *args)`."""
	events: list[tuple[Any, ...]] = []
	for name in EVENTS:
		connection.on(name, lambda *args, name=name: events.append((name, *args)))
	return events


@pytest.fixture(scope="session")
def credentials() -> Credentials:
	"""Self-signed credentials for `localhost`."""
	pytest.importorskip("cryptography")
	from cryptography import x509
	from cryptography.hazmat.primitives import hashes, serialization
	from cryptography.hazmat.primitives.asymmetric import ec
	from cryptography.x509.oid import NameOID

	key = ec.generate_private_key(ec.SECP256R1())
	name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "localhost")])
	now = datetime.datetime.now(datetime.timezone.utc)
	cert = (
		x509.CertificateBuilder()
		.subject_name(name)
		.issuer_name(name)
		.public_key(key.public_key())
		.serial_number(x509.random_serial_number())
		.not_valid_before(now - datetime.timedelta(days=1))
		.not_valid_after(now + datetime.timedelta(days=1))
		.sign(key, hashes.SHA256())
	)
	return Credentials(
		key=key.private_bytes(
			serialization.Encoding.PEM,
			serialization.PrivateFormat.PKCS8,
			serialization.NoEncryption(),
		),
		cert=cert.public_bytes(serialization.Encoding.PEM),
	)


# EOF
