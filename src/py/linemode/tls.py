import os
import ssl
import tempfile
from functools import lru_cache
from pathlib import Path
from typing import NamedTuple, TypeAlias

from .model import UpgradeError
from .transport import Transport
from .utils.io import asBytes

# -----------------------------------------------------------------------------
#
# CREDENTIALS
#
# -----------------------------------------------------------------------------


class Credentials(NamedTuple):
	"""PEM encoded private key and certificate (chain)."""

	key: str | bytes
	cert: str | bytes

	@staticmethod
	def Load(key: str | Path, cert: str | Path) -> "Credentials":
		"""Reads the credentials from the given PEM files."""
		return Credentials(Path(key).read_bytes(), Path(cert).read_bytes())


TCredentials: TypeAlias = Credentials | ssl.SSLContext | None


@lru_cache(maxsize=16)
def _serverContext(key: bytes, cert: bytes) -> ssl.SSLContext:
	ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
	# NOTE: `load_cert_chain` only takes paths, so the PEM material goes
	# through a private temporary directory.
	with tempfile.TemporaryDirectory(prefix="linemode-") as path:
		key_path = os.path.join(path, "key.pem")
		cert_path = os.path.join(path, "cert.pem")
		Path(key_path).write_bytes(key)
		Path(cert_path).write_bytes(cert)
		try:
			ctx.load_cert_chain(cert_path, key_path)
		except (ssl.SSLError, ValueError) as e:
			raise UpgradeError(f"Invalid TLS credentials: {e}") from e
	return ctx


def context(credentials: TCredentials) -> ssl.SSLContext:
	"""Returns the server side TLS context for the credentials. Contexts are
	passed through as-is."""
	if isinstance(credentials, ssl.SSLContext):
		return credentials
	elif credentials is None:
		raise UpgradeError("No TLS credentials available to secure the connection")
	else:
		return _serverContext(asBytes(credentials.key), asBytes(credentials.cert))


# -----------------------------------------------------------------------------
#
# UPGRADE
#
# -----------------------------------------------------------------------------


async def upgradeTransport(transport: Transport, credentials: TCredentials) -> Transport:
	"""Negotiates TLS over the given transport, returning the secure
	transport. Failures are raised as `UpgradeError`."""
	ctx = context(credentials)
	try:
		return await transport.upgrade(ctx)
	except (ssl.SSLError, OSError) as e:
		raise UpgradeError(f"TLS handshake failed: {e}") from e


# EOF
