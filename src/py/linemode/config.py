from os import getenv
from .tls import Credentials
from .utils.io import DEFAULT_ENCODING  # NOQA: F401

PORT: int = int(getenv("PORT", 2525))

# Accessible from everywhere by default, as for a development environment
HOST: str = getenv("HOST", "0.0.0.0")  # nosec: B104

# Idle timeout in seconds, 0 disables it
TIMEOUT: float = float(getenv("LINEMODE_TIMEOUT", 0))

READSIZE: int = int(getenv("LINEMODE_READSIZE", 65_536))

# Logs the traffic of each connection
DEBUG: bool = getenv("LINEMODE_DEBUG", "0") == "1"

# PEM files for the default TLS credentials
TLS_KEY: str | None = getenv("LINEMODE_TLS_KEY")
TLS_CERT: str | None = getenv("LINEMODE_TLS_CERT")


def credentials() -> Credentials | None:
	"""Loads the default TLS credentials, when configured."""
	return Credentials.Load(TLS_KEY, TLS_CERT) if TLS_KEY and TLS_CERT else None


# EOF
