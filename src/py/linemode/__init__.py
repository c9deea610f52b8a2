from .model import (
	Command,
	Data,
	Mode,
	UpgradeState,
	LinemodeError,
	ProtocolMisuse,
	UpgradeError,
)  # NOQA: F401
from .framing import Framer, terminator  # NOQA: F401
from .connection import Connection  # NOQA: F401
from .tls import Credentials  # NOQA: F401
from .server import Server, ServerOptions, run  # NOQA: F401


# EOF
