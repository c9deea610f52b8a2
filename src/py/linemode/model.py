from enum import Enum
from typing import NamedTuple, TypeAlias

# -----------------------------------------------------------------------------
#
# STATES
#
# -----------------------------------------------------------------------------


class Mode(Enum):
	"""How the framing engine interprets incoming bytes."""

	Command = 0
	Data = 1


class UpgradeState(Enum):
	Plain = 0
	Upgrading = 1
	Secure = 2


# -----------------------------------------------------------------------------
#
# ATOMS
#
# -----------------------------------------------------------------------------


class Command(NamedTuple):
	"""A command line, split as the command token and the raw bytes that
	follow it on the line."""

	name: str
	payload: bytes


class Data(NamedTuple):
	"""A data block, or a fragment of it when the block spans several
	chunks."""

	payload: bytes


class Control(NamedTuple):
	id: str


# The data session is complete and command mode is restored
READY = Control("READY")

Atom: TypeAlias = Command | Data | Control

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class LinemodeError(Exception):
	pass


class ProtocolMisuse(LinemodeError):
	"""The application requested something the connection can't do in its
	current state. The connection is left untouched."""


class UpgradeError(LinemodeError):
	"""The transport could not be upgraded to a secure one."""


# EOF
