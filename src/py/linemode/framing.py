import re
from abc import ABC, abstractmethod
from typing import Generator, Iterator, TypeAlias

from .model import READY, Atom, Command, Data, Mode
from .utils.io import COMMAND_ENCODING, EOL, LineParser, asBytes

# --
# # Framing
#
# Turns a stream of arbitrarily split chunks into command lines (command
# mode) and raw payload (data mode). The `Framer` is fed chunk by chunk and
# yields atoms lazily: the consumer is expected to handle each atom before
# pulling the next one, which is what lets a `command` handler switch to
# data mode and have the rest of the very same chunk treated as data.

RE_COMMAND: re.Pattern[bytes] = re.compile(rb"\s*(\S+)\s?")

# The end of a data block, also recognised without the leading EOL when the
# block is empty.
DEFAULT_TERMINATOR: bytes = EOL + b"." + EOL


def parseCommand(line: bytes) -> Command | None:
	"""Splits the line into the command token and its raw payload, returns
	`None` for empty or blank lines."""
	match = RE_COMMAND.match(line)
	if not match:
		return None
	return Command(match.group(1).decode(COMMAND_ENCODING), line[match.end() :])


# -----------------------------------------------------------------------------
#
# TERMINATORS
#
# -----------------------------------------------------------------------------


class Terminator(ABC):
	"""Detects the end of a data block. Both methods take the bytes held
	since the last emitted fragment (`buffer`) and the last byte emitted in
	the current block (`context`), which is empty at the start of a block."""

	@abstractmethod
	def search(self, buffer: bytes, context: bytes) -> tuple[int, int] | None:
		"""Returns the start and end offsets of the terminator in the buffer."""
		...

	@abstractmethod
	def holdback(self, buffer: bytes, context: bytes) -> int:
		"""Returns how many trailing bytes of the buffer may still be part of
		a terminator, and must not be emitted yet."""
		...


class LiteralTerminator(Terminator):
	__slots__ = ["sequence", "leading"]

	def __init__(self, sequence: bytes) -> None:
		if not sequence:
			raise ValueError("Data terminator can't be empty")
		self.sequence: bytes = sequence
		self.leading: bytes | None = (
			sequence[len(EOL) :]
			if sequence.startswith(EOL) and len(sequence) > len(EOL)
			else None
		)

	def search(self, buffer: bytes, context: bytes) -> tuple[int, int] | None:
		if not context and self.leading and buffer.startswith(self.leading):
			return 0, len(self.leading)
		i = buffer.find(self.sequence)
		return None if i == -1 else (i, i + len(self.sequence))

	def holdback(self, buffer: bytes, context: bytes) -> int:
		n = len(buffer)
		if (
			not context
			and self.leading
			and n < len(self.leading)
			and self.leading.startswith(buffer)
		):
			return n
		for k in range(min(len(self.sequence) - 1, n), 0, -1):
			if buffer.endswith(self.sequence[:k]):
				return k
		return 0

	def __repr__(self) -> str:
		return f"LiteralTerminator({self.sequence!r})"


class PatternTerminator(Terminator):
	"""A regular expression terminator. A `^` only matches at the start of
	the data block, and zero-width matches are ignored. Terminators are
	expected to start on a line boundary, as the bytes after the last EOL
	are held back until the line completes."""

	__slots__ = ["pattern"]

	def __init__(self, pattern: "re.Pattern[bytes] | re.Pattern[str]") -> None:
		if isinstance(pattern.pattern, str):
			pattern = re.compile(
				pattern.pattern.encode(COMMAND_ENCODING), pattern.flags & ~re.UNICODE
			)
		self.pattern: re.Pattern[bytes] = pattern  # type: ignore[assignment]

	def search(self, buffer: bytes, context: bytes) -> tuple[int, int] | None:
		# The context byte keeps `^` and lookbehinds from matching at the
		# start of the buffer once the block has started.
		ctx = context[-1:]
		match = self.pattern.search(ctx + buffer, len(ctx))
		if match is None or match.end() == match.start():
			return None
		return match.start() - len(ctx), match.end() - len(ctx)

	def holdback(self, buffer: bytes, context: bytes) -> int:
		i = buffer.rfind(EOL)
		if i != -1:
			return len(buffer) - i
		elif not context:
			return len(buffer)
		elif buffer.endswith(EOL[:1]):
			return 1
		else:
			return 0

	def __repr__(self) -> str:
		return f"PatternTerminator({self.pattern.pattern!r})"


DEFAULT: LiteralTerminator = LiteralTerminator(DEFAULT_TERMINATOR)

TerminatorValue: TypeAlias = (
	Terminator | re.Pattern[bytes] | re.Pattern[str] | bytes | str | None
)


def terminator(value: TerminatorValue = None) -> Terminator:
	"""Normalizes the value to a terminator: `None` is the default `CRLF .
	CRLF`, strings and bytes are matched literally and compiled patterns as
	regular expressions."""
	if value is None:
		return DEFAULT
	elif isinstance(value, Terminator):
		return value
	elif isinstance(value, re.Pattern):
		return PatternTerminator(value)
	elif isinstance(value, (bytes, bytearray, str)):
		return LiteralTerminator(asBytes(value))
	else:
		raise ValueError(f"Unsupported data terminator: {value!r}")


# -----------------------------------------------------------------------------
#
# FRAMER
#
# -----------------------------------------------------------------------------


class Framer:
	"""The mode state machine of a connection. Command mode splits lines and
	parses commands, data mode aggregates payload until the terminator."""

	__slots__ = ["mode", "terminator", "lines", "held", "context"]

	def __init__(self) -> None:
		self.mode: Mode = Mode.Command
		self.terminator: Terminator = DEFAULT
		# The remainder in command mode
		self.lines: LineParser = LineParser()
		# The remainder in data mode
		self.held: bytes = b""
		# Last byte emitted in the current data block
		self.context: bytes = b""

	@property
	def remainder(self) -> bytes:
		return self.lines.remainder if self.mode is Mode.Command else self.held

	def startDataMode(self, value: TerminatorValue = None) -> "Framer":
		"""Routes the next bytes to the data aggregator, until `value` (or
		the default terminator) is found."""
		self.terminator = terminator(value)
		if self.mode is not Mode.Data:
			self.mode = Mode.Data
			# A partial line is the beginning of the data block
			self.held = self.lines.take()
			self.context = b""
		return self

	def reset(self) -> "Framer":
		self.mode = Mode.Command
		self.terminator = DEFAULT
		self.lines.reset()
		self.held = b""
		self.context = b""
		return self

	def feed(self, chunk: bytes) -> Iterator[Atom]:
		rest: bytes = bytes(chunk)
		# Each step returns the bytes left over after a mode switch
		while rest:
			if self.mode is Mode.Command:
				rest = yield from self._feedCommand(rest)
			else:
				rest = yield from self._feedData(rest)

	def _feedCommand(self, chunk: bytes) -> Generator[Atom, None, bytes]:
		offset: int = 0
		size: int = len(chunk)
		while offset < size:
			line, read = self.lines.feed(chunk, offset)
			offset += read
			if line is None:
				break
			command = parseCommand(line)
			if command:
				yield command
				if self.mode is not Mode.Command:
					return chunk[offset:]
		return b""

	def _feedData(self, chunk: bytes) -> Generator[Atom, None, bytes]:
		buffer: bytes = self.held + chunk if self.held else chunk
		self.held = b""
		match = self.terminator.search(buffer, self.context)
		if match:
			start, end = match
			self.mode = Mode.Command
			self.terminator = DEFAULT
			self.context = b""
			if start:
				yield Data(buffer[:start])
			yield READY
			return buffer[end:]
		else:
			n: int = len(buffer) - self.terminator.holdback(buffer, self.context)
			self.held = buffer[n:]
			if n > 0:
				self.context = buffer[n - 1 : n]
				yield Data(buffer[:n])
			return b""

	def __repr__(self) -> str:
		return f"Framer({self.mode.name}, {self.terminator}, {self.remainder!r})"


# EOF
