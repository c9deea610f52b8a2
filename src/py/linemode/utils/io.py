DEFAULT_ENCODING: str = "utf8"
# Command tokens are decoded byte for byte, this never fails.
COMMAND_ENCODING: str = "latin-1"
EOL: bytes = b"\r\n"


def asBytes(value: str | bytes | bytearray | None) -> bytes:
	if isinstance(value, bytes):
		return value
	elif isinstance(value, bytearray):
		return bytes(value)
	elif isinstance(value, str):
		return bytes(value, DEFAULT_ENCODING)
	elif value is None:
		return b""
	else:
		raise ValueError(f"Expected bytes or str, got: {value}")


def asLine(value: str | bytes | bytearray | None) -> bytes:
	"""Returns the value as bytes with the line terminator appended. Bytes
	are kept as-is, strings are encoded."""
	return asBytes(value) + EOL


class LineParser:
	"""Splits a stream of chunks on `eol`, holding the incomplete trailing
	line (the remainder) between calls to `feed`."""

	__slots__ = ["buffer", "eol", "eolsize", "offset"]

	def __init__(self, eol: bytes = EOL) -> None:
		self.buffer: bytearray = bytearray()
		self.offset: int = 0
		self.eol: bytes = eol
		self.eolsize: int = len(eol)

	@property
	def remainder(self) -> bytes:
		return bytes(self.buffer)

	def reset(self, eol: bytes = EOL) -> "LineParser":
		self.buffer.clear()
		self.offset = 0
		self.eol = eol
		self.eolsize = len(eol)
		return self

	def take(self) -> bytes:
		"""Returns the held bytes and clears them."""
		res = bytes(self.buffer)
		self.buffer.clear()
		self.offset = 0
		return res

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bytes | None, int]:
		"""Returns the matching line and how many bytes were read in chunk from start. When line is None,
		then the whole chunk has been processed and is held in the buffer."""
		pos = len(self.buffer)
		self.buffer += chunk[start:]
		end = self.buffer.find(self.eol, self.offset)
		if end == -1:
			# The next search only needs to look at the new bytes, minus a
			# possibly split terminator.
			self.offset = max(0, len(self.buffer) - self.eolsize + 1)
			return None, len(chunk) - start
		else:
			line = bytes(self.buffer[:end])
			# The bytes after the line are not consumed, the caller feeds them
			# again from the returned offset.
			self.buffer.clear()
			self.offset = 0
			return line, (end - pos) + self.eolsize


# EOF
