"""
Mail Sink Example

This demonstrates an SMTP shaped service that accepts every message and
stores it as an `.eml` file.
Features shown:
- Command handling with a per-connection session
- Data mode with the default `CRLF . CRLF` terminator
- Dot-unstuffing of the received data block
- In-band `STARTTLS` when credentials are configured
- Linemode logging for nicer output

Usage:
    LINEMODE_TLS_KEY=key.pem LINEMODE_TLS_CERT=cert.pem python mailsink.py

Test with:
    swaks --server localhost:2525 --to someone@example.com
    swaks --server localhost:2525 --to someone@example.com --tls
"""

import re
import time
from pathlib import Path

from linemode import Connection, run
from linemode.utils.logging import event, info

OUTPUT = Path("mailsink")
RE_STUFFED = re.compile(rb"^\.", re.MULTILINE)


class Session:
	def __init__(self, connection: Connection) -> None:
		self.connection = connection
		self.sender: bytes | None = None
		self.recipients: list[bytes] = []
		self.data: list[bytes] = []
		connection.on("command", self.onCommand)
		connection.on("data", self.data.append)
		connection.on("ready", self.onMessage)
		connection.on("end", lambda: info("Client left", Peer=connection.remoteAddress))
		connection.send("220 localhost Mail sink ready")

	def onCommand(self, name: str, payload: bytes) -> None:
		command = name.upper()
		if command in ("HELO", "EHLO"):
			if command == "EHLO" and self.connection.credentials:
				self.connection.send("250-localhost")
				self.connection.send("250 STARTTLS")
			else:
				self.connection.send("250 localhost")
		elif command == "STARTTLS":
			if self.connection.credentials is None:
				self.connection.send("454 TLS not available")
			else:
				self.connection.send("220 Ready to start TLS")
				self.connection.startTLS()
		elif command == "MAIL":
			self.sender = payload.partition(b":")[2].strip()
			self.recipients = []
			self.connection.send("250 OK")
		elif command == "RCPT":
			self.recipients.append(payload.partition(b":")[2].strip())
			self.connection.send("250 OK")
		elif command == "DATA":
			if not self.recipients:
				self.connection.send("503 No recipients")
			else:
				self.data.clear()
				self.connection.send("354 End data with <CR><LF>.<CR><LF>")
				self.connection.startDataMode()
		elif command in ("RSET", "NOOP"):
			self.connection.send("250 OK")
		elif command == "QUIT":
			self.connection.send("221 Bye")
			self.connection.end()
		else:
			self.connection.send("502 Command not implemented")

	def onMessage(self) -> None:
		message = RE_STUFFED.sub(b"", b"".join(self.data)) + b"\r\n"
		OUTPUT.mkdir(exist_ok=True)
		path = OUTPUT / f"{time.time_ns()}.eml"
		path.write_bytes(message)
		event(
			"Message",
			len(message),
			From=self.sender,
			To=self.recipients,
			Path=str(path),
		)
		self.connection.send("250 Queued")


if __name__ == "__main__":
	info("Starting mail sink", Output=str(OUTPUT))
	run(Session, timeout=300)

# EOF
