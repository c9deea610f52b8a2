from .connection import Connection
from .server import run
from .utils.logging import info


# --
# # Echo
#
# A minimal line protocol: each command is echoed back, `DATA` reads a data
# block and reports its size, `STARTTLS` secures the connection when
# `LINEMODE_TLS_KEY` and `LINEMODE_TLS_CERT` are set, `QUIT` disconnects.
def echo(connection: Connection) -> None:
	size: int = 0

	def onCommand(name: str, payload: bytes) -> None:
		nonlocal size
		command = name.upper()
		if command == "QUIT":
			connection.send("221 Bye")
			connection.end()
		elif command == "DATA":
			size = 0
			connection.send("354 End data with <CR><LF>.<CR><LF>")
			connection.startDataMode()
		elif command == "STARTTLS":
			if connection.credentials is None:
				connection.send("454 TLS not available")
			else:
				connection.send("220 Ready to start TLS")
				connection.startTLS()
		else:
			connection.send(b"250 " + name.encode("latin-1") + b" " + payload)

	def onData(payload: bytes) -> None:
		nonlocal size
		size += len(payload)

	connection.on("command", onCommand)
	connection.on("data", onData)
	connection.on("ready", lambda: connection.send(f"250 Received {size} bytes"))
	connection.on("secure", lambda: info("Secured", Peer=connection.remoteAddress))
	connection.send("220 Linemode echo service ready")


def main() -> None:
	info("Starting Linemode in standalone echo server")
	run(echo)


if __name__ == "__main__":
	main()

# EOF
