import asyncio
import ssl
from typing import Any, Callable

import pytest

from linemode.connection import Connection
from linemode.model import UpgradeError
from linemode.server import Server, ServerOptions

HOST = "127.0.0.1"


async def start(handler: Callable[[Connection], Any], **options: Any) -> Server:
	server = Server(ServerOptions(host=HOST, port=0, **options))
	server.on("connection", handler)
	await server.listen()
	assert server.isListening
	return server


def future() -> asyncio.Future:
	return asyncio.get_running_loop().create_future()


def test_receive_command():
	async def main():
		received = future()

		def onConnection(connection: Connection) -> None:
			connection.on(
				"command", lambda name, payload: received.set_result((name, payload))
			)

		server = await start(onConnection)
		_, writer = await asyncio.open_connection(HOST, server.port)
		writer.write(b"MAIL TO:\r\n")
		result = await asyncio.wait_for(received, 2)
		writer.close()
		await server.close()
		return result

	assert asyncio.run(main()) == ("MAIL", b"TO:")


def test_send_to_client():
	async def main():
		server = await start(lambda connection: connection.send("HELLO"))
		reader, writer = await asyncio.open_connection(HOST, server.port)
		line = await asyncio.wait_for(reader.readline(), 2)
		writer.close()
		await server.close()
		return line

	assert asyncio.run(main()) == b"HELLO\r\n"


def test_data_mode():
	async def main():
		ready = future()
		chunks: list[bytes] = []

		def onConnection(connection: Connection) -> None:
			connection.startDataMode()
			connection.on("data", chunks.append)
			connection.on("ready", lambda: ready.set_result(True))

		server = await start(onConnection)
		_, writer = await asyncio.open_connection(HOST, server.port)
		writer.write(b"tere\r\nvana kere\r\n.\r\n")
		await asyncio.wait_for(ready, 2)
		writer.close()
		await server.close()
		return b"".join(chunks)

	assert asyncio.run(main()) == b"tere\r\nvana kere"


def test_client_disconnects():
	async def main():
		ended = future()
		server = await start(
			lambda connection: connection.on("end", lambda: ended.set_result(True))
		)
		_, writer = await asyncio.open_connection(HOST, server.port)
		writer.close()
		await writer.wait_closed()
		result = await asyncio.wait_for(ended, 2)
		await server.close()
		return result

	assert asyncio.run(main())


def test_server_ends_connection():
	async def main():
		ended = future()

		def onConnection(connection: Connection) -> None:
			connection.on("end", lambda: ended.set_result(True))
			connection.send("221 Bye")
			connection.end()

		server = await start(onConnection)
		reader, writer = await asyncio.open_connection(HOST, server.port)
		data = await asyncio.wait_for(reader.read(), 2)
		await asyncio.wait_for(ended, 2)
		writer.close()
		await server.close()
		return data

	assert asyncio.run(main()) == b"221 Bye\r\n"


def test_timeout():
	async def main():
		timedout = future()
		server = await start(
			lambda connection: connection.on("timeout", lambda: timedout.set_result(True)),
			timeout=0.1,
		)
		reader, writer = await asyncio.open_connection(HOST, server.port)
		await asyncio.wait_for(timedout, 2)
		data = await asyncio.wait_for(reader.read(), 2)
		writer.close()
		await server.close()
		return data

	assert asyncio.run(main()) == b""


def test_close_ends_connections():
	async def main():
		connected = future()
		server = await start(lambda connection: connected.set_result(connection))
		reader, writer = await asyncio.open_connection(HOST, server.port)
		connection = await asyncio.wait_for(connected, 2)
		await asyncio.wait_for(server.close(), 2)
		data = await asyncio.wait_for(reader.read(), 2)
		writer.close()
		return connection, data

	connection, data = asyncio.run(main())
	assert data == b""
	assert not connection.isAlive


def test_listen_twice_fails():
	async def main():
		server = await start(lambda connection: None)
		try:
			with pytest.raises(OSError):
				await Server(ServerOptions(host=HOST)).listen(server.port)
		finally:
			await server.close()

	asyncio.run(main())


def test_starttls(credentials):
	async def main():
		received = future()

		def onConnection(connection: Connection) -> None:
			def onCommand(name: str, payload: bytes) -> None:
				if name == "STARTTLS":
					connection.send("220 Go ahead")
					connection.startTLS()
				else:
					received.set_result((name, payload, connection.isSecure))

			connection.on("command", onCommand)
			connection.on("secure", lambda: connection.send("TEST"))

		server = await start(onConnection, credentials=credentials)
		reader, writer = await asyncio.open_connection(HOST, server.port)
		writer.write(b"STARTTLS\r\n")
		assert await asyncio.wait_for(reader.readline(), 2) == b"220 Go ahead\r\n"
		context = ssl.create_default_context()
		context.check_hostname = False
		context.verify_mode = ssl.CERT_NONE
		await asyncio.wait_for(writer.start_tls(context, server_hostname="localhost"), 5)
		line = await asyncio.wait_for(reader.readline(), 2)
		writer.write(b"NOOP now\r\n")
		result = await asyncio.wait_for(received, 2)
		writer.close()
		await server.close()
		return line, result

	line, result = asyncio.run(main())
	assert line == b"TEST\r\n"
	assert result == ("NOOP", b"now", True)


def test_starttls_handshake_failure(credentials):
	async def main():
		failed = future()

		def onCommand(connection: Connection) -> None:
			connection.send("220 Go ahead")
			connection.startTLS()

		def onConnection(connection: Connection) -> None:
			connection.on("command", lambda name, payload: onCommand(connection))
			connection.on("error", failed.set_result)

		server = await start(onConnection, credentials=credentials)
		reader, writer = await asyncio.open_connection(HOST, server.port)
		writer.write(b"STARTTLS\r\n")
		assert await asyncio.wait_for(reader.readline(), 2) == b"220 Go ahead\r\n"
		# Not a TLS client hello
		writer.write(b"GARBAGE GARBAGE GARBAGE\r\n")
		error = await asyncio.wait_for(failed, 5)
		writer.close()
		await server.close()
		return error

	assert isinstance(asyncio.run(main()), UpgradeError)


# EOF
