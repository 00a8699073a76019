"""Blocking Redis client: connection state, command encoding and request/reply."""

from __future__ import annotations

import enum
import socket
from collections.abc import Callable, Iterable
from typing import Any

from aegiskit.parser import ParseResult, RedisParser
from aegiskit.value import RedisValue, to_buffer

__all__ = [
    "ClientState",
    "RedisClientError",
    "RedisSyncClient",
    "default_error_handler",
    "make_command",
]

_READ_SIZE = 4096
_CRLF = b"\r\n"


class ClientState(enum.Enum):
    """Connection state of a client."""

    UNCONNECTED = "Unconnected"
    CONNECTING = "Connecting"
    CONNECTED = "Connected"
    SUBSCRIBED = "Subscribed"
    CLOSED = "Closed"

    def __str__(self) -> str:
        return self.value


class RedisClientError(RuntimeError):
    """Raised by the default error handler."""


def default_error_handler(message: str) -> None:
    """Raise every reported error as :class:`RedisClientError`."""
    raise RedisClientError(message)


def make_command(items: Iterable[Any]) -> bytes:
    """Encode a command and its arguments as a Redis protocol array of bulk strings."""
    buffers = [to_buffer(item) for item in items]
    parts = [b"*", str(len(buffers)).encode("ascii"), _CRLF]
    for data in buffers:
        parts += [b"$", str(len(data)).encode("ascii"), _CRLF, data, _CRLF]
    return b"".join(parts)


class RedisSyncClient:
    """A client that sends one command and waits for its reply.

    Problems are passed to the error handler; the default one raises
    :class:`RedisClientError`. When the handler returns, the failing
    command gives a null :class:`RedisValue`.
    """

    def __init__(self, error_handler: Callable[[str], None] | None = None) -> None:
        self.error_handler: Callable[[str], None] = error_handler or default_error_handler
        self._socket: socket.socket | None = None
        self._parser = RedisParser()
        self._state = ClientState.UNCONNECTED

    def connect(self, host: str, port: int) -> None:
        """Open the connection; connection failures raise :class:`OSError`."""
        sock = socket.create_connection((host, int(port)))
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            sock.close()
            raise
        if self._socket is not None:
            self._socket.close()
        self._socket = sock
        self._parser = RedisParser()
        self._state = ClientState.CONNECTED

    def state(self) -> ClientState:
        return self._state

    def command(self, cmd: str, *args: Any) -> RedisValue:
        """Run ``cmd`` with ``args`` on the server and return its reply."""
        if self._state is not ClientState.CONNECTED or self._socket is None:
            self.error_handler(f"RedisClient::command called with invalid state {self._state}")
            return RedisValue()

        try:
            self._socket.sendall(make_command([cmd, *args]))
        except OSError as exc:
            self.error_handler(str(exc))
            return RedisValue()

        while True:
            try:
                chunk = self._socket.recv(_READ_SIZE)
            except OSError as exc:
                self.error_handler(str(exc))
                return RedisValue()
            if not chunk:
                self.error_handler("[RedisClient] connection closed by server")
                return RedisValue()

            view = memoryview(chunk)
            while view:
                consumed, outcome = self._parser.parse(view)
                if outcome is ParseResult.COMPLETED:
                    return self._parser.result()
                if outcome is ParseResult.ERROR:
                    self.error_handler("[RedisClient] Parser error")
                    return RedisValue()
                if consumed == 0:
                    break
                view = view[consumed:]

    def close(self) -> None:
        """Shut the connection down; safe to call more than once."""
        if self._state is ClientState.CLOSED:
            return
        if self._socket is not None:
            try:
                self._socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            self._socket.close()
            self._socket = None
        self._state = ClientState.CLOSED

    def __enter__(self) -> RedisSyncClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()