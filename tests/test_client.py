import socket
import threading
import time

import pytest

from aegiskit.client import (
    ClientState,
    RedisClientError,
    RedisSyncClient,
    default_error_handler,
    make_command,
)


class FakeServer:
    """Accepts one connection and answers each request with a list of chunks."""

    def __init__(self, replies):
        self.replies = replies
        self.received = []
        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.bind(("127.0.0.1", 0))
        self._listener.listen(1)
        self.port = self._listener.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def _serve(self):
        conn, _ = self._listener.accept()
        with conn:
            for chunks in self.replies:
                data = conn.recv(65536)
                if not data:
                    return
                self.received.append(data)
                for chunk in chunks:
                    conn.sendall(chunk)
                    time.sleep(0.02)
            time.sleep(0.1)

    def __enter__(self):
        self._thread.start()
        return self

    def __exit__(self, *exc):
        self._thread.join(timeout=5)
        self._listener.close()


def test_make_command_wire_bytes():
    assert make_command(["SET", "k", "v"]) == b"*3\r\n$3\r\nSET\r\n$1\r\nk\r\n$1\r\nv\r\n"


def test_make_command_integer_and_bytes_arguments():
    assert make_command(["EXPIRE", b"key", 60]) == b"*3\r\n$6\r\nEXPIRE\r\n$3\r\nkey\r\n$2\r\n60\r\n"


def test_make_command_empty_argument():
    assert make_command(["GET", ""]) == b"*2\r\n$3\r\nGET\r\n$0\r\n\r\n"


def test_default_error_handler_raises():
    with pytest.raises(RedisClientError, match="boom"):
        default_error_handler("boom")


def test_state_names():
    client = RedisSyncClient()
    assert str(client.state()) == "Unconnected"
    client.close()
    assert str(client.state()) == "Closed"


def test_command_before_connect_raises_with_default_handler():
    client = RedisSyncClient()
    assert client.state() is ClientState.UNCONNECTED
    with pytest.raises(RedisClientError, match="Unconnected"):
        client.command("PING")


def test_command_before_connect_with_custom_handler_returns_null():
    errors = []
    client = RedisSyncClient(errors.append)
    result = client.command("PING")
    assert result.is_null()
    assert len(errors) == 1
    assert "invalid state" in errors[0]


def test_simple_string_reply_and_request_bytes():
    with FakeServer([[b"+OK\r\n"]]) as server:
        with RedisSyncClient() as client:
            client.connect("127.0.0.1", server.port)
            assert client.state() is ClientState.CONNECTED
            result = client.command("SET", "key", "value")
            assert result.is_string()
            assert result.to_string() == "OK"
    assert server.received == [make_command(["SET", "key", "value"])]


def test_reply_split_across_chunks():
    chunks = [b"$11\r\nhel", b"lo wor", b"ld\r", b"\n"]
    with FakeServer([chunks]) as server:
        with RedisSyncClient() as client:
            client.connect("127.0.0.1", server.port)
            result = client.command("GET", "greeting")
    assert result.to_bytes() == b"hello world"


def test_array_reply():
    with FakeServer([[b"*2\r\n$1\r\na\r\n:5\r\n"]]) as server:
        with RedisSyncClient() as client:
            client.connect("127.0.0.1", server.port)
            result = client.command("SMEMBERS", "s")
    items = result.to_array()
    assert [items[0].to_string(), items[1].to_int()] == ["a", 5]


def test_error_reply_is_flagged():
    with FakeServer([[b"-ERR wrong\r\n"]]) as server:
        with RedisSyncClient() as client:
            client.connect("127.0.0.1", server.port)
            result = client.command("BAD")
    assert result.is_error()
    assert result.to_string() == "ERR wrong"


def test_several_commands_in_sequence():
    with FakeServer([[b":1\r\n"], [b":2\r\n"]]) as server:
        with RedisSyncClient() as client:
            client.connect("127.0.0.1", server.port)
            first = client.command("INCR", "n")
            second = client.command("INCR", "n")
    assert (first.to_int(), second.to_int()) == (1, 2)


def test_protocol_error_reported():
    errors = []
    with FakeServer([[b"?bad\r\n"]]) as server:
        client = RedisSyncClient(errors.append)
        client.connect("127.0.0.1", server.port)
        result = client.command("PING")
        client.close()
    assert result.is_null()
    assert errors == ["[RedisClient] Parser error"]


def test_close_then_command_reports_closed_state():
    with FakeServer([]) as server:
        client = RedisSyncClient()
        client.connect("127.0.0.1", server.port)
        client.close()
        assert client.state() is ClientState.CLOSED
        client.close()
        assert client.state() is ClientState.CLOSED
        with pytest.raises(RedisClientError, match="Closed"):
            client.command("PING")


def test_connect_refused_keeps_state():
    probe = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    client = RedisSyncClient()
    with pytest.raises(OSError):
        client.connect("127.0.0.1", port)
    assert client.state() is ClientState.UNCONNECTED