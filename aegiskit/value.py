"""Reply values of the Redis protocol and conversion of command arguments."""

from __future__ import annotations

from typing import Any

CLIENT_VERSION = 501


def to_buffer(item: Any) -> bytes:
    """Return the bytes sent on the wire for one command argument."""
    if item is None:
        return b""
    if isinstance(item, (bytes, bytearray, memoryview)):
        return bytes(item)
    if isinstance(item, str):
        return item.encode("utf-8")
    if isinstance(item, int) and not isinstance(item, bool):
        return str(item).encode("ascii")
    raise TypeError(f"cannot use {type(item).__name__} as a command argument")


class RedisValue:
    """A reply from a Redis server: null, integer, byte string or array.

    Any kind of value may carry the error flag, which marks an error reply.
    """

    __slots__ = ("_value", "_error")

    def __init__(self, value: Any = None, error: bool = False) -> None:
        if isinstance(value, RedisValue):
            value = value._value
        if value is None:
            stored: Any = None
        elif isinstance(value, bool):
            raise TypeError("a boolean is not a Redis value")
        elif isinstance(value, int):
            stored = value
        elif isinstance(value, str):
            stored = value.encode("utf-8")
        elif isinstance(value, (bytes, bytearray, memoryview)):
            stored = bytes(value)
        elif isinstance(value, (list, tuple)):
            stored = [v if isinstance(v, RedisValue) else RedisValue(v) for v in value]
        else:
            raise TypeError(f"cannot hold {type(value).__name__} in a Redis value")
        self._value = stored
        self._error = bool(error)

    @property
    def value(self) -> Any:
        """The raw held value: None, int, bytes or list of RedisValue."""
        return self._value

    def to_bytes(self) -> bytes:
        """The held byte string, or empty bytes for any other kind."""
        return self._value if isinstance(self._value, bytes) else b""

    def to_string(self) -> str:
        """The held byte string as text, or an empty string for any other kind."""
        return self.to_bytes().decode("utf-8", "surrogateescape")

    def to_int(self) -> int:
        """The held integer, or 0 for any other kind."""
        return self._value if self.is_int() else 0

    def to_array(self) -> list[RedisValue]:
        """A copy of the held array, or an empty list for any other kind."""
        return list(self._value) if isinstance(self._value, list) else []

    def inspect(self) -> str:
        """A readable dump of the value."""
        if self._error:
            return "error: " + self.to_string()
        if self.is_null():
            return "(null)"
        if self.is_int():
            return str(self._value)
        if self.is_string():
            return self.to_string()
        return "[" + ", ".join(item.inspect() for item in self._value) + "]"

    def is_ok(self) -> bool:
        return not self._error

    def is_error(self) -> bool:
        return self._error

    def is_null(self) -> bool:
        return self._value is None

    def is_int(self) -> bool:
        return isinstance(self._value, int)

    def is_array(self) -> bool:
        return isinstance(self._value, list)

    def is_string(self) -> bool:
        return isinstance(self._value, bytes)

    def is_byte_array(self) -> bool:
        return self.is_string()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RedisValue):
            return NotImplemented
        return self._value == other._value

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        flag = ", error=True" if self._error else ""
        return f"RedisValue({self._value!r}{flag})"