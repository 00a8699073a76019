"""Incremental parser for Redis protocol replies."""

from __future__ import annotations

import enum

from aegiskit.value import RedisValue

__all__ = ["ParseResult", "RedisParser", "buf_to_long"]


class ParseResult(enum.Enum):
    """Outcome of feeding one chunk of bytes to the parser."""

    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    ERROR = "error"


class _State(enum.Enum):
    START = enum.auto()
    STRING = enum.auto()
    STRING_LF = enum.auto()
    ERROR_STRING = enum.auto()
    ERROR_LF = enum.auto()
    INTEGER = enum.auto()
    INTEGER_LF = enum.auto()
    BULK_SIZE = enum.auto()
    BULK_SIZE_LF = enum.auto()
    BULK = enum.auto()
    BULK_CR = enum.auto()
    BULK_LF = enum.auto()
    ARRAY_SIZE = enum.auto()
    ARRAY_SIZE_LF = enum.auto()


_REPLY_STATES = {
    ord("+"): _State.STRING,
    ord("-"): _State.ERROR_STRING,
    ord(":"): _State.INTEGER,
    ord("$"): _State.BULK_SIZE,
    ord("*"): _State.ARRAY_SIZE,
}

_NUMBER_BYTES = frozenset(b"0123456789-")
_CR = ord("\r")
_LF = ord("\n")

# Simple and error strings take only printable ASCII; in every other state
# a byte that does not fit ends the reply with an error.
_NUMBER_STATES = {
    _State.INTEGER: _State.INTEGER_LF,
    _State.BULK_SIZE: _State.BULK_SIZE_LF,
    _State.ARRAY_SIZE: _State.ARRAY_SIZE_LF,
}
_TEXT_STATES = {
    _State.STRING: _State.STRING_LF,
    _State.ERROR_STRING: _State.ERROR_LF,
}


def _is_text(byte: int) -> bool:
    return 32 <= byte <= 126


def buf_to_long(data: bytes) -> int:
    """Convert the digits of a size or integer line, with an optional leading minus.

    Empty input, or a lone minus sign, gives 0.
    """
    if not data:
        return 0
    negative = data[0] == ord("-")
    digits = data[1:] if negative else data
    value = 0
    for byte in digits:
        value = value * 10 + (byte - ord("0"))
    return -value if negative else value


class RedisParser:
    """Parses replies from a byte stream that may arrive in pieces.

    ``parse`` takes the next piece and tells how many bytes it used and
    whether a reply is complete; a completed reply is taken with ``result``.
    """

    def __init__(self) -> None:
        self._state = _State.START
        self._bulk_size = 0
        self._buf = bytearray()
        self._array_stack: list[int] = []
        self._value_stack: list[RedisValue] = []

    def parse(self, data: bytes | bytearray | memoryview) -> tuple[int, ParseResult]:
        """Feed bytes; return the number of bytes used and the outcome."""
        view = memoryview(data).cast("B")
        if self._array_stack:
            return self._parse_array(view)
        return self._parse_chunk(view)

    def result(self) -> RedisValue:
        """Take the last completed reply; a null value when there is none."""
        if self._value_stack:
            return self._value_stack.pop()
        return RedisValue()

    def _fail(self, position: int) -> tuple[int, ParseResult]:
        self._state = _State.START
        return position + 1, ParseResult.ERROR

    def _complete(self, value: RedisValue, position: int) -> tuple[int, ParseResult]:
        self._state = _State.START
        self._value_stack.append(value)
        return position + 1, ParseResult.COMPLETED

    def _parse_array(self, data: memoryview) -> tuple[int, ParseResult]:
        array_size = self._array_stack.pop()
        items = self._value_stack.pop().to_array()
        position = 0

        if self._array_stack:
            consumed, outcome = self._parse_array(data)
            if outcome is not ParseResult.COMPLETED:
                self._value_stack.append(RedisValue(items))
                self._array_stack.append(array_size)
                return consumed, outcome
            items.append(self._value_stack.pop())
            array_size -= 1
            position += consumed

        if position == len(data):
            self._value_stack.append(RedisValue(items))
            if array_size == 0:
                return position, ParseResult.COMPLETED
            self._array_stack.append(array_size)
            return position, ParseResult.INCOMPLETE

        for index in range(array_size):
            consumed, outcome = self.parse(data[position:])
            position += consumed
            if outcome is ParseResult.ERROR:
                return position, ParseResult.ERROR
            if outcome is ParseResult.INCOMPLETE:
                self._value_stack.append(RedisValue(items))
                self._array_stack.append(array_size - index)
                return position, ParseResult.INCOMPLETE
            items.append(self._value_stack.pop())

        self._value_stack.append(RedisValue(items))
        return position, ParseResult.COMPLETED

    def _parse_chunk(self, data: memoryview) -> tuple[int, ParseResult]:
        size = len(data)
        position = 0

        while position < size:
            byte = data[position]
            state = self._state

            if state is _State.START:
                self._buf.clear()
                next_state = _REPLY_STATES.get(byte)
                if next_state is None:
                    return self._fail(position)
                if next_state is _State.BULK_SIZE:
                    self._bulk_size = 0
                self._state = next_state

            elif state in _TEXT_STATES:
                if byte == _CR:
                    self._state = _TEXT_STATES[state]
                elif _is_text(byte):
                    self._buf.append(byte)
                else:
                    return self._fail(position)

            elif state in _NUMBER_STATES:
                if byte == _CR:
                    if not self._buf:
                        return self._fail(position)
                    self._state = _NUMBER_STATES[state]
                elif byte in _NUMBER_BYTES:
                    self._buf.append(byte)
                else:
                    return self._fail(position)

            elif state is _State.STRING_LF:
                if byte != _LF:
                    return self._fail(position)
                return self._complete(RedisValue(bytes(self._buf)), position)

            elif state is _State.ERROR_LF:
                if byte != _LF:
                    return self._fail(position)
                return self._complete(RedisValue(bytes(self._buf), error=True), position)

            elif state is _State.INTEGER_LF:
                if byte != _LF:
                    return self._fail(position)
                value = buf_to_long(bytes(self._buf))
                self._buf.clear()
                return self._complete(RedisValue(value), position)

            elif state is _State.BULK_SIZE_LF:
                if byte != _LF:
                    return self._fail(position)
                self._bulk_size = buf_to_long(bytes(self._buf))
                self._buf.clear()
                if self._bulk_size == -1:
                    return self._complete(RedisValue(), position)
                if self._bulk_size == 0:
                    self._state = _State.BULK_CR
                elif self._bulk_size < 0:
                    return self._fail(position)
                else:
                    available = size - position - 1
                    can_read = min(self._bulk_size, available)
                    if can_read > 0:
                        self._buf[:] = data[position + 1 : position + 1 + can_read]
                    position += can_read
                    if self._bulk_size > available:
                        self._bulk_size -= can_read
                        self._state = _State.BULK
                        return position + 1, ParseResult.INCOMPLETE
                    self._state = _State.BULK_CR

            elif state is _State.BULK:
                can_read = min(size - position, self._bulk_size)
                self._buf.extend(data[position : position + can_read])
                self._bulk_size -= can_read
                position += can_read
                if self._bulk_size > 0:
                    return position, ParseResult.INCOMPLETE
                self._state = _State.BULK_CR
                if position == size:
                    return position, ParseResult.INCOMPLETE
                continue

            elif state is _State.BULK_CR:
                if byte != _CR:
                    return self._fail(position)
                self._state = _State.BULK_LF

            elif state is _State.BULK_LF:
                if byte != _LF:
                    return self._fail(position)
                return self._complete(RedisValue(bytes(self._buf)), position)

            elif state is _State.ARRAY_SIZE_LF:
                if byte != _LF:
                    return self._fail(position)
                array_size = buf_to_long(bytes(self._buf))
                self._buf.clear()
                if array_size in (-1, 0):
                    return self._complete(RedisValue([]), position)
                if array_size < 0:
                    return self._fail(position)
                self._array_stack.append(array_size)
                self._value_stack.append(RedisValue([]))
                self._state = _State.START
                if position + 1 != size:
                    consumed, outcome = self._parse_array(data[position + 1 :])
                    return consumed + position + 1, outcome
                return position + 1, ParseResult.INCOMPLETE

            else:
                return self._fail(position)

            position += 1

        return position, ParseResult.INCOMPLETE