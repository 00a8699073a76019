import pytest

from aegiskit.parser import ParseResult, RedisParser, buf_to_long
from aegiskit.value import RedisValue


def _feed(parser, chunks):
    """Feed chunks the way a client reads them; collect completed replies."""
    replies = []
    for chunk in chunks:
        pos = 0
        while pos < len(chunk):
            consumed, outcome = parser.parse(chunk[pos:])
            assert consumed > 0
            assert outcome is not ParseResult.ERROR
            pos += consumed
            if outcome is ParseResult.COMPLETED:
                replies.append(parser.result())
    return replies


def _parse_whole(data):
    parser = RedisParser()
    consumed, outcome = parser.parse(data)
    return consumed, outcome, parser.result()


def test_simple_string():
    data = b"+OK\r\n"
    consumed, outcome, value = _parse_whole(data)
    assert (consumed, outcome) == (len(data), ParseResult.COMPLETED)
    assert value.is_string()
    assert value.to_string() == "OK"
    assert value.is_ok()


def test_error_reply_sets_error_flag():
    consumed, outcome, value = _parse_whole(b"-ERR unknown command\r\n")
    assert outcome is ParseResult.COMPLETED
    assert value.is_error()
    assert value.to_string() == "ERR unknown command"
    assert value.inspect() == "error: ERR unknown command"


def test_integer_reply():
    consumed, outcome, value = _parse_whole(b":1000\r\n")
    assert outcome is ParseResult.COMPLETED
    assert value.is_int()
    assert value.to_int() == 1000


def test_negative_integer_reply():
    _, outcome, value = _parse_whole(b":-42\r\n")
    assert outcome is ParseResult.COMPLETED
    assert value.to_int() == -42


def test_bulk_string_with_binary_content():
    _, outcome, value = _parse_whole(b"$4\r\na\r\nb\r\n")
    assert outcome is ParseResult.COMPLETED
    assert value.to_bytes() == b"a\r\nb"


def test_null_bulk_string():
    _, outcome, value = _parse_whole(b"$-1\r\n")
    assert outcome is ParseResult.COMPLETED
    assert value.is_null()
    assert value.inspect() == "(null)"


def test_empty_bulk_string_is_not_null():
    _, outcome, value = _parse_whole(b"$0\r\n\r\n")
    assert outcome is ParseResult.COMPLETED
    assert value.is_string()
    assert value.to_bytes() == b""


def test_array_of_bulk_strings():
    _, outcome, value = _parse_whole(b"*2\r\n$3\r\nfoo\r\n$3\r\nbar\r\n")
    assert outcome is ParseResult.COMPLETED
    assert value == RedisValue([b"foo", b"bar"])


def test_empty_and_null_arrays_are_empty():
    for data in (b"*0\r\n", b"*-1\r\n"):
        _, outcome, value = _parse_whole(data)
        assert outcome is ParseResult.COMPLETED
        assert value.is_array()
        assert value.to_array() == []


def test_nested_array():
    data = b"*2\r\n*2\r\n:1\r\n:2\r\n$5\r\nhello\r\n"
    consumed, outcome, value = _parse_whole(data)
    assert (consumed, outcome) == (len(data), ParseResult.COMPLETED)
    assert value == RedisValue([[1, 2], b"hello"])


def test_pubsub_message_array():
    data = b"*3\r\n$7\r\nmessage\r\n$4\r\nchan\r\n$2\r\nhi\r\n"
    _, _, value = _parse_whole(data)
    items = value.to_array()
    assert [item.to_string() for item in items] == ["message", "chan", "hi"]


def test_only_first_of_several_replies_is_consumed():
    first = b":1\r\n"
    parser = RedisParser()
    consumed, outcome = parser.parse(first + b":2\r\n")
    assert (consumed, outcome) == (len(first), ParseResult.COMPLETED)
    assert parser.result().to_int() == 1


def test_several_replies_in_one_buffer():
    parser = RedisParser()
    replies = _feed(parser, [b"+OK\r\n:7\r\n$3\r\nabc\r\n"])
    assert replies == [RedisValue(b"OK"), RedisValue(7), RedisValue(b"abc")]


@pytest.mark.parametrize(
    "data",
    [
        b"+OK\r\n",
        b":-15\r\n",
        b"$11\r\nhello world\r\n",
        b"$-1\r\n",
        b"*3\r\n:1\r\n$2\r\nab\r\n+x\r\n",
        b"*2\r\n*1\r\n:1\r\n*2\r\n$1\r\na\r\n$0\r\n\r\n",
    ],
)
def test_byte_by_byte_matches_whole(data):
    _, _, whole = _parse_whole(data)
    parser = RedisParser()
    replies = _feed(parser, [data[i : i + 1] for i in range(len(data))])
    assert replies == [whole]


@pytest.mark.parametrize("split", range(1, 20))
def test_split_anywhere_matches_whole(split):
    data = b"*2\r\n$5\r\nhello\r\n*1\r\n:9\r\n"
    _, _, whole = _parse_whole(data)
    parser = RedisParser()
    replies = _feed(parser, [data[:split], data[split:]])
    assert replies == [whole]


def test_incomplete_bulk_reports_incomplete():
    parser = RedisParser()
    consumed, outcome = parser.parse(b"$10\r\nabc")
    assert outcome is ParseResult.INCOMPLETE
    assert consumed == len(b"$10\r\nabc")
    consumed, outcome = parser.parse(b"defghij\r\n")
    assert outcome is ParseResult.COMPLETED
    assert parser.result().to_bytes() == b"abcdefghij"


def test_unknown_reply_type_is_error():
    parser = RedisParser()
    assert parser.parse(b"?what\r\n") == (1, ParseResult.ERROR)


def test_missing_line_feed_is_error():
    _, outcome, _ = _parse_whole(b"+OK\rX")
    assert outcome is ParseResult.ERROR


def test_control_character_in_simple_string_is_error():
    _, outcome, _ = _parse_whole(b"+O\x01K\r\n")
    assert outcome is ParseResult.ERROR


def test_high_byte_in_simple_string_is_error():
    _, outcome, _ = _parse_whole(b"+caf\xc3\xa9\r\n")
    assert outcome is ParseResult.ERROR


def test_bad_bulk_size_is_error():
    _, outcome, _ = _parse_whole(b"$-2\r\n")
    assert outcome is ParseResult.ERROR


def test_empty_size_line_is_error():
    for data in (b"$\r\n", b"*\r\n", b":\r\n"):
        _, outcome, _ = _parse_whole(data)
        assert outcome is ParseResult.ERROR


def test_non_digit_in_integer_is_error():
    _, outcome, _ = _parse_whole(b":12a\r\n")
    assert outcome is ParseResult.ERROR


def test_bulk_without_terminator_is_error():
    _, outcome, _ = _parse_whole(b"$2\r\nabX\n")
    assert outcome is ParseResult.ERROR


def test_parser_recovers_after_error():
    parser = RedisParser()
    _, outcome = parser.parse(b"!")
    assert outcome is ParseResult.ERROR
    data = b"+PONG\r\n"
    assert parser.parse(data) == (len(data), ParseResult.COMPLETED)
    assert parser.result().to_string() == "PONG"


def test_result_without_reply_is_null():
    assert RedisParser().result().is_null()


def test_empty_input_is_incomplete():
    assert RedisParser().parse(b"") == (0, ParseResult.INCOMPLETE)


@pytest.mark.parametrize(
    "text, expected",
    [(b"123", 123), (b"-45", -45), (b"0", 0), (b"-", 0), (b"", 0)],
)
def test_buf_to_long(text, expected):
    assert buf_to_long(text) == expected


def test_accepts_bytearray_and_memoryview():
    data = b":5\r\n"
    for wrapped in (bytearray(data), memoryview(data)):
        parser = RedisParser()
        assert parser.parse(wrapped) == (len(data), ParseResult.COMPLETED)
        assert parser.result().to_int() == 5