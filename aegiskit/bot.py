"""Bot-wide helpers: text utilities, tag records and event timing counters."""

from __future__ import annotations

import base64
import enum
import re
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from aegiskit.statsd import Dogstatsd, MessageType

__all__ = [
    "AUCTION_COMMAND_DEFAULTS",
    "BOT_CONTROL_CHANNEL",
    "BOT_GUILD_ID",
    "BOT_OWNER_ID",
    "BUG_REPORT_CHANNEL_ID",
    "BotCounters",
    "COMMAND_DEFAULTS",
    "EventStats",
    "MentionType",
    "RedisKeyType",
    "TagData",
    "ZWSP",
    "apply_replacements",
    "base64_decode",
    "base64_encode",
    "replace_first",
    "split",
    "to_bool",
    "to_int64",
]

ZWSP = "\u200b"

BOT_OWNER_ID = 171000788183678976
BUG_REPORT_CHANNEL_ID = 382210262964502549
BOT_GUILD_ID = 287048029524066334
BOT_CONTROL_CHANNEL = 288707540844412928

# command name -> (enabled, default access, permission type)
COMMAND_DEFAULTS: dict[str, tuple[str, str, str]] = {
    "set": ("1", "0", "0"),
    "help": ("1", "1", "0"),
    "info": ("1", "1", "0"),
    "kick": ("1", "0", "0"),
    "ban": ("1", "0", "0"),
    "redis": ("0", "0", "0"),
    "source": ("1", "1", "0"),
    "perm": ("1", "0", "0"),
    "server": ("1", "1", "0"),
    "shard": ("1", "1", "0"),
    "shards": ("1", "1", "0"),
    "serverlist": ("0", "0", "0"),
    "events": ("1", "1", "0"),
    "test": ("1", "1", "0"),
    "tag": ("1", "1", "0"),
    "feedback": ("1", "1", "0"),
    "reportbug": ("1", "1", "0"),
    "ping": ("0", "0", "0"),
    "stats": ("1", "1", "0"),
}

# The auction module checks permissions itself, so everything is enabled.
AUCTION_COMMAND_DEFAULTS: dict[str, tuple[str, str, str]] = {
    **{
        name: ("1", "1", "0")
        for name in (
            "reset", "register", "start", "playerlist", "nom", "startfunds",
            "pause", "resume", "bid", "end", "setname", "standings", "retain",
            "skip", "setfunds", "undobid", "bidtime", "auctionhelp", "withdraw",
            "addfunds", "removefunds", "addplayers", "addbidder", "delbiddder",
            "teamlist",
        )
    },
    "musichelp": ("1", "0", "0"),
}

_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789+/"
_DECODE = {ord(char): index for index, char in enumerate(_ALPHABET)}
_LEADING_INTEGER = re.compile(r"\s*([+-]?)(\d+)")
_UINT64_LIMIT = 2**64

T = TypeVar("T")


class RedisKeyType(enum.Enum):
    """How a stored key is laid out in Redis."""

    HASH = "hash"
    SET = "set"
    KV = "kv"


class MentionType(enum.Enum):
    """Kinds of mention markup in a message."""

    FAIL = enum.auto()
    USER = enum.auto()
    NICKNAME = enum.auto()
    CHANNEL = enum.auto()
    ROLE = enum.auto()
    EMOJI = enum.auto()
    ANIMATED_EMOJI = enum.auto()


@dataclass
class TagData:
    """Usage and ownership of one stored tag."""

    class TagType(enum.Enum):
        TEXT = "t"
        ALIAS = "a"

    use_count: int = 0
    owner: int = 0
    owning_server: int = 0
    creation: int = 0


@dataclass
class EventStats:
    """Accumulated time (microseconds) and count for one event name."""

    time: int = 0
    count: int = 0


def split(text: str, delim: str) -> list[str]:
    """Split ``text`` on ``delim``, dropping empty pieces."""
    return [piece for piece in text.split(delim) if piece]


def _as_bytes(data: str | bytes | bytearray) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def base64_encode(data: str | bytes | bytearray) -> str:
    """Standard padded base64 of ``data``; text is encoded as UTF-8 first."""
    return base64.b64encode(_as_bytes(data)).decode("ascii")


def base64_decode(text: str | bytes | bytearray) -> bytes:
    """Decode base64, stopping quietly at the first character outside the alphabet."""
    out = bytearray()
    bits = 0
    pending = -8
    for byte in _as_bytes(text):
        digit = _DECODE.get(byte)
        if digit is None:
            break
        bits = ((bits << 6) + digit) & 0xFFFFFFFF
        pending += 6
        if pending >= 0:
            out.append((bits >> pending) & 0xFF)
            pending -= 8
    return bytes(out)


def replace_first(needle: str, repl: str, haystack: str) -> str:
    """Replace the first occurrence of ``needle`` in ``haystack``."""
    return haystack.replace(needle, repl, 1)


def apply_replacements(
    text: str, replacements: Mapping[str, Callable[[T], str]], context: T
) -> str:
    """Replace the first occurrence of each key, in key order, by its function's result."""
    for needle in sorted(replacements):
        text = replace_first(needle, replacements[needle](context), text)
    return text


def to_bool(text: str) -> bool:
    """A stored flag: only ``"1"`` is true."""
    return text == "1"


def to_int64(text: str) -> int:
    """Read the leading unsigned integer of ``text``; a minus sign wraps modulo 2**64."""
    match = _LEADING_INTEGER.match(text)
    if match is None:
        raise ValueError(f"no number in {text!r}")
    magnitude = int(match.group(2))
    if magnitude >= _UINT64_LIMIT:
        raise OverflowError(f"number out of range: {text!r}")
    if match.group(1) == "-":
        return (-magnitude) % _UINT64_LIMIT
    return magnitude


class BotCounters:
    """Event counters and per-event timings, mirrored to a statsd receiver."""

    def __init__(self, statsd: Dogstatsd | Any | None = None) -> None:
        self.statsd = statsd
        self.shutdown = False
        self.dms = 0
        self.messages = 0
        self.presences = 0
        self.rest_time = 0
        self.rest = 0
        self.events = 0
        self.commands = 0
        self.js: dict[str, EventStats] = {}
        self.msg: dict[str, EventStats] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _elapsed_us(start_time: float) -> int:
        return int((time.monotonic() - start_time) * 1_000_000)

    def message_end(self, start_time: float, name: str) -> None:
        """Record a gateway message handled since ``start_time`` (``time.monotonic()``)."""
        if self.shutdown:
            return
        us = self._elapsed_us(start_time)
        with self._lock:
            stats = self.msg.setdefault(name, EventStats())
            stats.count += 1
            stats.time += us
            self.events += 1
        if self.statsd is not None:
            tags = [f"cmd:{name}"]
            self.statsd.metric("msg_time", us, MessageType.TIMER, 1, tags)
            self.statsd.metric("command", 1, MessageType.COUNT, 1, tags)

    def js_end(self, start_time: float, name: str) -> None:
        """Record a script event handled since ``start_time`` (``time.monotonic()``)."""
        if self.shutdown:
            return
        us = self._elapsed_us(start_time)
        with self._lock:
            stats = self.js.setdefault(name, EventStats())
            stats.count += 1
            stats.time += us
        if self.statsd is not None:
            self.statsd.metric("js_time", us, MessageType.TIMER, 1, [f"cmd:{name}"])