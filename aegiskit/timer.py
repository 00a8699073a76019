"""The reminder module and its duration parser."""

from __future__ import annotations

import re
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

_LEADING_INTEGER = re.compile(r"\s*([+-]?\d+)")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_UNITS = {
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
}


def _leading_integer(text: str) -> int:
    match = _LEADING_INTEGER.match(text)
    if match is None:
        raise ValueError(f"no number in {text!r}")
    number = int(match.group(1))
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise OverflowError(f"number out of range: {match.group(1)}")
    return number


def parse_duration(text: str) -> timedelta:
    """Parse a span such as ``1d2h30m10s``.

    Each unit letter closes the number before it; text after the last
    unit letter is ignored. A zero amount anywhere makes the whole span zero.
    """
    total = timedelta(0)
    start = 0
    for pos, char in enumerate(text):
        unit = _UNITS.get(char)
        if unit is None:
            continue
        amount = _leading_integer(text[start:pos])
        start = pos + 1
        if amount == 0:
            return timedelta(0)
        total += unit * amount
    return total


@dataclass
class Reminder:
    """One pending reminder."""

    id: int
    owner_id: int
    expiry_time: datetime
    creation: datetime
    message: str


class TimerModule:
    """Guild module answering reminder commands."""

    r_prefix = "timer"

    def __init__(self) -> None:
        self.timer: threading.Timer | None = None
        self.reminders: dict[str, Reminder] = {}
        self.commands: dict[str, Callable[[Sequence[str]], bool]] = {
            "reset": self.remind,
        }

    def get_db_entries(self) -> list[str]:
        return []

    def check_command(self, cmd: str, tokens: Sequence[str]) -> bool:
        """Run ``cmd`` if this module has it; False when it does not."""
        handler = self.commands.get(cmd)
        if handler is None:
            return False
        return handler(tokens)

    def remind(self, tokens: Sequence[str]) -> bool:
        """Handle the reminder command; the first token is the command name."""
        arguments = list(tokens[1:])
        if not arguments:
            return True
        return True

    def stop(self) -> None:
        """Cancel the pending timer, if any."""
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None