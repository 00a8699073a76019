"""A small DogStatsD metric sender over UDP."""

from __future__ import annotations

import enum
import ipaddress
import logging
import socket
import threading
from collections.abc import Iterable

log = logging.getLogger(__name__)


class MessageType(enum.Enum):
    """Metric kinds and their wire suffixes."""

    COUNT = "c"
    GAUGE = "g"
    TIMER = "ms"
    SET = "s"


def _format_number(value: object) -> str:
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


class Dogstatsd:
    """Sends metrics in DogStatsD datagram form to one receiver."""

    def __init__(
        self,
        app_name: str = "",
        host: str = "127.0.0.1",
        port: int | str = "8126",
    ) -> None:
        self.app_name = app_name
        address = ipaddress.ip_address(host)
        self._receiver = (str(address), int(port))
        family = socket.AF_INET6 if address.version == 6 else socket.AF_INET
        self._socket = socket.socket(family, socket.SOCK_DGRAM)
        self._socket.bind(("::" if family == socket.AF_INET6 else "0.0.0.0", 0))
        self._lock = threading.Lock()

    def format_metric(
        self,
        name: str,
        value: object,
        kind: MessageType = MessageType.COUNT,
        sample_rate: float = 0.0,
        keys: Iterable[str] = (),
    ) -> str:
        """Return the datagram text for one metric."""
        text = f"{self.app_name}.{name}:{_format_number(value)}|{kind.value}|"
        if sample_rate != 0.0:
            text += f"@{_format_number(float(sample_rate))}|"
        keys = list(keys)
        if keys:
            text += "#" + "".join(f"{k}," for k in keys)
        return text[:-1]

    def metric(
        self,
        name: str,
        value: object,
        kind: MessageType = MessageType.COUNT,
        sample_rate: float = 0.0,
        keys: Iterable[str] = (),
    ) -> None:
        """Send one metric; a failed send is logged, not raised."""
        payload = self.format_metric(name, value, kind, sample_rate, keys).encode("utf-8")
        with self._lock:
            try:
                self._socket.sendto(payload, self._receiver)
            except OSError:
                log.warning("error with dogstatsd")

    def close(self) -> None:
        self._socket.close()

    def __enter__(self) -> Dogstatsd:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()