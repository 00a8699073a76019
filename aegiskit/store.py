"""Key/value helpers over a blocking Redis client, as used by the bot."""

from __future__ import annotations

import threading
from typing import Any, Protocol

from aegiskit.value import RedisValue

__all__ = ["RedisStore"]

GUILD_CONFIG_PREFIX = "config:guild"
MEMBER_CONFIG_PREFIX = "config:member"
BOT_CONFIG_PREFIX = "config"
CUSTOM_DATA_KEY = "config:customdata"
PEEK_CHANNEL = "aegis:peek"


class _CommandClient(Protocol):
    def command(self, cmd: str, *args: Any) -> RedisValue: ...


class RedisStore:
    """Serialises commands on one client and turns replies into plain values.

    Commands that only need to succeed return whether the reply was not an
    error; commands that fetch a value return the reply as text.
    """

    def __init__(self, client: _CommandClient) -> None:
        self.client = client
        self._lock = threading.RLock()

    def _command(self, cmd: str, *args: Any) -> RedisValue:
        with self._lock:
            return self.client.command(cmd, *args)

    def basic_action(self, action: str, *args: Any) -> bool:
        """Run ``action``; True unless the server answered with an error."""
        return self._command(action, *args).is_ok()

    def result_action(self, action: str, *args: Any) -> str:
        """Run ``action`` and return its reply as text."""
        return self._command(action, *args).to_string()

    def hset(self, *args: Any) -> bool:
        return self.basic_action("HSET", *args)

    def hmset(self, *args: Any) -> bool:
        return self.basic_action("HMSET", *args)

    def hget(self, *args: Any) -> str:
        return self.result_action("HGET", *args)

    def hdel(self, *args: Any) -> bool:
        return self.basic_action("HDEL", *args)

    def run(self, cmd: str, *args: Any) -> str:
        return self.result_action(cmd, *args)

    def run_v(self, cmd: str, *args: Any) -> list[str]:
        return self.get_raw(cmd, *args)

    def get(self, key: str) -> str:
        return self.result_action("GET", key)

    def put(self, key: str, value: Any) -> bool:
        return self.basic_action("SET", key, value)

    def delete(self, *args: Any) -> bool:
        return self.basic_action("DEL", *args)

    def publish(self, key: str, value: Any) -> bool:
        return self.basic_action("PUBLISH", key, value)

    def expire(self, key: str, seconds: int) -> None:
        self.basic_action("EXPIRE", key, str(int(seconds)))

    def getset(self, key: str, value: Any) -> str:
        return self.result_action("GETSET", key, value)

    def get_array(self, key: str) -> dict[str, str]:
        """Return the fields of the hash at ``key``; empty when it cannot be read."""
        reply = self._command("HGETALL", key)
        if not (reply.is_ok() and reply.is_array()):
            return {}
        items = [item.to_string() for item in reply.to_array()]
        return dict(zip(items[0::2], items[1::2]))

    def get_vector(self, key: str) -> list[str]:
        """Return the members of the set at ``key``; empty when it cannot be read."""
        return self.get_raw("SMEMBERS", key)

    def get_raw(self, cmd: str, *args: Any) -> list[str]:
        """Run ``cmd`` and return its array reply as text; empty for other replies."""
        reply = self._command(cmd, *args)
        if reply.is_ok() and reply.is_array():
            return [item.to_string() for item in reply.to_array()]
        return []

    def do_raw(self, cmd: str, *args: Any) -> bool:
        return self._command(cmd, *args).is_ok()

    def sadd(self, *args: Any) -> bool:
        return self.basic_action("SADD", *args)

    def srem(self, *args: Any) -> bool:
        return self.basic_action("SREM", *args)

    def cdata_get(self, key: str) -> str:
        return self.hget(CUSTOM_DATA_KEY, key)

    def cdata_set(self, key: str, value: Any) -> bool:
        return self.hset(CUSTOM_DATA_KEY, key, value)

    def toggle_command(self, cmd: str, guild_id: int, enabled: bool) -> bool:
        """Store whether ``cmd`` is enabled in a guild's command table."""
        return self.hset(
            f"{GUILD_CONFIG_PREFIX}:{guild_id}:cmds",
            cmd.lower(),
            "1" if enabled else "0",
        )

    def peek(self, message: str) -> None:
        """Publish ``message`` on the peek channel."""
        self._command("PUBLISH", PEEK_CHANNEL, message)