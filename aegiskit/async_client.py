"""Asynchronous Redis client with publish/subscribe, and a self-reconnecting subscriber."""

from __future__ import annotations

import asyncio
import inspect
import logging
import socket
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from aegiskit.client import ClientState, RedisClientError, default_error_handler, make_command
from aegiskit.parser import ParseResult, RedisParser
from aegiskit.value import RedisValue

__all__ = ["AsyncRedisClient", "RedisSubscriber", "SubscriptionHandle"]

log = logging.getLogger(__name__)

MessageHandler = Callable[[bytes], Any]

_READ_SIZE = 4096
_SUBSCRIPTION_REPLIES = frozenset({"subscribe", "unsubscribe", "psubscribe", "punsubscribe"})
_LIVE_STATES = (ClientState.CONNECTED, ClientState.SUBSCRIBED)


@dataclass(frozen=True)
class SubscriptionHandle:
    """Identifies one message handler registered on a channel or pattern."""

    id: int
    channel: str


class AsyncRedisClient:
    """A Redis client driven by asyncio.

    Replies are matched to requests in order. Once a subscription is made the
    connection is in subscriber mode: published messages go to the handlers
    registered for their channel, and plain commands are refused.
    Problems are passed to the error handler; the default one raises
    :class:`RedisClientError`.
    """

    def __init__(self, error_handler: Callable[[str], None] | None = None) -> None:
        self.error_handler: Callable[[str], None] = error_handler or default_error_handler
        self._state = ClientState.UNCONNECTED
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._read_task: asyncio.Task[None] | None = None
        self._parser = RedisParser()
        self._pending: deque[asyncio.Future[RedisValue]] = deque()
        self._msg_handlers: dict[str, list[tuple[int, MessageHandler]]] = {}
        self._single_shot: dict[str, list[MessageHandler]] = {}
        self._subscribe_seq = 0
        self._handler_tasks: set[asyncio.Future[Any]] = set()

    async def connect(self, host: str, port: int) -> None:
        """Open the connection; a failure raises :class:`OSError`."""
        if self._state not in (ClientState.UNCONNECTED, ClientState.CLOSED):
            raise RedisClientError(
                f"RedisAsyncClient::connect called on socket with state {self._state}"
            )
        self._state = ClientState.CONNECTING
        try:
            reader, writer = await asyncio.open_connection(host, int(port))
        except BaseException:
            self._state = ClientState.UNCONNECTED
            raise
        sock = writer.get_extra_info("socket")
        if sock is not None:
            try:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except OSError:
                pass
        self._reader, self._writer = reader, writer
        self._parser = RedisParser()
        self._state = ClientState.CONNECTED
        self._read_task = asyncio.get_running_loop().create_task(self._read_loop(reader))

    def state(self) -> ClientState:
        return self._state

    def is_connected(self) -> bool:
        return self._state in _LIVE_STATES

    def disconnect(self) -> None:
        """Close the connection and drop the message handlers."""
        if self._state is ClientState.CLOSED:
            return
        self._msg_handlers.clear()
        if self._read_task is not None:
            self._read_task.cancel()
            self._read_task = None
        if self._writer is not None:
            self._writer.close()
        self._reader = self._writer = None
        self._fail_pending(RedisClientError("[RedisClient] connection closed"))
        self._state = ClientState.CLOSED

    async def command(self, cmd: str, *args: Any) -> RedisValue:
        """Run ``cmd`` with ``args`` and return the reply."""
        if self._state is not ClientState.CONNECTED:
            self.error_handler(f"RedisAsyncClient::command called with invalid state {self._state}")
            return RedisValue()
        return await self._send([cmd, *args])

    async def subscribe(self, channel: str, handler: MessageHandler) -> SubscriptionHandle:
        """Call ``handler`` with every message published on ``channel``."""
        return await self._subscribe("subscribe", channel, handler)

    async def psubscribe(self, pattern: str, handler: MessageHandler) -> SubscriptionHandle:
        """Subscribe to the channels matching ``pattern``."""
        return await self._subscribe("psubscribe", pattern, handler)

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        await self._unsubscribe("unsubscribe", handle)

    async def punsubscribe(self, handle: SubscriptionHandle) -> None:
        await self._unsubscribe("punsubscribe", handle)

    async def single_shot_subscribe(self, channel: str, handler: MessageHandler) -> None:
        """Call ``handler`` with the next message on ``channel`` only."""
        await self._single_shot_subscribe("subscribe", channel, handler)

    async def single_shot_psubscribe(self, pattern: str, handler: MessageHandler) -> None:
        await self._single_shot_subscribe("psubscribe", pattern, handler)

    async def publish(self, channel: str, message: Any) -> RedisValue:
        """Publish ``message`` on ``channel``; the reply counts the receivers."""
        if self._state is not ClientState.CONNECTED:
            self.error_handler(f"RedisAsyncClient::command called with invalid state {self._state}")
            return RedisValue()
        return await self._send(["PUBLISH", channel, message])

    def dispatch(self, value: RedisValue) -> None:
        """Route one reply read from the server to whoever waits for it."""
        if self._state is ClientState.SUBSCRIBED:
            items = value.to_array()
            if len(items) < 3:
                self.error_handler("[RedisClient] Protocol error")
                return
            kind = items[0].to_string()
            short = len(items) == 3
            queue_name = items[1 if short else 2].to_string()
            payload = items[2 if short else 3].to_bytes()
            if kind in ("message", "pmessage"):
                single = self._single_shot.get(queue_name)
                if single:
                    handler = single.pop(0)
                    if not single:
                        del self._single_shot[queue_name]
                    self._invoke(handler, payload)
                for _, handler in list(self._msg_handlers.get(queue_name, ())):
                    self._invoke(handler, payload)
            elif self._pending and kind in _SUBSCRIPTION_REPLIES:
                self._resolve(value)
            else:
                self.error_handler(f"[RedisClient] invalid command: {kind}")
            return

        if self._pending:
            self._resolve(value)
        else:
            self.error_handler(f"[RedisClient] unexpected message: {value.inspect()}")

    async def __aenter__(self) -> AsyncRedisClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.disconnect()

    async def _subscribe(
        self, command: str, channel: str, handler: MessageHandler
    ) -> SubscriptionHandle:
        if self._state not in _LIVE_STATES:
            self.error_handler(f"RedisClientImpl::subscribe called with invalid state {self._state}")
            return SubscriptionHandle(0, channel)
        handle = SubscriptionHandle(self._subscribe_seq, channel)
        self._subscribe_seq += 1
        self._msg_handlers.setdefault(channel, []).append((handle.id, handler))
        self._state = ClientState.SUBSCRIBED
        await self._send([command, channel])
        return handle

    async def _single_shot_subscribe(
        self, command: str, channel: str, handler: MessageHandler
    ) -> None:
        if self._state not in _LIVE_STATES:
            self.error_handler(
                f"RedisClientImpl::singleShotSubscribe called with invalid state {self._state}"
            )
            return
        self._single_shot.setdefault(channel, []).append(handler)
        self._state = ClientState.SUBSCRIBED
        await self._send([command, channel])

    async def _unsubscribe(self, command: str, handle: SubscriptionHandle) -> None:
        if self._state not in _LIVE_STATES:
            self.error_handler(
                f"RedisClientImpl::unsubscribe called with invalid state {self._state}"
            )
            return
        remaining = [
            entry for entry in self._msg_handlers.get(handle.channel, ()) if entry[0] != handle.id
        ]
        if remaining:
            self._msg_handlers[handle.channel] = remaining
        else:
            self._msg_handlers.pop(handle.channel, None)
        await self._send([command, handle.channel])

    async def _send(self, items: Iterable[Any]) -> RedisValue:
        writer = self._writer
        if writer is None:
            raise RedisClientError("[RedisClient] not connected")
        future: asyncio.Future[RedisValue] = asyncio.get_running_loop().create_future()
        self._pending.append(future)
        try:
            writer.write(make_command(items))
            await writer.drain()
        except OSError:
            if future in self._pending:
                self._pending.remove(future)
            raise
        return await future

    def _resolve(self, value: RedisValue) -> None:
        future = self._pending.popleft()
        if not future.done():
            future.set_result(value)

    def _fail_pending(self, exc: BaseException) -> None:
        while self._pending:
            future = self._pending.popleft()
            if not future.done():
                future.set_exception(exc)

    def _invoke(self, handler: MessageHandler, payload: bytes) -> None:
        result = handler(payload)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._handler_tasks.add(task)
            task.add_done_callback(self._handler_tasks.discard)

    def _deliver(self, value: RedisValue) -> None:
        try:
            self.dispatch(value)
        except Exception as exc:
            log.exception("error while dispatching a reply")
            self._fail_pending(exc)

    def _connection_lost(self, message: str) -> None:
        self._fail_pending(RedisClientError(message))
        try:
            self.error_handler(message)
        except Exception:
            log.debug("error handler raised for: %s", message, exc_info=True)

    async def _read_loop(self, reader: asyncio.StreamReader) -> None:
        try:
            while True:
                chunk = await reader.read(_READ_SIZE)
                if not chunk:
                    self._connection_lost("[RedisClient] connection closed by server")
                    return
                view = memoryview(chunk)
                while view:
                    consumed, outcome = self._parser.parse(view)
                    if outcome is ParseResult.COMPLETED:
                        self._deliver(self._parser.result())
                    elif outcome is ParseResult.ERROR:
                        self._connection_lost("[RedisClient] Parser error")
                        return
                    else:
                        break
                    view = view[consumed:]
        except OSError as exc:
            self._connection_lost(str(exc))


class RedisSubscriber:
    """Keeps one channel subscription alive, reconnecting whenever it fails."""

    def __init__(
        self,
        host: str,
        port: int,
        channel: str,
        handler: MessageHandler,
        retry_delay: float = 1.0,
    ) -> None:
        self.host = host
        self.port = int(port)
        self.channel = channel
        self.handler = handler
        self.retry_delay = retry_delay
        self.client = AsyncRedisClient(self._on_error)
        self._lost: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None

    def start(self) -> asyncio.Task[None]:
        """Begin connecting in the background; needs a running event loop."""
        if self._task is not None and not self._task.done():
            return self._task
        self._lost = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    async def stop(self) -> None:
        """Stop reconnecting and close the connection."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.client.disconnect()

    def _on_error(self, message: str) -> None:
        log.warning("redis subscriber on %s: %s", self.channel, message)
        if self._lost is not None:
            self._lost.set()

    async def _run(self) -> None:
        assert self._lost is not None
        while True:
            self._lost.clear()
            if self.client.is_connected():
                self.client.disconnect()
            try:
                await self.client.connect(self.host, self.port)
            except OSError:
                await asyncio.sleep(self.retry_delay)
                continue
            try:
                await self.client.subscribe(self.channel, self.handler)
            except (OSError, RedisClientError):
                await asyncio.sleep(self.retry_delay)
                continue
            await self._lost.wait()