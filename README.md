# aegiskit

Building blocks for a chat bot that keeps its state in Redis and reports
metrics to a DogStatsD agent. Pure Python, standard library only.

## What is inside

- `aegiskit.value` – `RedisValue`, the reply type: null, integer, byte string
  or array, any of which may carry the error flag. It offers `to_string()`,
  `to_bytes()`, `to_int()`, `to_array()`, `inspect()` and the `is_*()`
  checks. `to_buffer()` turns a command argument (text, bytes or integer)
  into the bytes sent on the wire.
- `aegiskit.parser` – `RedisParser`, an incremental parser for Redis protocol
  replies. `parse(data)` accepts data in arbitrary pieces and returns the
  number of bytes used and a `ParseResult` (`COMPLETED`, `INCOMPLETE` or
  `ERROR`); a completed reply is taken with `result()`. `buf_to_long()`
  converts a size or integer line.
- `aegiskit.client` – `RedisSyncClient`, a blocking client (`connect`,
  `command`, `close`, `state`, usable as a context manager),
  `make_command()` to encode a command, `ClientState`, and
  `RedisClientError`, which the default error handler raises.
- `aegiskit.async_client` – `AsyncRedisClient` for asyncio, with `command`,
  `publish`, `subscribe`, `psubscribe`, `unsubscribe`, `punsubscribe` and
  single-shot subscriptions that deliver only the next message; and
  `RedisSubscriber`, which keeps one channel subscription alive and
  reconnects after `retry_delay` seconds whenever it fails.
- `aegiskit.store` – `RedisStore`, helpers over a client (`hset`, `hget`,
  `hdel`, `get`, `put`, `delete`, `sadd`, `srem`, `get_array`, `get_vector`,
  `get_raw`, `expire`, `getset`, `cdata_get`/`cdata_set`, `toggle_command`,
  `peek`). Commands that only need to succeed return `True` unless the server
  answered with an error; commands that fetch a value return text.
- `aegiskit.statsd` – `Dogstatsd`, a UDP sender for counts, gauges, timers
  and sets (`MessageType`). `format_metric()` builds the datagram text;
  `metric()` sends it and logs, rather than raises, a failed send.
- `aegiskit.timer` – `parse_duration()` for spans such as `"1d2h30m10s"`
  (a zero amount anywhere makes the whole span zero), the `Reminder` record
  and `TimerModule`.
- `aegiskit.bot` – text helpers (`split`, `base64_encode`, `base64_decode`,
  `replace_first`, `apply_replacements`, `to_bool`, `to_int64`), the
  `TagData`, `RedisKeyType` and `MentionType` types, default command tables,
  and `BotCounters`, which keeps per-event counts and timings and mirrors
  them to a `Dogstatsd` instance.

## Install

    pip install .

## Examples

Parsing a reply:

    from aegiskit.parser import RedisParser, ParseResult

    parser = RedisParser()
    consumed, status = parser.parse(b"*2\r\n$3\r\nfoo\r\n:42\r\n")
    assert status is ParseResult.COMPLETED
    print(parser.result().inspect())   # [foo, 42]

Talking to a server:

    from aegiskit.client import RedisSyncClient
    from aegiskit.store import RedisStore

    with RedisSyncClient() as client:
        client.connect("127.0.0.1", 6379)
        store = RedisStore(client)
        store.put("greeting", "hello")
        print(store.get("greeting"))

Subscribing with asyncio:

    import asyncio
    from aegiskit.async_client import AsyncRedisClient

    async def main():
        async with AsyncRedisClient() as client:
            await client.connect("127.0.0.1", 6379)
            await client.subscribe("news", lambda payload: print(payload))
            await asyncio.sleep(60)

    asyncio.run(main())

Sending a metric:

    from aegiskit.statsd import Dogstatsd, MessageType

    with Dogstatsd("mybot") as stats:
        stats.metric("command", 1, MessageType.COUNT, 1, ["cmd:help"])

Durations:

    from aegiskit.timer import parse_duration

    parse_duration("1h30m")   # timedelta(seconds=5400)

## What it does not do

This is a toolkit, not a running bot. It has no connection to a chat
service, no command line program and no message dispatching. `TimerModule`
answers its command but does not yet schedule or store reminders, and
`get_db_entries()` returns an empty list.

## Tests

    pip install .[test]
    pytest