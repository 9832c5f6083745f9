"""In-memory stand-ins for redis.asyncio used by the bus and context-store tests."""
from __future__ import annotations

import asyncio
import fnmatch
from typing import Any, Callable, Dict, List, Optional, Set

CONNECTION_LOST = object()


class FakePubSub:
    def __init__(self, redis: "FakeRedis") -> None:
        self._redis = redis
        self.channels: Set[str] = set()
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    async def subscribe(self, *channels: str) -> None:
        for channel in channels:
            if channel in self._redis.fail_subscribe:
                raise ConnectionError(f"cannot subscribe to {channel}")
            self.channels.add(channel)
            self._redis.pubsubs.append(self)
            await self.queue.put({"type": "subscribe", "channel": channel, "data": 1})

    async def unsubscribe(self, *channels: str) -> None:
        for channel in channels or tuple(self.channels):
            self.channels.discard(channel)

    async def listen(self):
        while True:
            msg = await self.queue.get()
            if msg is CONNECTION_LOST:
                raise ConnectionError("Connection closed by server.")
            yield msg

    async def aclose(self) -> None:
        self.closed = True
        if self in self._redis.pubsubs:
            self._redis.pubsubs.remove(self)


class FakeRedis:
    def __init__(self, *, fail_ping: bool = False, fail_subscribe: Optional[Set[str]] = None) -> None:
        self.fail_ping = fail_ping
        self.fail_subscribe: Set[str] = set(fail_subscribe or ())
        self.pubsubs: List[FakePubSub] = []
        self.published: List[tuple] = []
        self.kv: Dict[str, Any] = {}
        self.ttls: Dict[str, int] = {}
        self.closed = False

    async def ping(self) -> bool:
        if self.fail_ping:
            raise ConnectionError("connection refused")
        return True

    def pubsub(self) -> FakePubSub:
        return FakePubSub(self)

    async def publish(self, channel: str, data: bytes) -> int:
        self.published.append((channel, data))
        receivers = [p for p in self.pubsubs if channel in p.channels]
        for p in receivers:
            await p.queue.put({"type": "message", "channel": channel, "data": data})
        return len(receivers)

    async def set(self, name: str, value: Any, ex: Optional[int] = None) -> bool:
        self.kv[name] = value
        if ex is not None:
            self.ttls[name] = ex
        return True

    async def get(self, name: str) -> Any:
        return self.kv.get(name)

    async def scan_iter(self, match: str = "*"):
        for key in list(self.kv):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def aclose(self) -> None:
        self.closed = True

    async def drop_connection(self, channel: str) -> None:
        for p in [p for p in self.pubsubs if channel in p.channels]:
            await p.queue.put(CONNECTION_LOST)

    def published_on(self, channel: str) -> List[bytes]:
        return [data for ch, data in self.published if ch == channel]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()
