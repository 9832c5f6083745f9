# risq/core/bus/async_service.py
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Set

from pydantic import BaseModel
from redis import asyncio as aioredis
from redis.asyncio.retry import Retry
from redis.backoff import ConstantBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from .codec import RisqCodec
from .errors import BusConnectionError, BusNotConnectedError, BusPublishError, BusSubscribeError

logger = logging.getLogger("risq.bus")

MessageHandler = Callable[[bytes], Awaitable[None]]


class Subscription:
    """Handle for one subject subscription. Unsubscribing is idempotent."""

    def __init__(self, bus: "RisqBusAsync", subject: str, handler: MessageHandler, pubsub: Any) -> None:
        self.subject = subject
        self.handler = handler
        self._bus = bus
        self._pubsub = pubsub
        self._reader: Optional[asyncio.Task] = None
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    async def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._bus._forget(self)

        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader

        try:
            await self._pubsub.unsubscribe(self.subject)
        finally:
            await self._pubsub.aclose()
        logger.info("Unsubscribed from subject: %s", self.subject)


class RisqBusAsync:
    """
    Async Redis pub/sub client for the pipeline.

    Delivery is best-effort: every inbound message is handed to its handler on
    a dedicated task; handler failures are logged and the message is dropped.
    """

    def __init__(
        self,
        url: str,
        *,
        enabled: bool = True,
        codec: Optional[RisqCodec] = None,
        max_reconnects: int = 10,
        reconnect_wait_sec: float = 2.0,
        connect_timeout_sec: float = 5.0,
        drain_timeout_sec: float = 5.0,
        client: Optional[aioredis.Redis] = None,
    ):
        self.url = url
        self.enabled = enabled
        self.codec = codec or RisqCodec()
        self.max_reconnects = max_reconnects
        self.reconnect_wait_sec = reconnect_wait_sec
        self.connect_timeout_sec = connect_timeout_sec
        self._client = client
        self._redis: Optional[aioredis.Redis] = None
        self._subscriptions: List[Subscription] = []
        self._inflight: Set[asyncio.Task] = set()
        self._dead_subjects: Set[str] = set()
        self.drain_timeout_sec = drain_timeout_sec

    def _build_client(self) -> aioredis.Redis:
        if self._client is not None:
            return self._client
        return aioredis.from_url(
            self.url,
            decode_responses=False,
            socket_connect_timeout=self.connect_timeout_sec,
            retry=Retry(ConstantBackoff(self.reconnect_wait_sec), self.max_reconnects),
            retry_on_error=[RedisConnectionError, RedisTimeoutError],
        )

    async def connect(self) -> None:
        if not self.enabled:
            return
        if self._redis is not None:
            return

        logger.info("Connecting to bus at %s", self.url)
        redis = self._build_client()
        try:
            await asyncio.wait_for(redis.ping(), timeout=self.connect_timeout_sec)
        except Exception as exc:
            with contextlib.suppress(Exception):
                await redis.aclose()
            raise BusConnectionError(f"failed to connect to bus at {self.url}: {exc}") from exc

        self._redis = redis
        self._dead_subjects.clear()
        logger.info("Connected to bus at %s", self.url)

    async def close(self) -> None:
        for sub in list(self._subscriptions):
            try:
                await sub.unsubscribe()
            except Exception as exc:
                logger.warning("Failed to unsubscribe from %s: %s", sub.subject, exc)

        await self._finish_inflight()

        if self._redis is not None:
            redis, self._redis = self._redis, None
            await redis.aclose()
            logger.info("Bus connection closed")

    @property
    def is_connected(self) -> bool:
        """False once closed, or once any subscription reader has died."""
        return self._redis is not None and not self._dead_subjects

    @property
    def dead_subjects(self) -> tuple[str, ...]:
        """Subjects whose reader stopped on a transport error and no longer deliver."""
        return tuple(sorted(self._dead_subjects))

    @property
    def redis(self) -> aioredis.Redis:
        if self._redis is None:
            raise BusNotConnectedError("RisqBusAsync not connected. Call await connect().")
        return self._redis

    @property
    def subscriptions(self) -> tuple[Subscription, ...]:
        return tuple(self._subscriptions)

    async def publish(self, subject: str, event: BaseModel | Dict[str, Any]) -> None:
        if not self.enabled:
            return
        redis = self.redis

        try:
            data = self.codec.encode(event)
        except Exception as exc:
            raise BusPublishError(f"failed to marshal event: {exc}") from exc

        try:
            await redis.publish(subject, data)
        except Exception as exc:
            raise BusPublishError(f"failed to publish event to {subject}: {exc}") from exc

        logger.info("Published event to subject: %s", subject)

    async def subscribe(self, subject: str, handler: MessageHandler) -> Subscription:
        if not self.enabled:
            raise BusSubscribeError("Bus disabled")
        redis = self.redis

        pubsub = redis.pubsub()
        try:
            await pubsub.subscribe(subject)
        except Exception as exc:
            with contextlib.suppress(Exception):
                await pubsub.aclose()
            raise BusSubscribeError(f"failed to subscribe to {subject}: {exc}") from exc

        sub = Subscription(self, subject, handler, pubsub)
        sub._reader = asyncio.create_task(self._read_loop(sub), name=f"risq-bus:{subject}")
        self._subscriptions.append(sub)
        logger.info("Subscribed to subject: %s", subject)
        return sub

    async def iter_messages(self, pubsub: Any) -> AsyncIterator[dict]:
        """
        Unified async message iterator. Yields dicts with fields similar to redis-py's listen().
        """
        async for msg in pubsub.listen():
            mtype = msg.get("type")
            if mtype not in ("message", "pmessage"):
                continue
            yield msg

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight handler tasks to finish."""
        while self._inflight:
            pending = list(self._inflight)
            done, not_done = await asyncio.wait(pending, timeout=timeout)
            if not_done:
                logger.warning("Drain timed out with %d handler(s) still running", len(not_done))
                return

    async def _finish_inflight(self) -> None:
        """Give running handlers `drain_timeout_sec` to finish, then cancel the rest."""
        current = asyncio.current_task()
        pending = [t for t in self._inflight if t is not current and not t.done()]
        if not pending:
            return

        _, not_done = await asyncio.wait(pending, timeout=self.drain_timeout_sec)
        if not_done:
            logger.warning("Cancelling %d handler(s) still running at bus close", len(not_done))
            for task in not_done:
                task.cancel()
            await asyncio.gather(*not_done, return_exceptions=True)

    def _forget(self, sub: Subscription) -> None:
        with contextlib.suppress(ValueError):
            self._subscriptions.remove(sub)

    async def _read_loop(self, sub: Subscription) -> None:
        try:
            async for msg in self.iter_messages(sub._pubsub):
                data = msg.get("data")
                if data is None:
                    continue
                task = asyncio.create_task(self._dispatch(sub, data), name=f"risq-handler:{sub.subject}")
                self._inflight.add(task)
                task.add_done_callback(self._inflight.discard)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Reader for subject %s stopped", sub.subject)

        if sub.active:
            await self._mark_dead(sub)

    async def _mark_dead(self, sub: Subscription) -> None:
        sub._active = False
        self._forget(sub)
        self._dead_subjects.add(sub.subject)
        logger.error("Lost subscription to %s; bus marked disconnected", sub.subject)
        try:
            await sub._pubsub.aclose()
        except Exception as exc:
            logger.warning("Failed to close pubsub for %s: %s", sub.subject, exc)

    async def _dispatch(self, sub: Subscription, data: bytes) -> None:
        logger.debug("Received event on subject: %s", sub.subject)
        try:
            await sub.handler(data)
        except Exception:
            logger.exception("Error handling event on subject %s", sub.subject)
            return
        logger.debug("Successfully handled event on subject: %s", sub.subject)
