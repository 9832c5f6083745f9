from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from redis import asyncio as aioredis

from risq.core.bus.bus_schemas import utcnow

logger = logging.getLogger("risq.clients.context_store")

DEFAULT_CONTEXT_TTL_SEC = 7 * 24 * 3600


class ContextStoreError(RuntimeError):
    """Raised when a context chunk cannot be written or read."""


class ContextStore(Protocol):
    async def store(self, startup_id: UUID, content: str, metadata: Dict[str, Any], ttl: int) -> None: ...


class ContextChunk(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    startup_id: UUID
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)


def chunk_key(startup_id: UUID | str, chunk_id: str) -> str:
    return f"context:{startup_id}:{chunk_id}"


class RedisContextStore:
    """
    Startup context memory backed by plain Redis keys.

    Each chunk is one JSON document with its own expiry; nothing is indexed,
    so retrieval scans the startup's key prefix.
    """

    def __init__(self, url: str = "redis://localhost:6379/0", *, client: Optional[aioredis.Redis] = None) -> None:
        self.url = url
        self._redis = client or aioredis.from_url(url, decode_responses=True)

    async def close(self) -> None:
        await self._redis.aclose()

    async def store(
        self,
        startup_id: UUID,
        content: str,
        metadata: Dict[str, Any],
        ttl: int = DEFAULT_CONTEXT_TTL_SEC,
    ) -> None:
        chunk = ContextChunk(startup_id=startup_id, content=content, metadata=dict(metadata or {}))
        key = chunk_key(startup_id, chunk.id)
        try:
            await self._redis.set(key, chunk.model_dump_json(), ex=int(ttl))
        except Exception as exc:
            raise ContextStoreError(f"failed to store context chunk: {exc}") from exc
        logger.info("Stored context chunk %s for startup %s", chunk.id, startup_id)

    async def fetch(self, startup_id: UUID, limit: int = 10) -> List[ContextChunk]:
        """Newest-first chunks stored for one startup."""
        chunks: List[ContextChunk] = []
        try:
            async for key in self._redis.scan_iter(match=chunk_key(startup_id, "*")):
                raw = await self._redis.get(key)
                if raw is None:
                    continue
                try:
                    chunks.append(ContextChunk.model_validate_json(raw))
                except ValidationError:
                    logger.warning("Skipping malformed context chunk at %s", key)
        except Exception as exc:
            raise ContextStoreError(f"failed to fetch context for startup {startup_id}: {exc}") from exc

        chunks.sort(key=lambda c: c.created_at, reverse=True)
        return chunks[:limit]
