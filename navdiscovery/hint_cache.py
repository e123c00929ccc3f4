"""
Hint Cache
==========
Per-domain memory of selectors that produced a sufficient result.

``HintCache`` is a thin pass-through to an external TTL key-value store.
Expiry is the store's job.  Every store or serialization failure is
reported as a cache miss (``get``) or a skipped write (``set``); the
engine never fails because the cache did.

Stores:
  - ``RedisKeyValueStore``    — ``redis.asyncio`` client, ``SETEX`` writes
  - ``InMemoryKeyValueStore`` — process-local, clock-injectable (tests, no Redis)
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from .models import Hint
from .utils import extract_domain

logger = logging.getLogger(__name__)

MEGA_MENU_HINT_TTL_S = 7 * 24 * 3600
ADAPTIVE_HINT_TTL_S = 72 * 3600


class KeyValueStore(ABC):
    """Minimal TTL-capable string store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    async def close(self) -> None:
        return None


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store.  The client is created lazily from ``url``."""

    def __init__(self, url: Optional[str] = None, client=None):
        if client is None and not url:
            raise ValueError("RedisKeyValueStore needs a url or a client")
        self.url = url
        self.redis_client = client

    def _client(self):
        if self.redis_client is None:
            self.redis_client = redis.from_url(self.url, decode_responses=True)
        return self.redis_client

    async def get(self, key: str) -> Optional[str]:
        value = await self._client().get(key)
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client().setex(key, int(ttl_seconds), value)

    async def close(self) -> None:
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None


class InMemoryKeyValueStore(KeyValueStore):
    """Dict-backed store with lazy expiry on read.

    Args:
        clock: callable returning the current time in seconds.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._data: Dict[str, Tuple[str, float]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        self._data[key] = (value, self._clock() + ttl_seconds)


class HintCache:
    """Domain-keyed ``Hint`` storage: key format ``<prefix>:<domain>``."""

    def __init__(self, store: KeyValueStore, key_prefix: str = "nav_hints"):
        self.store = store
        self.key_prefix = key_prefix

    @classmethod
    def from_url(cls, redis_url: Optional[str], key_prefix: str = "nav_hints") -> "HintCache":
        """Redis when a URL is configured, otherwise an in-process store."""
        if redis_url:
            return cls(RedisKeyValueStore(redis_url), key_prefix)
        return cls(InMemoryKeyValueStore(), key_prefix)

    def key_for(self, domain: str) -> str:
        return f"{self.key_prefix}:{extract_domain(domain)}"

    async def get(self, domain: str) -> Optional[Hint]:
        key = self.key_for(domain)
        try:
            raw = await self.store.get(key)
            if raw is None:
                return None
            hint = Hint.from_dict(json.loads(raw))
        except Exception as exc:
            logger.warning(f"[HINTS] read failed for {key}, treating as miss: {exc}")
            return None
        logger.debug(f"[HINTS] ✓ hit {key}")
        return hint

    async def set(self, domain: str, hint: Hint, ttl_seconds: int) -> bool:
        key = self.key_for(domain)
        try:
            payload = json.dumps(hint.to_dict())
            await self.store.set_with_expiry(key, payload, ttl_seconds)
        except Exception as exc:
            logger.warning(f"[HINTS] write failed for {key}: {exc}")
            return False
        logger.info(f"[HINTS] stored {key} (ttl {ttl_seconds}s)")
        return True

    async def close(self) -> None:
        try:
            await self.store.close()
        except Exception as exc:
            logger.debug(f"[HINTS] close failed: {exc}")
