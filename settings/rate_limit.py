from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from redis import asyncio as aioredis

from settings.config import Settings


class RateLimitStore(ABC):
	"""Counts requests per key in fixed windows. Injected, never module-global."""

	@abstractmethod
	async def hit(self, key: str, limit: int, window_seconds: int) -> bool:
		"""Record one request; return True when `key` is over `limit` for the current window."""

	async def close(self) -> None:
		return None


class InMemoryRateLimitStore(RateLimitStore):
	"""Single-process store; resets on restart. Expired windows are swept at most once per `sweep_interval` seconds."""

	def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 1.0) -> None:
		self._clock = clock
		self._windows: Dict[str, Tuple[int, float]] = {}
		self.sweep_interval = sweep_interval
		self._next_sweep = 0.0

	def __len__(self) -> int:
		return len(self._windows)

	def _sweep(self, now: float) -> None:
		expired = [key for key, (_, reset_at) in self._windows.items() if now >= reset_at]
		for key in expired:
			del self._windows[key]
		self._next_sweep = now + self.sweep_interval

	async def hit(self, key: str, limit: int, window_seconds: int) -> bool:
		now = self._clock()
		if now >= self._next_sweep:
			self._sweep(now)
		count, reset_at = self._windows.get(key, (0, 0.0))
		if now >= reset_at:
			self._windows[key] = (1, now + window_seconds)
			return False
		if count >= limit:
			return True
		self._windows[key] = (count + 1, reset_at)
		return False


class RedisRateLimitStore(RateLimitStore):
	"""Shared store for multi-instance deployments."""

	def __init__(self, client: aioredis.Redis, prefix: str = "ratelimit:") -> None:
		self.client = client
		self.prefix = prefix

	@classmethod
	def from_url(cls, url: str) -> "RedisRateLimitStore":
		return cls(aioredis.from_url(url))

	async def hit(self, key: str, limit: int, window_seconds: int) -> bool:
		redis_key = f"{self.prefix}{key}"
		async with self.client.pipeline(transaction=True) as pipe:
			pipe.incr(redis_key)
			pipe.expire(redis_key, window_seconds, nx=True)
			count, _ = await pipe.execute()
		return int(count) > limit

	async def close(self) -> None:
		await self.client.aclose()


def build_rate_limit_store(settings: Settings, client: Optional[aioredis.Redis] = None) -> RateLimitStore:
	if client is not None:
		return RedisRateLimitStore(client)
	if settings.REDIS_URL:
		return RedisRateLimitStore.from_url(settings.REDIS_URL)
	return InMemoryRateLimitStore()
