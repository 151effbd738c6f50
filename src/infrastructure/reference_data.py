"""
Per-service reference data prefetched when a flow enters a service.

A loader answers two questions: "is there a usable cached copy?" and "fetch
a fresh copy".  The flow store asks the first, falls back to the second, and
keeps whatever it gets for the hosting UI.

``ServiceTierLoader`` caches the active tiers of one service in Redis as a
JSON list (``tiers:<service>``) with a TTL; the database is the source of
truth.
"""

from __future__ import annotations

import json
import logging
from typing import Awaitable, Callable, Optional, Protocol, TypeVar

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.domain.entities import ServiceTier
from src.domain.enums import ServiceType
from src.infrastructure.database import async_session_factory
from src.infrastructure.redis_client import get_redis
from src.infrastructure.repositories import ServiceTierRepository

logger = logging.getLogger(__name__)

T = TypeVar("T", covariant=True)


class ReferenceDataLoader(Protocol[T]):
    service: ServiceType
    # When True, ``FlowStore.open_service`` waits for the data before the
    # first step is shown.
    required_before_render: bool

    async def load_cached_reference_data(self) -> Optional[T]: ...

    async def fetch_reference_data(self) -> T: ...


def cache_key(service: ServiceType) -> str:
    return f"tiers:{service.value}"


class ServiceTierLoader:
    def __init__(
        self,
        service: ServiceType,
        *,
        required_before_render: bool = False,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        redis_getter: Callable[[], Awaitable[aioredis.Redis]] = get_redis,
        ttl_seconds: int | None = None,
    ):
        self.service = service
        self.required_before_render = required_before_render
        self._session_factory = session_factory
        self._redis_getter = redis_getter
        self._ttl = ttl_seconds or settings.reference_cache_ttl_seconds

    async def load_cached_reference_data(self) -> Optional[list[ServiceTier]]:
        redis = await self._redis_getter()
        raw = await redis.get(cache_key(self.service))
        if raw is None:
            return None
        try:
            return [ServiceTier.from_dict(item) for item in json.loads(raw)]
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding malformed tier cache for %s", self.service.value)
            return None

    async def fetch_reference_data(self) -> list[ServiceTier]:
        async with self._session_factory() as session:
            rows = await ServiceTierRepository(session).list_active(self.service)
            tiers = [row.to_entity() for row in rows]

        try:
            redis = await self._redis_getter()
            await redis.set(
                cache_key(self.service),
                json.dumps([tier.to_dict() for tier in tiers]),
                ex=self._ttl,
            )
        except aioredis.RedisError:
            logger.warning("Could not cache tiers for %s", self.service.value, exc_info=True)

        logger.info("Fetched %d tiers for %s", len(tiers), self.service.value)
        return tiers


def build_tier_loaders(
    required_before_render: frozenset[ServiceType] = frozenset({ServiceType.TRANSPORT}),
) -> dict[ServiceType, ServiceTierLoader]:
    """One loader per service.  Transport tiers gate vehicle selection."""
    return {
        service: ServiceTierLoader(
            service, required_before_render=service in required_before_render
        )
        for service in ServiceType
    }
