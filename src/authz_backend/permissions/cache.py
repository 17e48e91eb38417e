"""
Permission caching layer.

Read-through, write-invalidate caching of role permission sets, company
member lists and permission catalog snapshots on top of an aiocache backend
(Redis in production). The cache is best-effort: every backend failure is
logged and treated as a miss, never raised to the caller.
"""

import asyncio
import logging
from typing import Iterable, Optional, Set

from aiocache.base import BaseCache

from authz_backend.redis_cache import get_redis_client
from authz_backend.settings import settings

logger = logging.getLogger(__name__)


def role_permissions_key(role_id: str) -> str:
    return f"role:permissions:{role_id}"


def company_members_key(company_id: str) -> str:
    return f"company:members:{company_id}"


def permissions_catalog_key(include_inactive: bool = False) -> str:
    return "permissions:catalog:all" if include_inactive else "permissions:catalog"


class PermissionCache:
    """
    Best-effort cache for authorization data.

    Values are stored as whole serialized strings, so an entry is either
    absent, a complete stale value or a complete fresh value.
    """

    def __init__(self, backend: Optional[BaseCache] = None,
                 role_ttl: Optional[int] = None,
                 members_ttl: Optional[int] = None,
                 catalog_ttl: Optional[int] = None):
        """
        Initialize permission cache

        Args:
            backend: aiocache instance, defaults to the shared Redis client
            role_ttl: Lifetime of role permission entries in seconds
            members_ttl: Lifetime of company member lists in seconds
            catalog_ttl: Lifetime of catalog snapshots in seconds
        """
        self._backend = backend
        self.role_ttl = role_ttl if role_ttl is not None else settings.ROLE_PERMISSIONS_TTL
        self.members_ttl = members_ttl if members_ttl is not None else settings.COMPANY_MEMBERS_TTL
        self.catalog_ttl = catalog_ttl if catalog_ttl is not None else settings.CATALOG_TTL
        self.invalidations = InvalidationQueue(self)

    async def _client(self) -> BaseCache:
        if self._backend is None:
            self._backend = await get_redis_client()
        return self._backend

    async def get(self, key: str) -> Optional[str]:
        """Return the cached value or None on miss or backend failure"""
        try:
            cache = await self._client()
            value = await cache.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

        if value is None:
            logger.debug(f"Cache miss for {key}")
            return None

        logger.debug(f"Cache hit for {key}")
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl: int) -> bool:
        try:
            cache = await self._client()
            await cache.set(key, value, ttl=ttl)
            return True
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            cache = await self._client()
            await cache.delete(key)
            logger.debug(f"Invalidated cache entry {key}")
            return True
        except Exception as e:
            logger.warning(f"Cache invalidation failed for {key}: {e}")
            return False

    # Role permission sets
    async def get_role_permissions(self, role_id: str) -> Optional[str]:
        return await self.get(role_permissions_key(role_id))

    async def set_role_permissions(self, role_id: str, data: str) -> bool:
        return await self.set(role_permissions_key(role_id), data, self.role_ttl)

    async def invalidate_role(self, role_id: str) -> bool:
        return await self.delete(role_permissions_key(role_id))

    # Company member lists
    async def get_company_members(self, company_id: str) -> Optional[str]:
        return await self.get(company_members_key(company_id))

    async def set_company_members(self, company_id: str, data: str) -> bool:
        return await self.set(company_members_key(company_id), data, self.members_ttl)

    # Permission catalog snapshots
    async def get_catalog(self, include_inactive: bool = False) -> Optional[str]:
        return await self.get(permissions_catalog_key(include_inactive))

    async def set_catalog(self, data: str, include_inactive: bool = False) -> bool:
        return await self.set(permissions_catalog_key(include_inactive), data, self.catalog_ttl)

    def schedule_invalidation(self, *keys: str) -> Optional[asyncio.Task]:
        return self.invalidations.submit(keys)


class InvalidationQueue:
    """
    Fire-and-forget cache invalidation.

    Deletions run as background tasks on the current event loop. Delivery is
    not guaranteed: a failed or dropped invalidation leaves the old entry in
    place until its TTL expires. Writers never wait on it.
    """

    def __init__(self, cache: PermissionCache):
        self._cache = cache
        self._pending: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, keys: Iterable[str]) -> Optional[asyncio.Task]:
        keys = tuple(keys)
        if not keys:
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, dropping invalidation of {keys}")
            return None

        task = loop.create_task(self._invalidate(keys))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _invalidate(self, keys: tuple):
        for key in keys:
            try:
                await self._cache.delete(key)
            except Exception as e:
                logger.warning(f"Background invalidation of {key} failed: {e}")

    async def drain(self):
        """Wait for all outstanding invalidations"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
