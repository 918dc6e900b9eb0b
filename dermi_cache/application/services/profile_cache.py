"""
Cached Profile Lookups

Cache-aside wrappers for the profile reads behind most page loads: user
profiles, doctor profiles and doctor listings. The database query is the
producer; this module owns the keys, TTLs and invalidation.

- User and doctor profiles live for CACHE_USER_PROFILE_TTL (1 hour).
- Doctor listings live for CACHE_DOCTOR_LIST_TTL (5 minutes) and are keyed
  by their filters.

Invalidation deletes the affected keys. Filtered listings are not tracked
individually and age out with their short TTL; the unfiltered listing is
dropped whenever a doctor profile changes.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel

from dermi_cache.core.config.constants import Stage
from dermi_cache.core.config.settings import get_settings
from dermi_cache.core.keys import CacheKeys
from dermi_cache.core.logging.logger import get_logger, log_stage
from dermi_cache.infrastructure.cache.cache_manager import CacheManager, get_cache_manager

logger = get_logger(__name__)

ProfileProducer = Callable[[str], Awaitable[Any] | Any]
ListProducer = Callable[[dict[str, Any] | None], Awaitable[Any] | Any]


def _normalize_filters(filters: dict[str, Any] | None) -> dict[str, Any] | None:
    # Unset filters must share the key of an absent filter
    if not filters:
        return None
    present = {name: value for name, value in filters.items() if value is not None}
    return present or None


class ProfileCache:
    """
    Cached profile and listing reads.

    Usage:
        profiles = ProfileCache()
        profile = await profiles.get_user_profile(user_id, fetch_profile)
        ...
        await update_profile(user_id, changes)
        await profiles.invalidate_user_profile(user_id)
    """

    def __init__(self, cache: CacheManager | None = None, settings=None):
        settings = settings or get_settings()
        self._cache = cache
        self._profile_ttl = settings.cache.CACHE_USER_PROFILE_TTL
        self._doctor_list_ttl = settings.cache.CACHE_DOCTOR_LIST_TTL

    @property
    def cache(self) -> CacheManager:
        return self._cache or get_cache_manager()

    # -------------------------------------------------------------------------
    # User profiles
    # -------------------------------------------------------------------------

    async def get_user_profile(
        self,
        user_id: str,
        producer: ProfileProducer,
        model: type[BaseModel] | None = None,
    ) -> Any:
        """
        User profile from cache or the database.

        Args:
            user_id: Profile owner
            producer: Database read, invoked with ``user_id`` on a miss. A
                ``None`` result (no such user) is cached like any other.
            model: Optional pydantic model to validate cached hits into
        """
        key = CacheKeys.user_profile(user_id)
        log_stage(logger, Stage.KEY_DERIVATION, "User profile lookup", cache_key=key)
        return await self.cache.get_cache_or_set(
            key, lambda: producer(user_id), ttl=self._profile_ttl, model=model
        )

    async def prefetch_user_profile(self, user_id: str, producer: ProfileProducer) -> None:
        """Warm the cache before the profile is needed."""
        await self.get_user_profile(user_id, producer)

    async def invalidate_user_profile(self, user_id: str) -> bool:
        """Drop a cached profile after it changed. False if the store was unreachable."""
        key = CacheKeys.user_profile(user_id)
        deleted = await self.cache.delete(key)
        log_stage(logger, Stage.CACHE_POPULATE, "User profile invalidated", cache_key=key, deleted=deleted)
        return deleted

    # -------------------------------------------------------------------------
    # Doctors
    # -------------------------------------------------------------------------

    async def get_doctor_profile(
        self,
        doctor_id: str,
        producer: ProfileProducer,
        model: type[BaseModel] | None = None,
    ) -> Any:
        key = CacheKeys.doctor_profile(doctor_id)
        log_stage(logger, Stage.KEY_DERIVATION, "Doctor profile lookup", cache_key=key)
        return await self.cache.get_cache_or_set(
            key, lambda: producer(doctor_id), ttl=self._profile_ttl, model=model
        )

    async def get_doctor_list(
        self,
        producer: ListProducer,
        filters: dict[str, Any] | None = None,
    ) -> Any:
        """
        Doctor listing for a set of filters.

        Filters are keyed order-independently, and filters set to None are
        ignored. The producer receives the normalized filters (None when
        unfiltered).
        """
        normalized = _normalize_filters(filters)
        key = CacheKeys.doctor_list(normalized)
        log_stage(logger, Stage.KEY_DERIVATION, "Doctor list lookup", cache_key=key)
        return await self.cache.get_cache_or_set(
            key, lambda: producer(normalized), ttl=self._doctor_list_ttl
        )

    async def invalidate_doctor_list(self) -> bool:
        """Drop the unfiltered doctor listing."""
        return await self.cache.delete(CacheKeys.doctor_list())

    async def invalidate_doctor_profile(self, doctor_id: str) -> bool:
        """
        Drop a doctor's profile and the unfiltered listing that shows it.

        Returns:
            True only if both deletes reached the store
        """
        profile_deleted = await self.cache.delete(CacheKeys.doctor_profile(doctor_id))
        list_deleted = await self.invalidate_doctor_list()
        log_stage(
            logger,
            Stage.CACHE_POPULATE,
            "Doctor profile invalidated",
            doctor_id=doctor_id,
            deleted=profile_deleted and list_deleted,
        )
        return profile_deleted and list_deleted


_profile_cache: ProfileCache | None = None


def get_profile_cache() -> ProfileCache:
    global _profile_cache
    if _profile_cache is None:
        _profile_cache = ProfileCache()
    return _profile_cache


async def get_cached_user_profile(
    user_id: str, producer: ProfileProducer, model: type[BaseModel] | None = None
) -> Any:
    return await get_profile_cache().get_user_profile(user_id, producer, model=model)


async def invalidate_user_profile_cache(user_id: str) -> bool:
    return await get_profile_cache().invalidate_user_profile(user_id)


async def get_cached_doctor_profile(
    doctor_id: str, producer: ProfileProducer, model: type[BaseModel] | None = None
) -> Any:
    return await get_profile_cache().get_doctor_profile(doctor_id, producer, model=model)


async def get_cached_doctor_list(
    producer: ListProducer, filters: dict[str, Any] | None = None
) -> Any:
    return await get_profile_cache().get_doctor_list(producer, filters=filters)


async def invalidate_doctor_profile_cache(doctor_id: str) -> bool:
    return await get_profile_cache().invalidate_doctor_profile(doctor_id)


async def invalidate_doctor_list_cache() -> bool:
    return await get_profile_cache().invalidate_doctor_list()
