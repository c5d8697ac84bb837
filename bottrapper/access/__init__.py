"""
Access control and feature gating.

`AccessControl` wires the admin registry, the feature flag resolver, the command permission resolver
and the catalog synchronizer around a single store.
"""

from __future__ import annotations

import datetime
import time
from typing import Callable, Optional

import redis.asyncio

from bottrapper.constants import Feature
from bottrapper.utils.caching import AsyncCache, RedisCache, TTLCache

from .admins import AdminRegistry, AdminStatus
from .catalog import COMMAND_CATALOG, Capability, CommandDefinition
from .features import FeatureFlagResolver, FeatureUpdate
from .permissions import CommandPermissionResolver, DecisionReason, PermissionDecision, aggregate_role_rules
from .store import AccessStore, AdminRecord, DatabaseStore, RoleRule
from .sync import CatalogSynchronizer, CommandRegistrar, DiscordRegistrar


__all__ = (
    "COMMAND_CATALOG",
    "AccessControl",
    "AccessStore",
    "AdminRecord",
    "AdminRegistry",
    "AdminStatus",
    "Capability",
    "CatalogSynchronizer",
    "CommandDefinition",
    "CommandPermissionResolver",
    "CommandRegistrar",
    "DatabaseStore",
    "DecisionReason",
    "DiscordRegistrar",
    "FeatureFlagResolver",
    "FeatureUpdate",
    "PermissionDecision",
    "RoleRule",
    "aggregate_role_rules",
)


class AccessControl:
    """The access engine of a single bot process."""

    def __init__(
        self,
        store: AccessStore,
        *,
        admin_cache: AsyncCache[int, AdminStatus],
        feature_cache: AsyncCache[int, frozenset[Feature]],
        registrar: Optional[CommandRegistrar] = None,
    ) -> None:
        self.store = store
        self.admins = AdminRegistry(store, admin_cache)
        self.features = FeatureFlagResolver(store, feature_cache)
        self.permissions = CommandPermissionResolver(store, self.features, self.admins)

        self.sync: Optional[CatalogSynchronizer] = None
        if registrar is not None:
            self.sync = CatalogSynchronizer(self.features, registrar)
            self.features.add_listener(self.sync.on_features_changed)

    @classmethod
    def with_memory_caches(
        cls,
        store: AccessStore,
        *,
        ttl: datetime.timedelta,
        registrar: Optional[CommandRegistrar] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> AccessControl:
        """Create an engine whose caches live in this process."""
        return cls(
            store,
            admin_cache=TTLCache("global_admins", timeout=ttl, clock=clock),
            feature_cache=TTLCache("guild_features", timeout=ttl, clock=clock),
            registrar=registrar,
        )

    @classmethod
    def with_redis_caches(
        cls,
        store: AccessStore,
        *,
        session: redis.asyncio.Redis,
        prefix: str,
        ttl: datetime.timedelta,
        registrar: Optional[CommandRegistrar] = None,
    ) -> AccessControl:
        """Create an engine whose caches are shared through redis."""
        return cls(
            store,
            admin_cache=RedisCache(f"{prefix}global_admins", session=session, timeout=ttl),
            feature_cache=RedisCache(f"{prefix}guild_features", session=session, timeout=ttl),
            registrar=registrar,
        )

    async def check_command_permission(
        self,
        guild_id: int,
        user_id: int,
        role_ids: list[int],
        command_name: str,
        **kwargs,
    ) -> PermissionDecision:
        """Shortcut for `CommandPermissionResolver.check_command_permission`."""
        return await self.permissions.check_command_permission(guild_id, user_id, role_ids, command_name, **kwargs)
