from __future__ import annotations

from typing import Optional

import attrs

from bottrapper.database.global_admin import MAX_ADMIN_LEVEL, MIN_ADMIN_LEVEL
from bottrapper.errors import InvalidAdminLevel, StoreUnavailable
from bottrapper.log import get_logger
from bottrapper.utils.caching import AsyncCache

from .store import AccessStore, AdminRecord


log = get_logger(__name__)


@attrs.frozen
class AdminStatus:
    is_admin: bool
    level: int = 0

    def __bool__(self) -> bool:
        return self.is_admin


NOT_ADMIN = AdminStatus(False, 0)


class AdminRegistry:
    """
    Answers whether a user is an active global admin.

    Answers, including negative ones, are cached per user id for the lifetime of the cache entries.
    Granting or revoking clears the affected user's entry so the change is seen immediately by this process.
    """

    def __init__(self, store: AccessStore, cache: AsyncCache[int, AdminStatus]) -> None:
        self.store = store
        self.cache = cache

    async def is_global_admin(self, user_id: int) -> AdminStatus:
        """Get the admin status of a user, from the cache when possible."""
        cached = await self.cache.get(user_id)
        if cached is not None:
            return cached

        try:
            record = await self.store.get_active_admin(user_id)
        except StoreUnavailable as e:
            # not cached, the next call retries the store
            log.error("Could not check global admin status of %s, treating them as a regular user: %s", user_id, e)
            return NOT_ADMIN

        status = AdminStatus(True, record.level) if record else NOT_ADMIN
        await self.cache.set(user_id, status)
        return status

    async def grant(
        self,
        user_id: int,
        username: str,
        level: int = MIN_ADMIN_LEVEL,
        granted_by: Optional[int] = None,
    ) -> AdminRecord:
        """Grant or update global admin for a user."""
        if not MIN_ADMIN_LEVEL <= level <= MAX_ADMIN_LEVEL:
            raise InvalidAdminLevel(level)

        record = await self.store.upsert_admin(user_id, username, level, granted_by)
        await self.cache.delete(user_id)
        log.info("Granted global admin level %s to %s (%s), granted by %s", level, username, user_id, granted_by)
        return record

    async def revoke(self, user_id: int, revoked_by: Optional[int] = None) -> bool:
        """Revoke global admin from a user. Returns whether they were an active admin."""
        revoked = await self.store.deactivate_admin(user_id, revoked_by)
        await self.cache.delete(user_id)
        if revoked:
            log.info("Revoked global admin from %s, revoked by %s", user_id, revoked_by)
        return revoked

    async def list_admins(self) -> list[AdminRecord]:
        """List every active global admin."""
        return await self.store.list_active_admins()
