"""
Persistent storage for guild features, role rules and the global admin roster.

Every method is a single short unit of work with a bounded timeout.
Connection failures, driver errors and timeouts are all reported as `StoreUnavailable`.
A missing row is never an error, it is answered with `None` or an empty collection.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Collection, Iterable, Optional, Protocol, TypeVar

import attrs
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bottrapper.constants import ALL_FEATURES, Feature
from bottrapper.database import ActivityLog, CommandPermissionRule, GlobalAdmin, GuildConfig
from bottrapper.errors import StoreUnavailable
from bottrapper.log import get_logger


T = TypeVar("T")

log = get_logger(__name__)


@attrs.frozen
class AdminRecord:
    user_id: int
    username: str
    level: int
    granted_by: Optional[int] = None
    is_active: bool = True


@attrs.frozen
class RoleRule:
    """The explicit allow and deny lists for one role in one guild."""

    guild_id: int
    role_id: int
    allowed_commands: frozenset[str] = attrs.field(factory=frozenset, converter=frozenset)
    denied_commands: frozenset[str] = attrs.field(factory=frozenset, converter=frozenset)


class AccessStore(Protocol):
    """The persistence operations the access engine depends on."""

    async def get_active_admin(self, user_id: int) -> Optional[AdminRecord]: ...

    async def list_active_admins(self) -> list[AdminRecord]: ...

    async def upsert_admin(self, user_id: int, username: str, level: int, granted_by: Optional[int]) -> AdminRecord: ...

    async def deactivate_admin(self, user_id: int, revoked_by: Optional[int]) -> bool: ...

    async def get_enabled_features(self, guild_id: int) -> frozenset[Feature]: ...

    async def set_enabled_features(self, guild_id: int, features: Collection[Feature]) -> None: ...

    async def get_role_rules(self, guild_id: int, role_ids: Iterable[int]) -> list[RoleRule]: ...

    async def set_role_rule(
        self, guild_id: int, role_id: int, *, allowed: Collection[str], denied: Collection[str]
    ) -> RoleRule: ...

    async def delete_role_rule(self, guild_id: int, role_id: int) -> bool: ...

    async def log_activity(
        self,
        action: str,
        *,
        actor_id: Optional[int] = None,
        target_id: Optional[int] = None,
        guild_id: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None: ...


def _admin_record(admin: GlobalAdmin) -> AdminRecord:
    return AdminRecord(
        user_id=admin.user_id,
        username=admin.username,
        level=admin.level,
        granted_by=admin.granted_by,
        is_active=admin.is_active,
    )


def _role_rule(rule: CommandPermissionRule) -> RoleRule:
    return RoleRule(
        guild_id=rule.guild_id,
        role_id=rule.role_id,
        allowed_commands=rule.allowed_commands,
        denied_commands=rule.denied_commands,
    )


class DatabaseStore:
    """An `AccessStore` backed by SQLAlchemy's asyncio extension."""

    def __init__(
        self,
        db: async_sessionmaker[AsyncSession],
        *,
        statement_timeout: float = 5.0,
        default_features: Collection[Feature] = ALL_FEATURES,
    ) -> None:
        self.db = db
        self.statement_timeout = statement_timeout
        self.default_features = frozenset(default_features)

    async def _run(self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run `work` inside of a transaction, translating any failure into `StoreUnavailable`."""

        async def runner() -> T:
            async with self.db.begin() as session:
                return await work(session)

        try:
            return await asyncio.wait_for(runner(), timeout=self.statement_timeout)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            log.warning("Store operation %s failed: %s: %s", operation, type(e).__name__, e)
            raise StoreUnavailable(operation, original=e) from e

    # admins

    async def get_active_admin(self, user_id: int) -> Optional[AdminRecord]:
        """Get the admin record for the user if they are an active global admin."""

        async def work(session: AsyncSession) -> Optional[AdminRecord]:
            stmt = sa.select(GlobalAdmin).where(GlobalAdmin.user_id == user_id, GlobalAdmin.is_active.is_(True))
            admin = await session.scalar(stmt)
            return _admin_record(admin) if admin else None

        return await self._run("get_active_admin", work)

    async def list_active_admins(self) -> list[AdminRecord]:
        """List every active global admin, most privileged first."""

        async def work(session: AsyncSession) -> list[AdminRecord]:
            stmt = (
                sa.select(GlobalAdmin)
                .where(GlobalAdmin.is_active.is_(True))
                .order_by(GlobalAdmin.level.desc(), GlobalAdmin.granted_at)
            )
            return [_admin_record(admin) for admin in await session.scalars(stmt)]

        return await self._run("list_active_admins", work)

    async def upsert_admin(self, user_id: int, username: str, level: int, granted_by: Optional[int]) -> AdminRecord:
        """Create or reactivate a global admin, overwriting their username and level."""

        async def work(session: AsyncSession) -> AdminRecord:
            admin = await session.get(GlobalAdmin, user_id)
            if admin is None:
                admin = GlobalAdmin(user_id=user_id, username=username, level=level, granted_by=granted_by)
                session.add(admin)
            else:
                admin.username = username
                admin.level = level
                admin.granted_by = granted_by
                admin.is_active = True
            session.add(
                ActivityLog(
                    action="grant_global_admin",
                    actor_id=granted_by,
                    target_id=user_id,
                    details={"username": username, "level": level},
                )
            )
            await session.flush()
            return _admin_record(admin)

        return await self._run("upsert_admin", work)

    async def deactivate_admin(self, user_id: int, revoked_by: Optional[int]) -> bool:
        """Soft delete a global admin. Returns whether an active admin was revoked."""

        async def work(session: AsyncSession) -> bool:
            admin = await session.get(GlobalAdmin, user_id)
            if admin is None or not admin.is_active:
                return False
            admin.is_active = False
            session.add(ActivityLog(action="revoke_global_admin", actor_id=revoked_by, target_id=user_id))
            return True

        return await self._run("deactivate_admin", work)

    # features

    async def _get_or_create_guild(self, session: AsyncSession, guild_id: int) -> GuildConfig:
        config = await session.get(GuildConfig, guild_id)
        if config is None:
            log.debug("Creating configuration for guild %s with the default features", guild_id)
            config = GuildConfig(
                guild_id=guild_id,
                feature_names=sorted(f.value for f in self.default_features),
            )
            session.add(config)
            await session.flush()
        return config

    async def get_enabled_features(self, guild_id: int) -> frozenset[Feature]:
        """Get the guild's enabled features, creating its configuration on first access."""

        async def work(session: AsyncSession) -> frozenset[Feature]:
            config = await self._get_or_create_guild(session, guild_id)
            return config.features

        return await self._run("get_enabled_features", work)

    async def set_enabled_features(self, guild_id: int, features: Collection[Feature]) -> None:
        """Replace the guild's enabled features."""

        async def work(session: AsyncSession) -> None:
            config = await self._get_or_create_guild(session, guild_id)
            config.feature_names = sorted(f.value for f in features)

        await self._run("set_enabled_features", work)

    # role rules

    async def get_role_rules(self, guild_id: int, role_ids: Iterable[int]) -> list[RoleRule]:
        """Get the rules of every listed role that has one in this guild."""
        role_ids = list(role_ids)
        if not role_ids:
            return []

        async def work(session: AsyncSession) -> list[RoleRule]:
            stmt = sa.select(CommandPermissionRule).where(
                CommandPermissionRule.guild_id == guild_id,
                CommandPermissionRule.role_id.in_(role_ids),
            )
            return [_role_rule(rule) for rule in await session.scalars(stmt)]

        return await self._run("get_role_rules", work)

    async def set_role_rule(
        self, guild_id: int, role_id: int, *, allowed: Collection[str], denied: Collection[str]
    ) -> RoleRule:
        """Replace the allow and deny lists of a role."""

        async def work(session: AsyncSession) -> RoleRule:
            rule = await session.get(CommandPermissionRule, (guild_id, role_id))
            if rule is None:
                rule = CommandPermissionRule(guild_id=guild_id, role_id=role_id)
                session.add(rule)
            rule.allowed_commands = sorted(allowed)
            rule.denied_commands = sorted(denied)
            await session.flush()
            return _role_rule(rule)

        return await self._run("set_role_rule", work)

    async def delete_role_rule(self, guild_id: int, role_id: int) -> bool:
        """Delete the role's rule. Returns whether a rule existed."""

        async def work(session: AsyncSession) -> bool:
            rule = await session.get(CommandPermissionRule, (guild_id, role_id))
            if rule is None:
                return False
            await session.delete(rule)
            return True

        return await self._run("delete_role_rule", work)

    # activity

    async def log_activity(
        self,
        action: str,
        *,
        actor_id: Optional[int] = None,
        target_id: Optional[int] = None,
        guild_id: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        """Append a row to the activity log."""

        async def work(session: AsyncSession) -> None:
            session.add(
                ActivityLog(
                    action=action,
                    actor_id=actor_id,
                    target_id=target_id,
                    guild_id=guild_id,
                    details=details,
                )
            )

        await self._run("log_activity", work)
