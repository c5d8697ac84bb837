"""
Decides whether a member may run a command in a guild.

The checks run in a fixed order and the first one that applies decides:

1. a command whose feature is disabled is denied to everyone
2. the guild owner is allowed
3. global admins are allowed
4. explicit role rules, where a deny on any role beats an allow on any other
5. legacy capabilities derived from the member's guild permissions
6. anything left without a requirement is allowed
"""

from __future__ import annotations

import enum
from typing import Collection, Iterable, Optional

import attrs
import discord

from bottrapper.errors import StoreUnavailable
from bottrapper.log import get_logger

from .admins import AdminRegistry
from .catalog import Capability, CommandDefinition, get_command
from .features import FeatureFlagResolver
from .store import AccessStore, RoleRule


log = get_logger(__name__)


class DecisionReason(enum.Enum):
    FEATURE_DISABLED = "feature_disabled"
    OWNER = "owner"
    GLOBAL_ADMIN = "global_admin"
    ROLE_DENY = "role_deny"
    ROLE_ALLOW = "role_allow"
    LEGACY_ALLOW = "legacy_allow"
    LEGACY_DENY = "legacy_deny"
    UNRESTRICTED = "unrestricted"


@attrs.frozen
class PermissionDecision:
    """The outcome of a permission check. Truthy if the command may be run."""

    allowed: bool
    reason: DecisionReason

    def __bool__(self) -> bool:
        return self.allowed


@attrs.frozen
class AggregatedRules:
    allowed: frozenset[str] = frozenset()
    denied: frozenset[str] = frozenset()


def aggregate_role_rules(rules: Iterable[RoleRule], role_ids: Collection[int]) -> AggregatedRules:
    """Union the allow and deny lists of every rule belonging to one of the roles."""
    role_ids = set(role_ids)
    allowed: set[str] = set()
    denied: set[str] = set()
    for rule in rules:
        if rule.role_id not in role_ids:
            continue
        allowed.update(rule.allowed_commands)
        denied.update(rule.denied_commands)
    return AggregatedRules(frozenset(allowed), frozenset(denied))


def capabilities_from_permissions(permissions: Optional[discord.Permissions]) -> Capability:
    """Map a member's guild permissions to their legacy capabilities."""
    if permissions is None:
        return Capability.DEFAULT
    if permissions.administrator:
        return Capability.ADMIN
    if permissions.manage_messages or permissions.manage_channels:
        return Capability.MODERATOR
    return Capability.DEFAULT


class CommandPermissionResolver:
    """Combines feature flags, global admins, role rules and legacy capabilities into a single decision."""

    def __init__(
        self,
        store: AccessStore,
        features: FeatureFlagResolver,
        admins: AdminRegistry,
    ) -> None:
        self.store = store
        self.features = features
        self.admins = admins

    async def check_command_permission(
        self,
        guild_id: int,
        user_id: int,
        role_ids: Collection[int],
        command_name: str,
        *,
        subcommand: Optional[str] = None,
        permissions: Optional[discord.Permissions] = None,
        owner_id: Optional[int] = None,
    ) -> PermissionDecision:
        """Decide whether the user may run the command, or its subcommand, in the guild."""
        command = get_command(command_name)

        if command is not None and command.feature is not None:
            if not await self.features.is_feature_enabled(guild_id, command.feature):
                return PermissionDecision(False, DecisionReason.FEATURE_DISABLED)

        if owner_id is not None and user_id == owner_id:
            return PermissionDecision(True, DecisionReason.OWNER)

        if await self.admins.is_global_admin(user_id):
            return PermissionDecision(True, DecisionReason.GLOBAL_ADMIN)

        decision = await self._check_role_rules(guild_id, role_ids, command_name)
        if decision is not None:
            return decision

        return self._check_capabilities(command, subcommand, permissions)

    async def _check_role_rules(
        self,
        guild_id: int,
        role_ids: Collection[int],
        command_name: str,
    ) -> Optional[PermissionDecision]:
        if not role_ids:
            return None
        try:
            rules = await self.store.get_role_rules(guild_id, role_ids)
        except StoreUnavailable as e:
            log.error("Could not load role rules in guild %s, using legacy permissions: %s", guild_id, e)
            return None

        aggregated = aggregate_role_rules(rules, role_ids)
        if command_name in aggregated.denied:
            return PermissionDecision(False, DecisionReason.ROLE_DENY)
        if command_name in aggregated.allowed:
            return PermissionDecision(True, DecisionReason.ROLE_ALLOW)
        return None

    @staticmethod
    def _check_capabilities(
        command: Optional[CommandDefinition],
        subcommand: Optional[str],
        permissions: Optional[discord.Permissions],
    ) -> PermissionDecision:
        required = command.required_capability(subcommand) if command is not None else None
        if not required:
            return PermissionDecision(True, DecisionReason.UNRESTRICTED)

        if required in capabilities_from_permissions(permissions):
            return PermissionDecision(True, DecisionReason.LEGACY_ALLOW)
        return PermissionDecision(False, DecisionReason.LEGACY_DENY)

    async def set_role_rule(
        self,
        guild_id: int,
        role_id: int,
        *,
        allowed: Collection[str],
        denied: Collection[str],
        actor_id: Optional[int] = None,
    ) -> RoleRule:
        """Replace the allow and deny lists of a role. Rules with no commands left are deleted."""
        if not allowed and not denied:
            await self.store.delete_role_rule(guild_id, role_id)
            rule = RoleRule(guild_id, role_id)
        else:
            rule = await self.store.set_role_rule(guild_id, role_id, allowed=allowed, denied=denied)

        try:
            await self.store.log_activity(
                "set_role_rule",
                actor_id=actor_id,
                target_id=role_id,
                guild_id=guild_id,
                details={"allowed": sorted(allowed), "denied": sorted(denied)},
            )
        except StoreUnavailable as e:
            log.warning("Could not record the rule change of role %s in guild %s: %s", role_id, guild_id, e)
        return rule

    async def get_role_rules(self, guild_id: int, role_ids: Iterable[int]) -> list[RoleRule]:
        """Get the rules configured for these roles."""
        return await self.store.get_role_rules(guild_id, role_ids)
