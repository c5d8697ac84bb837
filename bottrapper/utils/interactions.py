"""Utils for reading command invocations out of interactions."""

from __future__ import annotations

from typing import Any, Mapping, Optional

import attrs
import discord


SUBCOMMAND_OPTION_TYPES = frozenset(
    {
        discord.AppCommandOptionType.subcommand.value,
        discord.AppCommandOptionType.subcommand_group.value,
    }
)


@attrs.frozen
class Invocation:
    """Everything the permission resolver needs to know about a slash command invocation."""

    guild_id: int
    user_id: int
    role_ids: tuple[int, ...]
    command_name: str
    subcommand: Optional[str] = None
    permissions: Optional[discord.Permissions] = None
    owner_id: Optional[int] = None


def get_subcommand_name(data: Mapping[str, Any]) -> Optional[str]:
    """Get the name of the subcommand or subcommand group in an application command payload, if any."""
    for option in data.get("options") or ():
        if option.get("type") in SUBCOMMAND_OPTION_TYPES:
            return option.get("name")
    return None


def get_invocation(interaction: discord.Interaction) -> Optional[Invocation]:
    """
    Build an `Invocation` from an interaction.

    Returns None for anything that isn't a slash command used in a guild.
    """
    if interaction.type is not discord.InteractionType.application_command:
        return None
    if interaction.guild_id is None:
        return None

    data: Mapping[str, Any] = interaction.data or {}  # type: ignore[assignment]
    command_name = data.get("name")
    if not command_name:
        return None

    user = interaction.user
    role_ids = tuple(role.id for role in getattr(user, "roles", ()))
    guild = interaction.guild

    # capabilities come from guild permissions, channel overwrites do not apply
    if isinstance(user, discord.Member):
        permissions = user.guild_permissions
    else:
        permissions = interaction.permissions

    return Invocation(
        guild_id=interaction.guild_id,
        user_id=user.id,
        role_ids=role_ids,
        command_name=command_name,
        subcommand=get_subcommand_name(data),
        permissions=permissions,
        owner_id=guild.owner_id if guild is not None else None,
    )
