from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord import app_commands

from bottrapper.access import AccessControl, DecisionReason
from bottrapper.access.catalog import get_command
from bottrapper.errors import CommandForbidden, FeatureDisabled
from bottrapper.log import get_logger
from bottrapper.utils.interactions import get_invocation


if TYPE_CHECKING:
    from bottrapper.bot import BotTrapper


log = get_logger(__name__)


async def check_invocation(access: AccessControl, interaction: discord.Interaction) -> bool:
    """
    Check the invoking member may run the slash command.

    Raises `FeatureDisabled` or `CommandForbidden` instead of returning False,
    so that the error handler can tell the member why.
    """
    invocation = get_invocation(interaction)
    if invocation is None:
        return True

    decision = await access.check_command_permission(
        invocation.guild_id,
        invocation.user_id,
        list(invocation.role_ids),
        invocation.command_name,
        subcommand=invocation.subcommand,
        permissions=invocation.permissions,
        owner_id=invocation.owner_id,
    )
    if decision:
        log.trace(
            "Allowed %s to use %s in guild %s: %s",
            invocation.user_id,
            invocation.command_name,
            invocation.guild_id,
            decision.reason.value,
        )
        return True

    log.debug(
        "Denied %s the use of %s in guild %s: %s",
        invocation.user_id,
        invocation.command_name,
        invocation.guild_id,
        decision.reason.value,
    )
    if decision.reason is DecisionReason.FEATURE_DISABLED:
        command = get_command(invocation.command_name)
        raise FeatureDisabled(command.feature if command else None)
    raise CommandForbidden(invocation.command_name)


class BotTrapperCommandTree(app_commands.CommandTree["BotTrapper"]):
    """Gates every slash command behind the guild's features and the member's permissions."""

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        """Run the access check before any command side effects."""
        return await check_invocation(self.client.access, interaction)

    async def on_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError) -> None:
        """Hand slash command errors to the error handler cog as an `app_command_error` event."""
        self.client.dispatch("app_command_error", interaction, error)
