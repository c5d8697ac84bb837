from __future__ import annotations

from typing import TYPE_CHECKING

from discord.ext import commands

from bottrapper.log import get_logger


if TYPE_CHECKING:
    from bottrapper.bot import BotTrapper


log = get_logger(__name__)


class GlobalAdminRequired(commands.CheckFailure):
    """Raised when a management command is used by someone who is neither a bot owner nor a global admin."""

    def __init__(self) -> None:
        super().__init__("This command is restricted to the bot owners and global admins.")


async def is_owner_or_global_admin(ctx: commands.Context[BotTrapper], *, min_level: int = 1) -> bool:
    """Whether the author owns the bot or is an active global admin of at least `min_level`."""
    if await ctx.bot.is_owner(ctx.author):
        return True
    status = await ctx.bot.access.admins.is_global_admin(ctx.author.id)
    return status.is_admin and status.level >= min_level


def owner_or_global_admin(*, min_level: int = 1) -> commands.Check:
    """Restrict a command to the bot owners and global admins."""

    async def predicate(ctx: commands.Context[BotTrapper]) -> bool:
        if await is_owner_or_global_admin(ctx, min_level=min_level):
            return True
        log.debug("%s (%s) tried to use management command %s", ctx.author, ctx.author.id, ctx.command)
        raise GlobalAdminRequired()

    return commands.check(predicate)
