from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from bottrapper import constants
from bottrapper.database.global_admin import MAX_ADMIN_LEVEL, MIN_ADMIN_LEVEL
from bottrapper.errors import InvalidAdminLevel
from bottrapper.utils import responses
from bottrapper.utils.checks import owner_or_global_admin


if TYPE_CHECKING:
    from bottrapper.bot import BotTrapper


class GlobalAdmins(commands.Cog, name="Global Admins"):
    """Manage the users with bot-wide administrative privileges."""

    def __init__(self, bot: BotTrapper) -> None:
        self.bot = bot

    @commands.group(name="admins", invoke_without_command=True)
    @owner_or_global_admin()
    async def cmd_admins(self, ctx: commands.Context) -> None:
        """List the active global admins."""
        admins = await self.bot.access.admins.list_admins()
        embed = discord.Embed(title="Global admins", colour=constants.Colours.teal)
        if admins:
            embed.description = "\n".join(
                f"<@{admin.user_id}> (`{admin.username}`) level {admin.level}" for admin in admins
            )
        else:
            embed.description = "There are no global admins."
        await ctx.send(embed=embed, allowed_mentions=discord.AllowedMentions.none())

    @cmd_admins.command(name="grant", aliases=("add",))
    @owner_or_global_admin(min_level=MAX_ADMIN_LEVEL)
    async def cmd_grant(self, ctx: commands.Context, user: discord.User, level: int = MIN_ADMIN_LEVEL) -> None:
        """Grant global admin to a user, or change their level."""
        try:
            await self.bot.access.admins.grant(user.id, user.name, level, granted_by=ctx.author.id)
        except InvalidAdminLevel as e:
            raise commands.BadArgument(str(e)) from e
        await responses.send_positive_response(ctx, f"{user.mention} is now a level {level} global admin.")

    @cmd_admins.command(name="revoke", aliases=("remove",))
    @owner_or_global_admin(min_level=MAX_ADMIN_LEVEL)
    async def cmd_revoke(self, ctx: commands.Context, user: discord.User) -> None:
        """Revoke global admin from a user."""
        if await self.bot.access.admins.revoke(user.id, revoked_by=ctx.author.id):
            await responses.send_positive_response(ctx, f"{user.mention} is no longer a global admin.")
        else:
            await responses.send_negatory_response(ctx, f"{user.mention} is not a global admin.")

    @cmd_admins.command(name="check")
    @owner_or_global_admin()
    async def cmd_check(self, ctx: commands.Context, user: discord.User) -> None:
        """Check whether a user is a global admin."""
        status = await self.bot.access.admins.is_global_admin(user.id)
        if status:
            await responses.send_positive_response(ctx, f"{user.mention} is a level {status.level} global admin.")
        else:
            await responses.send_negatory_response(ctx, f"{user.mention} is not a global admin.")


async def setup(bot: BotTrapper) -> None:
    """Add the global admin management cog to the bot."""
    await bot.add_cog(GlobalAdmins(bot))
