from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord.ext import commands

from bottrapper import constants
from bottrapper.access import RoleRule
from bottrapper.utils import responses
from bottrapper.utils.checks import GlobalAdminRequired, is_owner_or_global_admin


if TYPE_CHECKING:
    from bottrapper.bot import BotTrapper

    CommandNameConverter = str
else:
    from bottrapper.utils.converters import CommandNameConverter


def _format_commands(names: frozenset[str]) -> str:
    return ", ".join(f"`{name}`" for name in sorted(names)) or "*none*"


class CommandPermissions(commands.Cog, name="Command Permissions"):
    """Manage which roles may, or may not, use each slash command in a guild."""

    def __init__(self, bot: BotTrapper) -> None:
        self.bot = bot

    async def cog_check(self, ctx: commands.Context) -> bool:
        """Require all commands be used in guilds by bot owners or global admins."""
        if not ctx.guild:
            raise commands.NoPrivateMessage()
        if await is_owner_or_global_admin(ctx):
            return True
        raise GlobalAdminRequired()

    async def _get_rule(self, guild_id: int, role: discord.Role) -> RoleRule:
        rules = await self.bot.access.permissions.get_role_rules(guild_id, [role.id])
        return rules[0] if rules else RoleRule(guild_id, role.id)

    @commands.group(name="permissions", aliases=("perms",), invoke_without_command=True)
    async def cmd_permissions(self, ctx: commands.Context, role: discord.Role) -> None:
        """Show the commands a role is explicitly allowed and denied."""
        rule = await self._get_rule(ctx.guild.id, role)
        embed = discord.Embed(title=f"Command permissions for @{role.name}", colour=constants.Colours.teal)
        embed.add_field(name="Allowed", value=_format_commands(rule.allowed_commands), inline=False)
        embed.add_field(name="Denied", value=_format_commands(rule.denied_commands), inline=False)
        embed.set_footer(text="A deny on any of a member's roles beats an allow on any other.")
        await ctx.send(embed=embed)

    @cmd_permissions.command(name="allow", require_var_positional=True)
    async def cmd_allow(self, ctx: commands.Context, role: discord.Role, *names: CommandNameConverter) -> None:
        """Explicitly allow a role to use the commands."""
        rule = await self._get_rule(ctx.guild.id, role)
        await self.bot.access.permissions.set_role_rule(
            ctx.guild.id,
            role.id,
            allowed=rule.allowed_commands | set(names),
            denied=rule.denied_commands - set(names),
            actor_id=ctx.author.id,
        )
        await responses.send_positive_response(
            ctx, f"@{role.name} may now use {_format_commands(frozenset(names))}."
        )

    @cmd_permissions.command(name="deny", require_var_positional=True)
    async def cmd_deny(self, ctx: commands.Context, role: discord.Role, *names: CommandNameConverter) -> None:
        """Explicitly deny a role the use of the commands."""
        rule = await self._get_rule(ctx.guild.id, role)
        await self.bot.access.permissions.set_role_rule(
            ctx.guild.id,
            role.id,
            allowed=rule.allowed_commands - set(names),
            denied=rule.denied_commands | set(names),
            actor_id=ctx.author.id,
        )
        await responses.send_positive_response(
            ctx, f"@{role.name} may no longer use {_format_commands(frozenset(names))}."
        )

    @cmd_permissions.command(name="clear")
    async def cmd_clear(self, ctx: commands.Context, role: discord.Role, *names: CommandNameConverter) -> None:
        """Remove explicit rules for the commands from a role, or every rule if no commands are given."""
        rule = await self._get_rule(ctx.guild.id, role)
        to_clear = set(names) if names else rule.allowed_commands | rule.denied_commands
        await self.bot.access.permissions.set_role_rule(
            ctx.guild.id,
            role.id,
            allowed=rule.allowed_commands - to_clear,
            denied=rule.denied_commands - to_clear,
            actor_id=ctx.author.id,
        )
        await responses.send_positive_response(
            ctx, f"Cleared the rules of @{role.name} for {_format_commands(frozenset(to_clear))}."
        )


async def setup(bot: BotTrapper) -> None:
    """Add the command permissions cog to the bot."""
    await bot.add_cog(CommandPermissions(bot))
