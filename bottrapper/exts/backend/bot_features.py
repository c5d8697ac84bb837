from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Union

import discord
from discord.ext import commands

from bottrapper import constants
from bottrapper.access import FeatureUpdate
from bottrapper.constants import Feature
from bottrapper.log import get_logger
from bottrapper.utils import responses
from bottrapper.utils.checks import GlobalAdminRequired, is_owner_or_global_admin


if TYPE_CHECKING:
    from bottrapper.bot import BotTrapper

    FeatureConverter = Feature
else:
    from bottrapper.utils.converters import FeatureConverter

logger = get_logger(__name__)

GuildArgument = Union[discord.Guild, discord.Object]


class FeatureManagement(commands.Cog, name="Feature Management"):
    """Management commands for the features of each guild."""

    def __init__(self, bot: BotTrapper) -> None:
        self.bot = bot

    async def cog_check(self, ctx: commands.Context) -> bool:
        """Require all commands be used in guilds by bot owners or global admins."""
        if not ctx.guild:
            raise commands.NoPrivateMessage()
        if await is_owner_or_global_admin(ctx):
            return True
        raise GlobalAdminRequired()

    @staticmethod
    def _guild_name(guild: GuildArgument) -> str:
        return guild.name if isinstance(guild, discord.Guild) else f"Guild ID {guild.id}"

    @commands.group(name="features", invoke_without_command=True)
    async def cmd_features(self, ctx: commands.Context, guild: Optional[GuildArgument] = None) -> None:
        """List the features of a guild, defaulting to this one."""
        guild = guild or ctx.guild
        enabled = await self.bot.access.features.get_enabled_features(guild.id)

        lines = []
        for feature in Feature:
            status = "\N{WHITE HEAVY CHECK MARK}" if feature in enabled else "\N{CROSS MARK}"
            lines.append(f"{status} `{feature.value}`")

        embed = discord.Embed(
            title=f"Features for {self._guild_name(guild)}",
            description="\n".join(lines),
            colour=constants.Colours.teal,
        )
        await ctx.send(embed=embed)
        logger.debug("User %s (%s) requested guild features for %s", ctx.author, ctx.author.id, guild.id)

    async def _update(
        self,
        ctx: commands.Context,
        guild: Optional[GuildArgument],
        names: tuple[Feature, ...],
        *,
        enabled: bool,
    ) -> None:
        guild = guild or ctx.guild
        patch = {feature: enabled for feature in names}
        update: FeatureUpdate = await self.bot.access.features.update_features(guild.id, patch, actor_id=ctx.author.id)

        verb = "Enabled" if enabled else "Disabled"
        message = f"{verb} `{'`, `'.join(sorted(f.value for f in names))}` in {self._guild_name(guild)}."
        if update.ok:
            await responses.send_positive_response(ctx, message)
            return

        message += (
            "\n\nThe features were saved, but the guild's commands could not be updated yet. "
            "They will be retried automatically."
        )
        await responses.send_negatory_response(ctx, message, title="Commands not updated")

    @cmd_features.command(name="enable", aliases=("add",), require_var_positional=True)
    async def cmd_enable(
        self,
        ctx: commands.Context,
        guild: Optional[GuildArgument] = None,
        *names: FeatureConverter,
    ) -> None:
        """Enable the features in a guild, defaulting to this one."""
        await self._update(ctx, guild, names, enabled=True)

    @cmd_features.command(name="disable", aliases=("remove",), require_var_positional=True)
    async def cmd_disable(
        self,
        ctx: commands.Context,
        guild: Optional[GuildArgument] = None,
        *names: FeatureConverter,
    ) -> None:
        """Disable the features in a guild, defaulting to this one."""
        await self._update(ctx, guild, names, enabled=False)

    @cmd_features.command(name="refresh")
    async def cmd_refresh(self, ctx: commands.Context, guild: Optional[GuildArgument] = None) -> None:
        """Drop the cached features of a guild so they are read from the database again."""
        guild = guild or ctx.guild
        await self.bot.access.features.invalidate(guild.id)
        await responses.send_positive_response(ctx, f"Dropped the cached features of {self._guild_name(guild)}.")


async def setup(bot: BotTrapper) -> None:
    """Add the feature management cog to the bot."""
    await bot.add_cog(FeatureManagement(bot))
