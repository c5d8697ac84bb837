from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional, Union

import discord
from discord.ext import commands, tasks

from bottrapper import constants
from bottrapper.access import CatalogSynchronizer
from bottrapper.errors import RegistrationPublishFailed
from bottrapper.log import get_logger
from bottrapper.metadata import ExtMetadata
from bottrapper.utils import responses
from bottrapper.utils.checks import owner_or_global_admin


if TYPE_CHECKING:
    from bottrapper.bot import BotTrapper


EXT_METADATA = ExtMetadata(core=True)

logger = get_logger(__name__)


class CommandSync(commands.Cog, name="Command Sync"):
    """Keeps the slash commands registered in every guild in line with the guild's features."""

    def __init__(self, bot: BotTrapper) -> None:
        self.bot = bot
        self._synced_on_startup = False

    @property
    def sync(self) -> CatalogSynchronizer:
        """Shortcut to the access engine's catalog synchronizer."""
        if self.bot.access.sync is None:
            msg = "The access engine was created without a command registrar."
            raise RuntimeError(msg)
        return self.bot.access.sync

    async def cog_load(self) -> None:
        """Start retrying failed publishes in the background."""
        self.retry_pending.change_interval(seconds=constants.Access.resync_retry_seconds)
        self.retry_pending.start()

    async def cog_unload(self) -> None:
        """Stop the retry task."""
        self.retry_pending.cancel()

    def startup_guild_ids(self) -> Iterable[int]:
        """Every guild the bot is in, followed by any TEST_GUILDS the bot isn't in."""
        guild_ids = [guild.id for guild in self.bot.guilds]
        extra = sorted(set(constants.Client.test_guild_ids) - set(guild_ids))
        if extra:
            logger.debug("Also syncing commands to test guilds %s.", extra)
        return guild_ids + extra

    async def _resync_all(self, guild_ids: Iterable[int]) -> dict[int, RegistrationPublishFailed]:
        guild_ids = list(guild_ids)
        failures = await self.sync.resync_many(guild_ids)
        logger.info(
            "Published commands to %d guilds, %d failed and will be retried.",
            len(guild_ids) - len(failures),
            len(failures),
        )
        return failures

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        """Publish every guild's commands once after the first connection."""
        if self._synced_on_startup:
            return
        self._synced_on_startup = True
        await self._resync_all(self.startup_guild_ids())

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild) -> None:
        """Publish the commands of a newly joined guild."""
        logger.info("Joined guild %s (%s), publishing its commands.", guild.name, guild.id)
        try:
            await self.sync.resync(guild.id)
        except RegistrationPublishFailed:
            # already logged, and the retry task picks the guild back up
            pass

    @tasks.loop(minutes=5)
    async def retry_pending(self) -> None:
        """Retry the guilds whose last publish failed."""
        await self.sync.retry_pending()

    @retry_pending.before_loop
    async def before_retry_pending(self) -> None:
        """Wait for the gateway before retrying anything."""
        await self.bot.wait_until_ready()

    @commands.group(name="commands", invoke_without_command=True)
    @owner_or_global_admin()
    async def cmd_commands(self, ctx: commands.Context) -> None:
        """Show the guilds whose command publish is pending."""
        pending = sorted(self.sync.pending)
        if not pending:
            await responses.send_positive_response(ctx, "Every guild's commands are up to date.")
            return
        await responses.send_negatory_response(
            ctx,
            "Publishing is pending for guild IDs " + ", ".join(f"`{g}`" for g in pending) + ".",
            title="Pending publishes",
        )

    @cmd_commands.command(name="sync")
    @owner_or_global_admin()
    async def cmd_sync(
        self,
        ctx: commands.Context,
        guild: Optional[Union[discord.Guild, discord.Object]] = None,
    ) -> None:
        """Publish the commands of a guild, defaulting to this one."""
        if guild is None and ctx.guild is None:
            raise commands.NoPrivateMessage()
        guild_id = (guild or ctx.guild).id
        try:
            published = await self.sync.resync(guild_id)
        except RegistrationPublishFailed as e:
            await responses.send_negatory_response(ctx, f"Could not publish the commands of `{guild_id}`: {e.original}")
            return
        await responses.send_positive_response(ctx, f"Published {len(published)} commands to `{guild_id}`.")

    @cmd_commands.command(name="syncall")
    @owner_or_global_admin()
    async def cmd_sync_all(self, ctx: commands.Context) -> None:
        """Publish the commands of every guild the bot is in."""
        async with ctx.typing():
            failures = await self._resync_all(guild.id for guild in self.bot.guilds)
        if failures:
            await responses.send_negatory_response(
                ctx, f"{len(failures)} guilds failed and will be retried: " + ", ".join(f"`{g}`" for g in failures)
            )
        else:
            await responses.send_positive_response(ctx, f"Published the commands of {len(self.bot.guilds)} guilds.")


async def setup(bot: BotTrapper) -> None:
    """Add the command sync cog to the bot."""
    await bot.add_cog(CommandSync(bot))
