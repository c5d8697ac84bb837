from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Optional, Protocol

import discord

from bottrapper.constants import Feature
from bottrapper.errors import RegistrationPublishFailed
from bottrapper.events import FeaturesChanged
from bottrapper.log import get_logger

from .catalog import COMMAND_CATALOG, CommandDefinition, build_payload, filter_catalog
from .features import FeatureFlagResolver


if TYPE_CHECKING:
    from discord.ext import commands


log = get_logger(__name__)


class CommandRegistrar(Protocol):
    """Publishes the full set of application commands for a guild, replacing whatever was there."""

    async def publish(self, guild_id: int, payload: list[dict[str, Any]]) -> None: ...


class DiscordRegistrar:
    """Bulk overwrites a guild's application commands through the discord http client."""

    def __init__(self, bot: commands.Bot) -> None:
        self.bot = bot

    async def publish(self, guild_id: int, payload: list[dict[str, Any]]) -> None:
        application_id = self.bot.application_id
        if application_id is None:
            raise RuntimeError("Cannot publish commands before the bot has logged in.")
        await self.bot.http.bulk_upsert_guild_commands(application_id, guild_id, payload)


class CatalogSynchronizer:
    """
    Keeps the commands registered in each guild in line with the guild's enabled features.

    Guilds whose last publish failed are remembered in `pending` until a later publish succeeds.
    """

    def __init__(
        self,
        features: FeatureFlagResolver,
        registrar: CommandRegistrar,
        catalog: Iterable[CommandDefinition] = COMMAND_CATALOG,
    ) -> None:
        self.features = features
        self.registrar = registrar
        self.catalog = tuple(catalog)
        self.pending: set[int] = set()

    def commands_for(self, features: Iterable[Feature]) -> list[CommandDefinition]:
        """The catalog commands visible with these features enabled."""
        return filter_catalog(features, self.catalog)

    async def resync(self, guild_id: int, features: Optional[Iterable[Feature]] = None) -> list[CommandDefinition]:
        """
        Publish the commands of the guild's enabled features.

        If `features` is not provided the resolver's current set is used.
        Raises `RegistrationPublishFailed` if the registration API rejected the publish.
        """
        if features is None:
            features = await self.features.get_enabled_features(guild_id)
        commands = self.commands_for(features)

        try:
            await self.registrar.publish(guild_id, build_payload(commands))
        except (discord.HTTPException, RuntimeError, OSError) as e:
            self.pending.add(guild_id)
            log.warning("Could not publish %d commands to guild %s: %s", len(commands), guild_id, e)
            raise RegistrationPublishFailed(guild_id, e) from e

        self.pending.discard(guild_id)
        log.debug("Published %d commands to guild %s", len(commands), guild_id)
        return commands

    async def resync_many(self, guild_ids: Iterable[int]) -> dict[int, RegistrationPublishFailed]:
        """Resync several guilds, collecting failures instead of stopping at the first."""
        failures: dict[int, RegistrationPublishFailed] = {}
        for guild_id in guild_ids:
            try:
                await self.resync(guild_id)
            except RegistrationPublishFailed as e:
                failures[guild_id] = e
        return failures

    async def retry_pending(self) -> dict[int, RegistrationPublishFailed]:
        """Retry every guild whose last publish failed."""
        if not self.pending:
            return {}
        log.info("Retrying command publish for %d guilds", len(self.pending))
        return await self.resync_many(sorted(self.pending))

    async def on_features_changed(self, event: FeaturesChanged) -> None:
        """Republish a guild's commands with the features carried by the event."""
        await self.resync(event.guild_id, event.features)
