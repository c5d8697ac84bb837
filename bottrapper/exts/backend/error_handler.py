from __future__ import annotations

import re
import typing
from typing import Mapping, TypeVar

import discord
from discord import app_commands
from discord.ext import commands

from bottrapper.errors import CommandForbidden, FeatureDisabled
from bottrapper.log import get_logger
from bottrapper.metadata import ExtMetadata
from bottrapper.utils import responses


if typing.TYPE_CHECKING:
    from bottrapper.bot import BotTrapper


EXT_METADATA = ExtMetadata(core=True)

logger = get_logger(__name__)

T = TypeVar("T")

ERROR_COLOUR = responses.DEFAULT_FAILURE_COLOUR

ERROR_TITLE_REGEX = re.compile(r"((?<=[a-z])[A-Z]|(?<=[a-zA-Z])[A-Z](?=[a-z]))")

DEFAULT_LOCALE = "en"

# title and description of the reply, keyed by locale
FEATURE_DISABLED_MESSAGES: dict[str, tuple[str, str]] = {
    "en": ("Feature Disabled", "This feature is currently disabled in this server."),
    "de": ("Feature deaktiviert", "Dieses Feature ist auf diesem Server derzeit deaktiviert."),
}
FORBIDDEN_MESSAGES: dict[str, tuple[str, str]] = {
    "en": ("Missing Permissions", "You don't have permission to use this command!"),
    "de": ("Keine Berechtigung", "Du hast keine Berechtigung für diesen Befehl!"),
}
INTERNAL_ERROR_MESSAGES: dict[str, tuple[str, str]] = {
    "en": ("Internal Error", "Something went wrong while running this command!"),
    "de": ("Interner Fehler", "Es gab einen Fehler beim Ausführen des Befehls!"),
}


def get_locale_from_dict(messages: Mapping[str, T], locale: typing.Union[discord.Locale, str, None]) -> T:
    """Get the entry for a locale, falling back to its language and then to english."""
    if locale is not None:
        locale = str(locale)
        if locale in messages:
            return messages[locale]
        language = locale.split("-", 1)[0]
        if language in messages:
            return messages[language]
    return messages[DEFAULT_LOCALE]


class ErrorHandler(commands.Cog, name="Error Handler"):
    """Handles all errors across the bot."""

    def __init__(self, bot: BotTrapper) -> None:
        self.bot = bot

    @staticmethod
    def error_embed(title: str, message: str) -> discord.Embed:
        """Create an error embed with an error colour and reason and return it."""
        return discord.Embed(title=title, description=message, colour=ERROR_COLOUR)

    @staticmethod
    def get_title_from_name(error: typing.Union[Exception, str]) -> str:
        """
        Return a message dervived from the exception class name.

        Eg MissingRequiredArgument returns Missing Required Argument
        """
        if not isinstance(error, str):
            error = error.__class__.__name__
        return re.sub(ERROR_TITLE_REGEX, r" \1", error)

    def make_app_command_error_embed(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> typing.Optional[discord.Embed]:
        """Build the reply for a failed slash command, or None if there shouldn't be one."""
        if isinstance(error, app_commands.CommandNotFound):
            return None

        if isinstance(error, FeatureDisabled):
            title, message = get_locale_from_dict(FEATURE_DISABLED_MESSAGES, interaction.locale)
        elif isinstance(error, CommandForbidden):
            title, message = get_locale_from_dict(FORBIDDEN_MESSAGES, interaction.locale)
        elif isinstance(error, app_commands.CheckFailure):
            title, message = self.get_title_from_name(error), str(error)
        elif isinstance(error, app_commands.CommandInvokeError):
            command_name = interaction.command.qualified_name if interaction.command else "unknown"
            logger.error(
                "Error occurred in app command %s in guild %s with user %s",
                command_name,
                interaction.guild_id,
                interaction.user.id,
                exc_info=error.original,
            )
            title, message = get_locale_from_dict(INTERNAL_ERROR_MESSAGES, interaction.locale)
        else:
            title, message = self.get_title_from_name(error), str(error)
        return self.error_embed(title, message)

    @commands.Cog.listener()
    async def on_app_command_error(
        self,
        interaction: discord.Interaction,
        error: app_commands.AppCommandError,
    ) -> None:
        """Answer a failed slash command with a single ephemeral embed."""
        try:
            embed = self.make_app_command_error_embed(interaction, error)
            if embed is None:
                return
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException as e:
            # the interaction has most likely expired
            logger.warning("Could not reply to a failed interaction %s: %s", interaction.id, e)

    @commands.Cog.listener()
    async def on_command_error(self, ctx: commands.Context, error: commands.CommandError) -> None:
        """Activates when a prefix command raises an error."""
        if getattr(error, "handled", False):
            logger.debug("Command %s had its error already handled locally, ignoring.", ctx.command)
            return

        if isinstance(error, commands.CommandNotFound):
            # ignore every time the user inputs a message that starts with our prefix but isn't a command
            return

        if isinstance(error, commands.UserInputError):
            embed = self.error_embed(self.get_title_from_name(error), str(error))
        elif isinstance(error, commands.CheckFailure):
            embed = self.error_embed("Check Failure", str(error) or "You can't use this command.")
        elif isinstance(error, commands.CommandInvokeError):
            logger.error(
                "Error occurred in prefix command %s in guild %s with user %s",
                ctx.command and ctx.command.qualified_name,
                ctx.guild and ctx.guild.id,
                ctx.author.id,
                exc_info=error.original,
            )
            embed = self.error_embed(*INTERNAL_ERROR_MESSAGES[DEFAULT_LOCALE])
        else:
            embed = self.error_embed(self.get_title_from_name(error), str(error))

        try:
            await ctx.send(embed=embed, allowed_mentions=discord.AllowedMentions.none())
        except discord.HTTPException as e:
            logger.error("Unable to send an error message to channel %s: %s", ctx.channel, e)


async def setup(bot: BotTrapper) -> None:
    """Add the error handler to the bot."""
    await bot.add_cog(ErrorHandler(bot))
