from __future__ import annotations

import re

from discord.ext import commands

from bottrapper.constants import Feature


FEATURE_NAME_REGEX = re.compile(r"^[a-z]+$")


class FeatureConverter(commands.Converter):
    """Convert a feature name, case insensitively, to a `Feature`."""

    async def convert(self, ctx: commands.Context, argument: str) -> Feature:
        """Check that the argument is the name of a feature."""
        argument = argument.strip().lower()
        if not FEATURE_NAME_REGEX.fullmatch(argument):
            raise commands.BadArgument(f"Feature name must match regex ``{FEATURE_NAME_REGEX.pattern}``.")
        try:
            return Feature(argument)
        except ValueError:
            valid = ", ".join(f"`{f.value}`" for f in Feature)
            raise commands.BadArgument(f"`{argument}` is not a feature. Valid features are {valid}.") from None


class CommandNameConverter(commands.Converter):
    """Validate the name of a top level slash command, as used by role rules."""

    async def convert(self, ctx: commands.Context, argument: str) -> str:
        """Lowercase the name and reject anything that can't be a slash command name."""
        argument = argument.strip().lower()
        if not re.fullmatch(r"[\w-]{1,32}", argument):
            raise commands.BadArgument(f"`{argument}` is not a valid command name.")
        return argument
