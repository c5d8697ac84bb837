"""
Helper methods for responses from the bot to the user.

These keep the look of success and failure messages consistent across the management commands.
Errors raised by commands are answered by the error handler instead.
"""

import random
from typing import Any, Literal, Optional, Tuple

import discord

from bottrapper import constants
from bottrapper.log import get_logger


__all__ = (
    "DEFAULT_SUCCESS_COLOUR",
    "SUCCESS_HEADERS",
    "DEFAULT_FAILURE_COLOUR",
    "FAILURE_HEADERS",
    "send_general_response",
    "send_positive_response",
    "send_negatory_response",
)

_UNSET: Any = object()

logger = get_logger(__name__)


DEFAULT_SUCCESS_COLOUR = discord.Colour(constants.Colours.soft_green)
SUCCESS_HEADERS: Tuple[str, ...] = (
    "Affirmative",
    "As you wish",
    "Done",
    "There we go",
    "Okay",
    "You got it",
    "Can do!",
    "Sure thing!",
    "No problem.",
    "Alright.",
)

DEFAULT_FAILURE_COLOUR = discord.Colour(constants.Colours.soft_red)
FAILURE_HEADERS: Tuple[str, ...] = (
    "Abort!",
    "I cannot do that",
    "Hold up!",
    "Oops",
    "Something went wrong",
    "Unable to complete your command",
    "No can do.",
    "Sorry, I can't",
    "Try again?",
)


async def send_general_response(
    channel: discord.abc.Messageable,
    response: str,
    *,
    embed: Optional[discord.Embed] = _UNSET,
    colour: Optional[discord.Colour] = None,
    title: Optional[str] = None,
    tag_as: Literal["general", "affirmative", "negatory"] = "general",
    **kwargs,
) -> discord.Message:
    """
    Helper method to send a response.

    Shortcuts are provided as `send_positive_response` and `send_negatory_response` which
    fill in the title and colour automatically.
    """
    kwargs["allowed_mentions"] = kwargs.get("allowed_mentions", discord.AllowedMentions.none())

    logger.debug("Requested to send %s response message to %s. Response: %s", tag_as, channel, response)

    if embed is None:
        return await channel.send(response, **kwargs)

    if embed is _UNSET:  # pragma: no branch
        embed = discord.Embed(colour=colour)

    if title is not None:
        embed.title = title

    embed.description = response
    return await channel.send(embed=embed, **kwargs)


async def send_positive_response(
    channel: discord.abc.Messageable,
    response: str,
    *,
    colour: discord.Colour = _UNSET,
    **kwargs,
) -> discord.Message:
    """
    Send an affirmative response.

    If embed is set to None, this will send response as a plaintext message, with no allowed_mentions.
    Extra kwargs are passed to Messageable.send()
    """
    if colour is _UNSET:  # pragma: no branch
        colour = DEFAULT_SUCCESS_COLOUR

    kwargs["title"] = kwargs.get("title", random.choice(SUCCESS_HEADERS))

    return await send_general_response(channel, response, colour=colour, tag_as="affirmative", **kwargs)


async def send_negatory_response(
    channel: discord.abc.Messageable,
    response: str,
    *,
    colour: discord.Colour = _UNSET,
    **kwargs,
) -> discord.Message:
    """
    Send a negatory response.

    If embed is set to None, this will send response as a plaintext message, with no allowed_mentions.
    Extra kwargs are passed to Messageable.send()
    """
    if colour is _UNSET:  # pragma: no branch
        colour = DEFAULT_FAILURE_COLOUR

    kwargs["title"] = kwargs.get("title", random.choice(FAILURE_HEADERS))

    return await send_general_response(channel, response, colour=colour, tag_as="negatory", **kwargs)
