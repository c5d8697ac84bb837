"""
The static catalog of application commands the bot registers in each guild.

Each definition declares the feature that gates it and the legacy capability needed to run it,
optionally overridden per subcommand.
"""

from __future__ import annotations

import enum
from typing import Any, Iterable, Mapping, Optional

import attrs
import discord
from discord import AppCommandOptionType

from bottrapper.constants import Feature


class Capability(enum.Flag):
    """Coarse permissions derived from a member's guild permissions when no role rule applies."""

    NONE = 0
    MANAGE_TICKETS = 1 << 0
    MANAGE_AUTORESPONSES = 1 << 1
    MANAGE_WEBHOOKS = 1 << 2
    VIEW_STATS = 1 << 3
    USE_EMBED_BUILDER = 1 << 4

    DEFAULT = USE_EMBED_BUILDER
    MODERATOR = MANAGE_TICKETS | VIEW_STATS | USE_EMBED_BUILDER
    ADMIN = MANAGE_TICKETS | MANAGE_AUTORESPONSES | MANAGE_WEBHOOKS | VIEW_STATS | USE_EMBED_BUILDER


@attrs.frozen
class OptionDefinition:
    name: str
    description: str
    type: AppCommandOptionType = AppCommandOptionType.string
    required: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "description": self.description,
            "required": self.required,
        }


@attrs.frozen
class SubcommandDefinition:
    """
    A subcommand of a catalog command.

    `capability` overrides the parent's requirement when set, `Capability.NONE` meaning anyone may run it.
    """

    name: str
    description: str
    options: tuple[OptionDefinition, ...] = ()
    capability: Optional[Capability] = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": AppCommandOptionType.subcommand.value,
            "name": self.name,
            "description": self.description,
            "options": [option.to_payload() for option in self.options],
        }


@attrs.frozen
class CommandDefinition:
    """A top level slash command and the metadata used to gate it."""

    name: str
    description: str
    feature: Optional[Feature] = None
    capability: Optional[Capability] = None
    subcommands: tuple[SubcommandDefinition, ...] = ()
    options: tuple[OptionDefinition, ...] = ()
    default_member_permissions: Optional[discord.Permissions] = None

    def get_subcommand(self, name: Optional[str]) -> Optional[SubcommandDefinition]:
        """Get a subcommand by name."""
        if name is None:
            return None
        for subcommand in self.subcommands:
            if subcommand.name == name:
                return subcommand
        return None

    def required_capability(self, subcommand: Optional[str] = None) -> Optional[Capability]:
        """The capability needed to run this command or one of its subcommands, if any."""
        sub = self.get_subcommand(subcommand)
        if sub is not None and sub.capability is not None:
            return sub.capability or None
        return self.capability

    def to_payload(self) -> dict[str, Any]:
        """Build the application command structure sent to the registration API."""
        options = [sub.to_payload() for sub in self.subcommands] + [option.to_payload() for option in self.options]
        payload: dict[str, Any] = {
            "type": discord.AppCommandType.chat_input.value,
            "name": self.name,
            "description": self.description,
            "options": options,
            "dm_permission": False,
        }
        if self.default_member_permissions is not None:
            payload["default_member_permissions"] = str(self.default_member_permissions.value)
        return payload


def _option(
    name: str,
    description: str,
    type: AppCommandOptionType = AppCommandOptionType.string,
    *,
    required: bool = False,
) -> OptionDefinition:
    return OptionDefinition(name, description, type, required)


COMMAND_CATALOG: tuple[CommandDefinition, ...] = (
    CommandDefinition(
        "ticket",
        "Ticket system commands",
        feature=Feature.TICKETS,
        capability=Capability.MANAGE_TICKETS,
        subcommands=(
            SubcommandDefinition(
                "create",
                "Create a new ticket",
                (_option("reason", "Reason for the ticket", required=True),),
                capability=Capability.NONE,
            ),
            SubcommandDefinition("close", "Close the current ticket"),
            SubcommandDefinition("setup", "Set up the ticket system"),
        ),
    ),
    CommandDefinition(
        "autoresponse",
        "Manage automatic responses",
        feature=Feature.AUTORESPONSES,
        capability=Capability.MANAGE_AUTORESPONSES,
        subcommands=(
            SubcommandDefinition(
                "add",
                "Add an automatic response",
                (
                    _option("trigger", "Trigger word or phrase", required=True),
                    _option("response", "Response text", required=True),
                    _option("embed", "Send the response as an embed", AppCommandOptionType.boolean),
                ),
            ),
            SubcommandDefinition(
                "remove",
                "Remove an automatic response",
                (_option("trigger", "Trigger word or phrase", required=True),),
            ),
            SubcommandDefinition("list", "List every automatic response"),
        ),
        default_member_permissions=discord.Permissions(manage_messages=True),
    ),
    CommandDefinition(
        "stats",
        "Show bot statistics",
        feature=Feature.STATISTICS,
        capability=Capability.VIEW_STATS,
        subcommands=(
            SubcommandDefinition(
                "commands",
                "Show command usage statistics",
                (_option("days", "Number of days (default: 30)", AppCommandOptionType.integer),),
            ),
            SubcommandDefinition("tickets", "Show ticket statistics"),
            SubcommandDefinition("overview", "Show a general overview of the bot"),
        ),
    ),
    CommandDefinition(
        "webhook",
        "Manage webhooks",
        feature=Feature.WEBHOOKS,
        capability=Capability.MANAGE_WEBHOOKS,
        subcommands=(
            SubcommandDefinition(
                "add",
                "Add a new webhook",
                (
                    _option("name", "Name of the webhook", required=True),
                    _option("url", "Webhook URL", required=True),
                ),
            ),
            SubcommandDefinition("remove", "Remove a webhook", (_option("name", "Name of the webhook", required=True),)),
            SubcommandDefinition("list", "List every webhook"),
            SubcommandDefinition(
                "test",
                "Send a test message through a webhook",
                (
                    _option("name", "Name of the webhook", required=True),
                    _option("message", "Test message"),
                ),
            ),
        ),
        default_member_permissions=discord.Permissions(administrator=True),
    ),
    CommandDefinition(
        "autorole",
        "Manage roles given to new members",
        feature=Feature.AUTOROLES,
        subcommands=(
            SubcommandDefinition(
                "add",
                "Add an auto role",
                (_option("role", "The role to give automatically", AppCommandOptionType.role, required=True),),
            ),
            SubcommandDefinition(
                "remove",
                "Remove an auto role",
                (_option("role", "The auto role to remove", AppCommandOptionType.role, required=True),),
            ),
            SubcommandDefinition("list", "List every configured auto role"),
            SubcommandDefinition(
                "toggle",
                "Enable or disable an auto role",
                (
                    _option("role", "The auto role to toggle", AppCommandOptionType.role, required=True),
                    _option("active", "Whether the auto role is active", AppCommandOptionType.boolean, required=True),
                ),
            ),
        ),
        default_member_permissions=discord.Permissions(manage_roles=True),
    ),
    CommandDefinition(
        "embed",
        "Create a custom embed",
        capability=Capability.USE_EMBED_BUILDER,
        options=(
            _option("title", "Title of the embed", required=True),
            _option("description", "Description of the embed", required=True),
            _option("color", "Colour of the embed (hex without #)"),
            _option("thumbnail", "Thumbnail URL"),
            _option("image", "Image URL"),
        ),
    ),
    CommandDefinition(
        "bottrapper",
        "Bot system management",
        subcommands=(
            SubcommandDefinition(
                "setup",
                "Set up the notification system",
                (
                    _option(
                        "info_channel",
                        "The channel for bot notifications",
                        AppCommandOptionType.channel,
                        required=True,
                    ),
                ),
            ),
        ),
        default_member_permissions=discord.Permissions.none(),
    ),
    CommandDefinition(
        "changelog",
        "Show the changelog of the bot",
        options=(_option("version", "Show a specific version"),),
    ),
    CommandDefinition("data", "Show the privacy policy of the bot"),
    CommandDefinition("tos", "Show the terms of service of the bot"),
)

_CATALOG_BY_NAME: dict[str, CommandDefinition] = {command.name: command for command in COMMAND_CATALOG}


def get_command(name: str) -> Optional[CommandDefinition]:
    """Get a catalog command by its name."""
    return _CATALOG_BY_NAME.get(name)


def filter_catalog(
    enabled: Iterable[Feature],
    catalog: Iterable[CommandDefinition] = COMMAND_CATALOG,
) -> list[CommandDefinition]:
    """Get the commands whose feature, if any, is enabled."""
    enabled = frozenset(enabled)
    return [command for command in catalog if command.feature is None or command.feature in enabled]


def build_payload(commands: Iterable[CommandDefinition]) -> list[dict[str, Any]]:
    """Build the registration payload for these commands."""
    return [command.to_payload() for command in commands]


def command_features(catalog: Iterable[CommandDefinition] = COMMAND_CATALOG) -> Mapping[str, Feature]:
    """Map every gated command name to its feature."""
    return {command.name: command.feature for command in catalog if command.feature is not None}
