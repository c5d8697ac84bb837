from __future__ import annotations

from typing import TYPE_CHECKING

from discord import app_commands


if TYPE_CHECKING:
    from bottrapper.constants import Feature


class StoreUnavailable(RuntimeError):
    """Raised when the persistent store cannot be reached, times out, or the driver fails."""

    def __init__(self, operation: str, *, original: BaseException | None = None) -> None:
        self.operation = operation
        self.original = original
        msg = f"The access store is unavailable while running {operation!r}"
        if original is not None:
            msg += f": {type(original).__name__}: {original}"
        super().__init__(msg)


class InvalidFeatureName(ValueError):
    """Raised when a feature patch references a feature that does not exist."""

    def __init__(self, name: object) -> None:
        self.name = name
        super().__init__(f"Invalid feature: {name!r}")


class InvalidAdminLevel(ValueError):
    """Raised when a global admin would be granted a level outside of the supported range."""

    def __init__(self, level: int) -> None:
        self.level = level
        super().__init__(f"Admin level must be between 1 and 3, not {level}.")


class RegistrationPublishFailed(RuntimeError):
    """
    Raised when the command catalog could not be published for a guild.

    Attributes:
        `guild_id` -- the guild the publish was for
        `original` -- the error raised by the registration API
    """

    def __init__(self, guild_id: int, original: BaseException) -> None:
        self.guild_id = guild_id
        self.original = original
        super().__init__(f"Could not publish the command catalog for guild {guild_id}: {original}")


class FeatureDisabled(app_commands.CheckFailure):
    """Raised when a feature is attempted to be used that is currently disabled for that guild."""

    def __init__(self, feature: Feature | None = None) -> None:
        self.feature = feature
        super().__init__("This feature is currently disabled.")


class CommandForbidden(app_commands.CheckFailure):
    """Raised when the invoking member is not permitted to run the command."""

    def __init__(self, command_name: str) -> None:
        self.command_name = command_name
        super().__init__("You are not permitted to use this command.")
