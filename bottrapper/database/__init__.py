from .activity_log import ActivityLog
from .base import Base
from .command_permission import CommandPermissionRule
from .global_admin import GlobalAdmin
from .guild_config import GuildConfig


__all__ = (
    "ActivityLog",
    "Base",
    "CommandPermissionRule",
    "GlobalAdmin",
    "GuildConfig",
)
