from dataclasses import dataclass


@dataclass()
class ExtMetadata:
    """Describes how an extension is treated when only part of the bot is loaded."""

    core: bool = False
    "Whether the extension is loaded even when BOT_EXTENSIONS names a subset."
    no_unload: bool = False
    "Whether the extension refuses to be unloaded at runtime."
