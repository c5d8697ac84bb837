import importlib
import inspect
import pkgutil
from collections.abc import Generator
from typing import TYPE_CHECKING, NoReturn

from bottrapper import exts
from bottrapper.log import get_logger


if TYPE_CHECKING:
    from bottrapper.metadata import ExtMetadata

log = get_logger(__name__)


def unqualify(name: str) -> str:
    """Return an unqualified name given a qualified module/package `name`."""
    return name.rsplit(".", maxsplit=1)[-1]


def walk_extensions() -> Generator[tuple[str, "ExtMetadata"], None, None]:
    """Yield extension names and their metadata from the bottrapper.exts subpackage."""
    from bottrapper.metadata import ExtMetadata

    def on_error(name: str) -> NoReturn:
        raise ImportError(name=name)  # pragma: no cover

    for module in pkgutil.walk_packages(exts.__path__, f"{exts.__name__}.", onerror=on_error):
        if unqualify(module.name).startswith("_"):
            # Ignore module/package names starting with an underscore.
            continue

        imported = importlib.import_module(module.name)
        if not inspect.iscoroutinefunction(getattr(imported, "setup", None)):
            # If it lacks an async setup function, it's not an extension.
            continue

        ext_metadata = getattr(imported, "EXT_METADATA", None)
        if not isinstance(ext_metadata, ExtMetadata):
            if ext_metadata is not None:
                log.error(
                    "Extension %r contains an invalid EXT_METADATA variable. Loading with metadata defaults.",
                    module.name,
                )
            else:
                log.trace("Extension %r is missing an EXT_METADATA variable. Using defaults.", module.name)
            ext_metadata = ExtMetadata()

        yield module.name, ext_metadata


EXTENSIONS: dict[str, "ExtMetadata"] = {}
