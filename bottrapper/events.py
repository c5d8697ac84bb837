import dataclasses
import enum

from bottrapper.constants import Feature


class BotTrapperEvent(enum.Enum):
    features_changed = "features_changed"
    catalog_published = "catalog_published"


@dataclasses.dataclass(frozen=True)
class FeaturesChanged:
    """Emitted after a guild's enabled features were persisted and cached."""

    guild_id: int
    features: frozenset[Feature]
    actor_id: int | None = None
