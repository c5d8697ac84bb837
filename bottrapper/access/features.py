"""
Resolution and updates of the features enabled in each guild.

Reads fail open: if the store can't be reached every feature is reported as enabled, and that answer is not cached.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Mapping, Optional, Union

import attrs

from bottrapper.constants import ALL_FEATURES, Feature
from bottrapper.errors import InvalidFeatureName, StoreUnavailable
from bottrapper.events import FeaturesChanged
from bottrapper.log import get_logger
from bottrapper.utils.caching import AsyncCache

from .store import AccessStore


log = get_logger(__name__)

FeaturesChangedListener = Callable[[FeaturesChanged], Awaitable[None]]
FeaturePatch = Mapping[Union[Feature, str], bool]


@attrs.frozen
class FeatureUpdate:
    """The result of a feature update that has been saved."""

    guild_id: int
    features: frozenset[Feature]
    errors: tuple[Exception, ...] = ()

    @property
    def ok(self) -> bool:
        """Whether every listener handled the change."""
        return not self.errors


def normalise_patch(patch: FeaturePatch) -> dict[Feature, bool]:
    """Validate the keys of a patch, raising `InvalidFeatureName` for any unknown feature."""
    normalised: dict[Feature, bool] = {}
    for key, enabled in patch.items():
        if isinstance(key, Feature):
            feature = key
        else:
            try:
                feature = Feature(str(key).strip().lower())
            except ValueError:
                raise InvalidFeatureName(key) from None
        normalised[feature] = bool(enabled)
    return normalised


class FeatureFlagResolver:
    """Resolves the enabled features of guilds and applies partial updates to them."""

    def __init__(self, store: AccessStore, cache: AsyncCache[int, frozenset[Feature]]) -> None:
        self.store = store
        self.cache = cache
        self._listeners: list[FeaturesChangedListener] = []

    def add_listener(self, listener: FeaturesChangedListener) -> None:
        """Register a coroutine function to be awaited after every successful update."""
        self._listeners.append(listener)

    def remove_listener(self, listener: FeaturesChangedListener) -> None:
        """Unregister a listener, if it is registered."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    async def get_enabled_features(self, guild_id: int) -> frozenset[Feature]:
        """Get the features enabled in the guild."""
        cached = await self.cache.get(guild_id)
        if cached is not None:
            return cached

        try:
            features = await self.store.get_enabled_features(guild_id)
        except StoreUnavailable as e:
            log.error("Could not load features of guild %s, allowing every feature: %s", guild_id, e)
            return ALL_FEATURES

        await self.cache.set(guild_id, features)
        return features

    async def is_feature_enabled(self, guild_id: int, feature: Feature) -> bool:
        """Whether the feature is enabled in the guild."""
        return feature in await self.get_enabled_features(guild_id)

    async def update_features(
        self,
        guild_id: int,
        patch: FeaturePatch,
        *,
        actor_id: Optional[int] = None,
    ) -> FeatureUpdate:
        """
        Apply a partial update to the features of a guild.

        Features missing from the patch keep their current state.
        The new set is persisted, written into the cache, and then passed to every listener.

        Raises `InvalidFeatureName` before touching the store if the patch contains an unknown feature,
        and `StoreUnavailable` if the current set could not be read or the new set could not be saved,
        in which case nothing else happens.
        """
        changes = normalise_patch(patch)

        # the fail open answer of `get_enabled_features` must never be written back
        current = await self.cache.get(guild_id)
        if current is None:
            current = await self.store.get_enabled_features(guild_id)
        enabled = {feature for feature, on in changes.items() if on}
        disabled = {feature for feature, on in changes.items() if not on}
        features = frozenset((current - disabled) | enabled)

        await self.store.set_enabled_features(guild_id, features)
        await self.cache.set(guild_id, features)
        log.info(
            "Updated features of guild %s: %s",
            guild_id,
            ", ".join(sorted(f.value for f in features)) or "none",
        )

        await self._log_activity(guild_id, changes, actor_id)

        errors = await self._dispatch(FeaturesChanged(guild_id, features, actor_id))
        return FeatureUpdate(guild_id, features, tuple(errors))

    async def _log_activity(self, guild_id: int, changes: dict[Feature, bool], actor_id: Optional[int]) -> None:
        try:
            await self.store.log_activity(
                "update_features",
                actor_id=actor_id,
                guild_id=guild_id,
                details={feature.value: on for feature, on in changes.items()},
            )
        except StoreUnavailable as e:
            log.warning("Could not record the feature update of guild %s: %s", guild_id, e)

    async def _dispatch(self, event: FeaturesChanged) -> list[Exception]:
        errors: list[Exception] = []
        for listener in list(self._listeners):
            try:
                await listener(event)
            except Exception as e:
                log.error("Feature change listener %r failed for guild %s", listener, event.guild_id, exc_info=e)
                errors.append(e)
        return errors

    async def invalidate(self, guild_id: int) -> None:
        """Drop the cached features of a guild."""
        await self.cache.delete(guild_id)

    async def clear_cache(self) -> None:
        """Drop the cached features of every guild."""
        await self.cache.clear()
