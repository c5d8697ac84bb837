import pytest

from bottrapper.access import DatabaseStore, FeatureFlagResolver
from bottrapper.constants import ALL_FEATURES, Feature
from bottrapper.errors import InvalidFeatureName, StoreUnavailable
from bottrapper.utils.caching import TTLCache


GUILD = 1


@pytest.fixture
def features(access):
    return access.features


@pytest.fixture
def events(features):
    received = []

    async def listener(event):
        received.append(event)

    features.add_listener(listener)
    return received


async def test_new_guild_gets_default_features(features):
    assert await features.get_enabled_features(GUILD) == ALL_FEATURES


async def test_reads_within_ttl_are_stale(features, store, clock):
    first = await features.get_enabled_features(GUILD)
    store.features[GUILD] = frozenset({Feature.TICKETS})

    clock.advance(299)
    assert await features.get_enabled_features(GUILD) == first

    clock.advance(1)
    assert await features.get_enabled_features(GUILD) == {Feature.TICKETS}


async def test_update_applies_a_partial_patch(features, store):
    store.features[GUILD] = frozenset({Feature.TICKETS, Feature.STATISTICS})

    update = await features.update_features(GUILD, {Feature.TICKETS: False, "webhooks": True})

    assert update.features == {Feature.STATISTICS, Feature.WEBHOOKS}
    assert store.features[GUILD] == update.features
    assert update.ok


async def test_update_writes_through_the_cache(features, store):
    await features.get_enabled_features(GUILD)

    await features.update_features(GUILD, {"tickets": False})
    reads_before = store.calls["get_enabled_features"]

    assert not await features.is_feature_enabled(GUILD, Feature.TICKETS)
    assert store.calls["get_enabled_features"] == reads_before


async def test_feature_names_are_case_insensitive(features):
    update = await features.update_features(GUILD, {"Tickets": False})

    assert Feature.TICKETS not in update.features


@pytest.mark.parametrize("name", ["music", "", "ticket"])
async def test_invalid_names_are_rejected_before_the_store(features, store, events, name):
    with pytest.raises(InvalidFeatureName):
        await features.update_features(GUILD, {"tickets": True, name: True})

    assert store.total_calls == 0
    assert events == []


async def test_listeners_receive_the_new_set(features, events):
    update = await features.update_features(GUILD, {"autoroles": False}, actor_id=5)

    assert len(events) == 1
    assert events[0].guild_id == GUILD
    assert events[0].features == update.features
    assert events[0].actor_id == 5


async def test_update_is_recorded_in_the_activity_log(features, store):
    await features.update_features(GUILD, {"autoroles": False}, actor_id=5)

    assert store.activity == [
        {"action": "update_features", "actor_id": 5, "guild_id": GUILD, "details": {"autoroles": False}}
    ]


async def test_listener_errors_do_not_undo_the_update(features, store):
    async def broken_listener(event):
        raise RuntimeError("publish failed")

    features.add_listener(broken_listener)

    update = await features.update_features(GUILD, {"tickets": False})

    assert not update.ok
    assert isinstance(update.errors[0], RuntimeError)
    assert Feature.TICKETS not in store.features[GUILD]
    assert not await features.is_feature_enabled(GUILD, Feature.TICKETS)


async def test_unreachable_store_fails_open_without_caching(features, store):
    store.features[GUILD] = frozenset({Feature.TICKETS})
    store.failing.add("get_enabled_features")

    assert await features.get_enabled_features(GUILD) == ALL_FEATURES

    store.failing.clear()
    assert await features.get_enabled_features(GUILD) == {Feature.TICKETS}


async def test_timed_out_read_fails_open(hanging_db, clock):
    store = DatabaseStore(hanging_db, statement_timeout=0.01)  # type: ignore[arg-type]
    resolver = FeatureFlagResolver(store, TTLCache("guild_features", clock=clock))

    enabled = await resolver.get_enabled_features(GUILD)

    assert enabled
    assert enabled == ALL_FEATURES


async def test_write_failure_propagates_and_changes_nothing(features, store, events):
    await features.get_enabled_features(GUILD)
    store.failing.add("set_enabled_features")

    with pytest.raises(StoreUnavailable):
        await features.update_features(GUILD, {"tickets": False})

    assert await features.is_feature_enabled(GUILD, Feature.TICKETS)
    assert events == []


async def test_update_never_persists_the_fail_open_set(features, store, events):
    store.features[GUILD] = frozenset({Feature.TICKETS})
    store.failing.add("get_enabled_features")

    with pytest.raises(StoreUnavailable):
        await features.update_features(GUILD, {"tickets": False})

    assert store.calls["set_enabled_features"] == 0
    assert store.features[GUILD] == {Feature.TICKETS}
    assert events == []


async def test_update_after_a_failed_read_uses_the_stored_set(features, store):
    store.features[GUILD] = frozenset({Feature.TICKETS})
    store.failing.add("get_enabled_features")
    assert await features.get_enabled_features(GUILD) == ALL_FEATURES

    store.failing.clear()
    update = await features.update_features(GUILD, {"tickets": False})

    assert update.features == frozenset()
    assert store.features[GUILD] == frozenset()


async def test_invalidate_drops_the_cached_set(features, store):
    await features.get_enabled_features(GUILD)
    store.features[GUILD] = frozenset()

    await features.invalidate(GUILD)

    assert await features.get_enabled_features(GUILD) == frozenset()


async def test_clear_cache_drops_every_guild(features, store):
    await features.get_enabled_features(1)
    await features.get_enabled_features(2)
    store.features[1] = store.features[2] = frozenset()

    await features.clear_cache()

    assert await features.get_enabled_features(1) == frozenset()
    assert await features.get_enabled_features(2) == frozenset()
