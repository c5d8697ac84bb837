import discord
import pytest

from bottrapper.access.catalog import COMMAND_CATALOG, build_payload, filter_catalog, get_command
from bottrapper.constants import ALL_FEATURES, Feature
from bottrapper.errors import RegistrationPublishFailed


GUILD = 1
UNGATED = {"embed", "bottrapper", "changelog", "data", "tos"}


@pytest.fixture
def sync(access):
    return access.sync


def test_filter_keeps_ungated_commands():
    names = {command.name for command in filter_catalog(frozenset())}

    assert names == UNGATED


def test_filter_with_every_feature_keeps_everything():
    assert filter_catalog(ALL_FEATURES) == list(COMMAND_CATALOG)


def test_payload_structure():
    payload = build_payload([get_command("ticket"), get_command("embed")])
    ticket, embed = payload

    assert ticket["name"] == "ticket"
    assert ticket["type"] == discord.AppCommandType.chat_input.value
    assert [option["name"] for option in ticket["options"]] == ["create", "close", "setup"]
    assert {option["type"] for option in ticket["options"]} == {discord.AppCommandOptionType.subcommand.value}
    assert ticket["options"][0]["options"][0] == {
        "type": discord.AppCommandOptionType.string.value,
        "name": "reason",
        "description": "Reason for the ticket",
        "required": True,
    }
    assert "default_member_permissions" not in ticket
    assert [option["name"] for option in embed["options"]] == ["title", "description", "color", "thumbnail", "image"]


def test_payload_default_member_permissions():
    (webhook,) = build_payload([get_command("webhook")])

    assert webhook["default_member_permissions"] == str(discord.Permissions(administrator=True).value)


async def test_resync_publishes_enabled_commands(sync, store, registrar):
    store.features[GUILD] = frozenset({Feature.TICKETS})

    published = await sync.resync(GUILD)

    assert registrar.names(GUILD) == UNGATED | {"ticket"}
    assert [command.name for command in published] == [p["name"] for p in registrar.published[GUILD]]


async def test_feature_update_republishes(access, registrar):
    await access.features.update_features(GUILD, {"webhooks": False, "autoroles": False})

    assert "webhook" not in registrar.names(GUILD)
    assert "autorole" not in registrar.names(GUILD)
    assert "ticket" in registrar.names(GUILD)


async def test_feature_update_publishes_the_set_from_the_event(access, store, registrar):
    await access.features.update_features(GUILD, {"tickets": False})

    # the synchronizer never needed to read the features back
    assert store.calls["get_enabled_features"] == 1
    assert "ticket" not in registrar.names(GUILD)


async def test_publish_failure_raises_and_marks_pending(sync, registrar):
    registrar.error = RuntimeError("registration api unavailable")

    with pytest.raises(RegistrationPublishFailed) as exc_info:
        await sync.resync(GUILD)

    assert exc_info.value.guild_id == GUILD
    assert isinstance(exc_info.value.original, RuntimeError)
    assert sync.pending == {GUILD}


async def test_publish_failure_keeps_the_flag_change(access, store, registrar):
    registrar.error = RuntimeError("registration api unavailable")

    update = await access.features.update_features(GUILD, {"tickets": False})

    assert not update.ok
    assert isinstance(update.errors[0], RegistrationPublishFailed)
    assert Feature.TICKETS not in store.features[GUILD]
    assert access.sync.pending == {GUILD}


async def test_retry_pending_clears_recovered_guilds(sync, registrar):
    registrar.error = OSError("connection reset")
    await sync.resync_many([1, 2])
    assert sync.pending == {1, 2}

    registrar.error = None
    failures = await sync.retry_pending()

    assert failures == {}
    assert sync.pending == set()
    assert set(registrar.published) == {1, 2}


async def test_retry_pending_without_pending_guilds_does_nothing(sync, registrar):
    assert await sync.retry_pending() == {}
    assert registrar.attempts == []


async def test_resync_many_continues_after_a_failure(sync, registrar):
    class FlakyError(RuntimeError):
        pass

    original_publish = registrar.publish

    async def publish(guild_id, payload):
        if guild_id == 2:
            raise FlakyError("guild 2 is flaky")
        await original_publish(guild_id, payload)

    registrar.publish = publish

    failures = await sync.resync_many([1, 2, 3])

    assert set(failures) == {2}
    assert set(registrar.published) == {1, 3}
