import pytest

from bottrapper.access import AdminRecord, AdminStatus
from bottrapper.errors import InvalidAdminLevel, StoreUnavailable


USER = 42


@pytest.fixture
def admins(access):
    return access.admins


async def test_regular_user_is_not_admin(admins):
    assert await admins.is_global_admin(USER) == AdminStatus(False, 0)


async def test_active_admin_reports_level(admins, store):
    store.admins[USER] = AdminRecord(USER, "someone", 2)

    status = await admins.is_global_admin(USER)

    assert status
    assert status.level == 2


async def test_inactive_admin_is_not_admin(admins, store):
    store.admins[USER] = AdminRecord(USER, "someone", 3, is_active=False)

    assert not await admins.is_global_admin(USER)


async def test_answers_are_cached_including_negatives(admins, store):
    await admins.is_global_admin(USER)
    store.admins[USER] = AdminRecord(USER, "someone", 1)

    assert not await admins.is_global_admin(USER)
    assert store.calls["get_active_admin"] == 1


async def test_cache_expires_after_ttl(admins, store, clock):
    await admins.is_global_admin(USER)
    store.admins[USER] = AdminRecord(USER, "someone", 1)

    clock.advance(300)

    assert await admins.is_global_admin(USER)
    assert store.calls["get_active_admin"] == 2


async def test_grant_is_visible_immediately(admins):
    assert not await admins.is_global_admin(USER)

    await admins.grant(USER, "someone", 3, granted_by=1)

    assert await admins.is_global_admin(USER) == AdminStatus(True, 3)


async def test_revoke_is_visible_immediately(admins, store):
    store.admins[USER] = AdminRecord(USER, "someone", 1)
    assert await admins.is_global_admin(USER)

    assert await admins.revoke(USER, revoked_by=1)

    assert await admins.is_global_admin(USER) == AdminStatus(False, 0)


async def test_revoking_a_non_admin(admins):
    assert not await admins.revoke(USER)


@pytest.mark.parametrize("level", [0, 4, -1])
async def test_grant_rejects_invalid_levels_before_the_store(admins, store, level):
    with pytest.raises(InvalidAdminLevel):
        await admins.grant(USER, "someone", level)

    assert store.total_calls == 0


async def test_store_failure_is_not_admin_and_not_cached(admins, store):
    store.admins[USER] = AdminRecord(USER, "someone", 1)
    store.failing.add("get_active_admin")

    assert await admins.is_global_admin(USER) == AdminStatus(False, 0)

    store.failing.clear()
    assert await admins.is_global_admin(USER)
    assert store.calls["get_active_admin"] == 2


async def test_grant_failure_propagates(admins, store):
    store.failing.add("upsert_admin")

    with pytest.raises(StoreUnavailable):
        await admins.grant(USER, "someone", 1)


async def test_list_admins_only_lists_active(admins, store):
    store.admins[1] = AdminRecord(1, "one", 1)
    store.admins[2] = AdminRecord(2, "two", 2, is_active=False)

    assert [admin.user_id for admin in await admins.list_admins()] == [1]
