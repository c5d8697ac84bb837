import asyncio
import collections
import datetime
from typing import Any, Collection, Iterable, Optional

import pytest

from bottrapper.access import AccessControl, AdminRecord, RoleRule
from bottrapper.constants import ALL_FEATURES, Feature
from bottrapper.errors import StoreUnavailable


TTL = datetime.timedelta(minutes=5)


class ManualClock:
    """A monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStore:
    """
    An in-memory access store.

    Operation names listed in `failing` raise `StoreUnavailable`, and `calls` counts every operation attempted.
    """

    def __init__(self, default_features: Collection[Feature] = ALL_FEATURES) -> None:
        self.default_features = frozenset(default_features)
        self.admins: dict[int, AdminRecord] = {}
        self.features: dict[int, frozenset[Feature]] = {}
        self.rules: dict[tuple[int, int], RoleRule] = {}
        self.activity: list[dict[str, Any]] = []
        self.calls: collections.Counter[str] = collections.Counter()
        self.failing: set[str] = set()

    def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        if operation in self.failing:
            raise StoreUnavailable(operation, original=ConnectionRefusedError("connection refused"))

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    async def get_active_admin(self, user_id: int) -> Optional[AdminRecord]:
        self._enter("get_active_admin")
        admin = self.admins.get(user_id)
        return admin if admin and admin.is_active else None

    async def list_active_admins(self) -> list[AdminRecord]:
        self._enter("list_active_admins")
        return [admin for admin in self.admins.values() if admin.is_active]

    async def upsert_admin(self, user_id: int, username: str, level: int, granted_by: Optional[int]) -> AdminRecord:
        self._enter("upsert_admin")
        record = AdminRecord(user_id, username, level, granted_by, True)
        self.admins[user_id] = record
        return record

    async def deactivate_admin(self, user_id: int, revoked_by: Optional[int]) -> bool:
        self._enter("deactivate_admin")
        admin = self.admins.get(user_id)
        if admin is None or not admin.is_active:
            return False
        self.admins[user_id] = AdminRecord(admin.user_id, admin.username, admin.level, admin.granted_by, False)
        return True

    async def get_enabled_features(self, guild_id: int) -> frozenset[Feature]:
        self._enter("get_enabled_features")
        return self.features.setdefault(guild_id, self.default_features)

    async def set_enabled_features(self, guild_id: int, features: Collection[Feature]) -> None:
        self._enter("set_enabled_features")
        self.features[guild_id] = frozenset(features)

    async def get_role_rules(self, guild_id: int, role_ids: Iterable[int]) -> list[RoleRule]:
        self._enter("get_role_rules")
        return [self.rules[(guild_id, role_id)] for role_id in role_ids if (guild_id, role_id) in self.rules]

    async def set_role_rule(
        self, guild_id: int, role_id: int, *, allowed: Collection[str], denied: Collection[str]
    ) -> RoleRule:
        self._enter("set_role_rule")
        rule = RoleRule(guild_id, role_id, allowed, denied)
        self.rules[(guild_id, role_id)] = rule
        return rule

    async def delete_role_rule(self, guild_id: int, role_id: int) -> bool:
        self._enter("delete_role_rule")
        return self.rules.pop((guild_id, role_id), None) is not None

    async def log_activity(self, action: str, **kwargs: Any) -> None:
        self._enter("log_activity")
        self.activity.append({"action": action, **kwargs})


class FakeRegistrar:
    """Records every publish, raising `error` instead when it is set."""

    def __init__(self) -> None:
        self.published: dict[int, list[dict[str, Any]]] = {}
        self.attempts: list[int] = []
        self.error: Optional[BaseException] = None

    async def publish(self, guild_id: int, payload: list[dict[str, Any]]) -> None:
        self.attempts.append(guild_id)
        if self.error is not None:
            raise self.error
        self.published[guild_id] = payload

    def names(self, guild_id: int) -> set[str]:
        return {command["name"] for command in self.published[guild_id]}


class HangingSessionMaker:
    """Stands in for an `async_sessionmaker` whose database never answers."""

    def begin(self) -> "HangingSessionMaker":
        return self

    async def __aenter__(self) -> None:
        await asyncio.sleep(60)

    async def __aexit__(self, *exc_info: object) -> None:
        return None


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def registrar() -> FakeRegistrar:
    return FakeRegistrar()


@pytest.fixture
def access(store: FakeStore, registrar: FakeRegistrar, clock: ManualClock) -> AccessControl:
    return AccessControl.with_memory_caches(store, ttl=TTL, registrar=registrar, clock=clock)


@pytest.fixture
def hanging_db() -> HangingSessionMaker:
    return HangingSessionMaker()
