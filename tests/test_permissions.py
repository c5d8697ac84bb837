import discord
import pytest

from bottrapper.access import AdminRecord, DecisionReason, RoleRule, aggregate_role_rules
from bottrapper.access.catalog import COMMAND_CATALOG, Capability, get_command
from bottrapper.access.permissions import capabilities_from_permissions
from bottrapper.constants import Feature


G1 = 100
U1 = 200
OWNER = 300
MOD = 400
HELPER = 500


@pytest.fixture
def g1(store):
    store.features[G1] = frozenset({Feature.TICKETS, Feature.STATISTICS})
    store.rules[(G1, MOD)] = RoleRule(G1, MOD, allowed_commands={"stats"})
    return G1


@pytest.fixture
def check(access):
    async def check(command, *, user=U1, roles=(MOD,), subcommand=None, permissions=None, guild=G1):
        return await access.check_command_permission(
            guild,
            user,
            list(roles),
            command,
            subcommand=subcommand,
            permissions=permissions,
            owner_id=OWNER,
        )

    return check


# aggregation


def test_aggregation_unions_the_member_roles():
    rules = [
        RoleRule(G1, 1, allowed_commands={"stats"}),
        RoleRule(G1, 2, allowed_commands={"ticket"}, denied_commands={"webhook"}),
        RoleRule(G1, 3, denied_commands={"stats"}),
    ]

    aggregated = aggregate_role_rules(rules, [1, 2])

    assert aggregated.allowed == {"stats", "ticket"}
    assert aggregated.denied == {"webhook"}


def test_aggregation_without_roles_is_empty():
    aggregated = aggregate_role_rules([RoleRule(G1, 1, allowed_commands={"stats"})], [])

    assert not aggregated.allowed
    assert not aggregated.denied


# scenarios


async def test_role_allow_grants_an_enabled_command(g1, check):
    decision = await check("stats")

    assert decision
    assert decision.reason is DecisionReason.ROLE_ALLOW


async def test_disabled_feature_denies(g1, check):
    decision = await check("autoresponse")

    assert not decision
    assert decision.reason is DecisionReason.FEATURE_DISABLED


async def test_deny_wins_over_allow_on_the_same_role(g1, check, store):
    store.rules[(G1, MOD)] = RoleRule(G1, MOD, allowed_commands={"stats"}, denied_commands={"stats"})

    decision = await check("stats")

    assert not decision
    assert decision.reason is DecisionReason.ROLE_DENY


async def test_deny_wins_over_allow_on_another_role(g1, check, store):
    store.rules[(G1, HELPER)] = RoleRule(G1, HELPER, denied_commands={"stats"})

    assert not await check("stats", roles=(MOD, HELPER))


# precedence


@pytest.mark.parametrize("command", ["autoresponse", "webhook", "autorole"])
async def test_feature_gate_beats_owner(g1, check, command):
    decision = await check(command, user=OWNER, permissions=discord.Permissions.all())

    assert decision.reason is DecisionReason.FEATURE_DISABLED


async def test_feature_gate_beats_global_admin(g1, check, store):
    store.admins[U1] = AdminRecord(U1, "admin", 3)

    assert not await check("webhook")


async def test_owner_is_allowed_despite_role_deny(g1, check, store):
    store.rules[(G1, MOD)] = RoleRule(G1, MOD, denied_commands={"stats", "ticket"})

    decision = await check("stats", user=OWNER)

    assert decision
    assert decision.reason is DecisionReason.OWNER


async def test_global_admin_is_allowed_despite_role_deny(g1, check, store):
    store.admins[U1] = AdminRecord(U1, "admin", 1)
    store.rules[(G1, MOD)] = RoleRule(G1, MOD, denied_commands={"stats"})

    decision = await check("stats")

    assert decision.reason is DecisionReason.GLOBAL_ADMIN


async def test_role_allow_beats_legacy_capabilities(g1, check):
    decision = await check("stats", permissions=discord.Permissions.none())

    assert decision.reason is DecisionReason.ROLE_ALLOW


# legacy capabilities


@pytest.mark.parametrize(
    ("permissions", "expected"),
    [
        (None, Capability.DEFAULT),
        (discord.Permissions.none(), Capability.DEFAULT),
        (discord.Permissions(manage_messages=True), Capability.MODERATOR),
        (discord.Permissions(manage_channels=True), Capability.MODERATOR),
        (discord.Permissions(administrator=True), Capability.ADMIN),
    ],
)
def test_capabilities_from_permissions(permissions, expected):
    assert capabilities_from_permissions(permissions) == expected


@pytest.mark.parametrize(
    ("command", "subcommand", "permissions", "allowed"),
    [
        ("embed", None, discord.Permissions.none(), True),
        ("ticket", "create", discord.Permissions.none(), True),
        ("ticket", "close", discord.Permissions.none(), False),
        ("ticket", "close", discord.Permissions(manage_channels=True), True),
        ("stats", "overview", discord.Permissions.none(), False),
        ("stats", "overview", discord.Permissions(manage_messages=True), True),
        ("autoresponse", "add", discord.Permissions(manage_messages=True), False),
        ("autoresponse", "add", discord.Permissions(administrator=True), True),
        ("webhook", "list", discord.Permissions(manage_channels=True), False),
        ("webhook", "list", discord.Permissions(administrator=True), True),
    ],
)
async def test_legacy_fallback(check, command, subcommand, permissions, allowed):
    decision = await check(command, roles=(), subcommand=subcommand, permissions=permissions)

    assert bool(decision) is allowed
    assert decision.reason in {DecisionReason.LEGACY_ALLOW, DecisionReason.LEGACY_DENY, DecisionReason.UNRESTRICTED}


@pytest.mark.parametrize("command", ["tos", "data", "changelog", "not-a-catalog-command"])
async def test_commands_without_requirements_are_allowed(check, command):
    decision = await check(command, roles=(), permissions=discord.Permissions.none())

    assert decision.reason is DecisionReason.UNRESTRICTED


async def test_role_store_failure_falls_back_to_legacy(g1, check, store):
    store.failing.add("get_role_rules")

    moderator = await check("stats", permissions=discord.Permissions(manage_messages=True))
    member = await check("stats", permissions=discord.Permissions.none())

    assert moderator.reason is DecisionReason.LEGACY_ALLOW
    assert member.reason is DecisionReason.LEGACY_DENY


async def test_feature_store_failure_fails_open(check, store):
    store.failing.add("get_enabled_features")

    assert await check("webhook", roles=(), permissions=discord.Permissions(administrator=True))


# catalog metadata


def test_every_gated_command_is_in_the_catalog():
    gated = {command.name: command.feature for command in COMMAND_CATALOG if command.feature}

    assert gated == {
        "ticket": Feature.TICKETS,
        "autoresponse": Feature.AUTORESPONSES,
        "stats": Feature.STATISTICS,
        "webhook": Feature.WEBHOOKS,
        "autorole": Feature.AUTOROLES,
    }


def test_subcommand_override_of_required_capability():
    ticket = get_command("ticket")

    assert ticket.required_capability() is Capability.MANAGE_TICKETS
    assert ticket.required_capability("close") is Capability.MANAGE_TICKETS
    assert ticket.required_capability("create") is None


# role rule management


async def test_set_role_rule_saves_and_records_the_change(access, store):
    rule = await access.permissions.set_role_rule(G1, MOD, allowed={"stats"}, denied={"webhook"}, actor_id=U1)

    assert rule == RoleRule(G1, MOD, allowed_commands={"stats"}, denied_commands={"webhook"})
    assert store.rules[(G1, MOD)] == rule
    assert store.activity == [
        {
            "action": "set_role_rule",
            "actor_id": U1,
            "target_id": MOD,
            "guild_id": G1,
            "details": {"allowed": ["stats"], "denied": ["webhook"]},
        }
    ]


async def test_set_role_rule_with_empty_lists_deletes_the_rule(g1, access, store):
    rule = await access.permissions.set_role_rule(G1, MOD, allowed=set(), denied=set())

    assert rule == RoleRule(G1, MOD)
    assert (G1, MOD) not in store.rules
    assert store.calls["set_role_rule"] == 0
    assert store.activity[0]["details"] == {"allowed": [], "denied": []}


async def test_set_role_rule_survives_a_failed_audit_write(access, store):
    store.failing.add("log_activity")

    rule = await access.permissions.set_role_rule(G1, MOD, allowed={"stats"}, denied=set())

    assert store.rules[(G1, MOD)] == rule
    assert store.activity == []
