"""Tests for the rating policy and role reconciliation."""
from __future__ import annotations

import pytest

from osu_friends.config import RoleTier
from osu_friends.models import OsuUserDetails
from osu_friends.roles import RolePolicy

from fakes import TIERS, FakeGuild, FakeMember, FakeRole


@pytest.mark.parametrize(
    "ratings, expected",
    [
        ((1500, 800, 400, 200), {"Intermediate"}),
        ((0, 0, 0, 0), {"Beginner"}),
        ((999, 0, 0, 0), {"Beginner"}),
        ((0, 0, 0, 3000), {"Advanced"}),
        ((100, 7000, 0, 0), {"Expert"}),
    ],
)
def test_policy_uses_best_rating(ratings, expected):
    policy = RolePolicy(TIERS)
    details = OsuUserDetails("player", *ratings)
    assert policy.target_roles(details) == frozenset(expected)


def test_policy_below_every_tier_is_empty():
    policy = RolePolicy([RoleTier("Pro", 5000)])
    assert policy.target_roles(OsuUserDetails("player", std=10)) == frozenset()
    assert policy.universe == frozenset({"Pro"})
    assert not policy.in_universe("Member")


@pytest.mark.asyncio
async def test_reconcile_replaces_stale_tier_and_keeps_other_roles(harness, guild):
    member = FakeMember(
        id=7,
        guild=guild,
        roles=[guild.role("Member"), guild.role("Beginner"), guild.role("Expert")],
    )
    granted, _ = await harness.service.reconcile(member, OsuUserDetails("p", std=3500))

    assert granted == [guild.role("Advanced")]
    assert set(member.roles) == {guild.role("Member"), guild.role("Advanced")}
    assert harness.gateway.removed == [[guild.role("Beginner"), guild.role("Expert")]]
    assert harness.gateway.added == [[guild.role("Advanced")]]


@pytest.mark.asyncio
async def test_reconcile_twice_makes_no_further_role_calls(harness, member):
    details = OsuUserDetails("p", std=1500, taiko=800, ctb=400, mania=200)
    await harness.service.reconcile(member, details)
    added, removed = len(harness.gateway.added), len(harness.gateway.removed)

    await harness.service.reconcile(member, details)

    assert len(harness.gateway.added) == added
    assert len(harness.gateway.removed) == removed


@pytest.mark.asyncio
async def test_reconcile_never_touches_roles_outside_universe(harness):
    guild = FakeGuild(
        id=1,
        name="g",
        roles=[FakeRole(1, "Moderator"), FakeRole(2, "Intermediate"), FakeRole(3, "Advanced")],
    )
    member = FakeMember(id=8, guild=guild, roles=[FakeRole(1, "Moderator"), FakeRole(3, "Advanced")])

    await harness.service.reconcile(member, OsuUserDetails("p", std=1200))

    assert FakeRole(1, "Moderator") in member.roles
    assert harness.gateway.removed == [[FakeRole(3, "Advanced")]]


@pytest.mark.asyncio
async def test_reconcile_skips_tiers_missing_from_guild(harness):
    guild = FakeGuild(id=1, name="g", roles=[FakeRole(1, "Beginner")])
    member = FakeMember(id=9, guild=guild, roles=[FakeRole(1, "Beginner")])

    granted, _ = await harness.service.reconcile(member, OsuUserDetails("p", std=8000))

    assert granted == []
    assert harness.gateway.removed == [[FakeRole(1, "Beginner")]]
    assert harness.gateway.added == []


@pytest.mark.asyncio
async def test_nickname_refusal_is_not_fatal(harness, member, guild):
    harness.gateway.nickname_allowed = False

    granted, details = await harness.service.reconcile(member, OsuUserDetails("p", std=1500))

    assert granted == [guild.role("Intermediate")]
    assert details.username == "p"
    assert harness.gateway.nicknames == []


@pytest.mark.asyncio
async def test_reconcile_removes_every_role_sharing_a_stale_tier_name(harness):
    guild = FakeGuild(
        id=1,
        name="g",
        roles=[FakeRole(1, "Beginner"), FakeRole(2, "Beginner"), FakeRole(3, "Intermediate")],
    )
    member = FakeMember(id=11, guild=guild, roles=[FakeRole(1, "Beginner")])

    granted, _ = await harness.service.reconcile(member, OsuUserDetails("p", std=1500))

    assert granted == [FakeRole(3, "Intermediate")]
    assert member.roles == [FakeRole(3, "Intermediate")]
    assert harness.gateway.removed == [[FakeRole(1, "Beginner")]]
