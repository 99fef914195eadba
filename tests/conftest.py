"""Fixtures for verification tests."""
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import List

import pytest

from osu_friends.config import Settings
from osu_friends.roles import RolePolicy
from osu_friends.telemetry import TelemetryCollector
from osu_friends.verification import VerificationService

from fakes import TIERS, CountingStore, FakeGateway, FakeGuild, FakeMember, FakeOsuClient, FakeRole


@pytest.fixture
def settings() -> Settings:
    return Settings(
        prefix="o!",
        allocation_attempts=30,
        poll_attempts=60,
        poll_interval_seconds=3.0,
        role_tiers=TIERS,
    )


@pytest.fixture
def guild() -> FakeGuild:
    names = ["@everyone", "Member", "Beginner", "Intermediate", "Advanced", "Expert"]
    return FakeGuild(id=10, name="osu! lounge", roles=[FakeRole(100 + i, name) for i, name in enumerate(names)])


@pytest.fixture
def member(guild) -> FakeMember:
    return FakeMember(id=42, guild=guild, roles=[guild.role("@everyone"), guild.role("Member")])


@pytest.fixture
def harness(tmp_path, settings):
    sleeps: List[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        await asyncio.sleep(0)

    store = CountingStore(tmp_path / "state.sqlite")
    client = FakeOsuClient()
    gateway = FakeGateway()
    service = VerificationService(
        store,
        client,
        gateway,
        RolePolicy(settings.role_tiers),
        settings,
        telemetry=TelemetryCollector(tmp_path / "telemetry.db"),
        sleep=fake_sleep,
    )
    return SimpleNamespace(
        service=service,
        store=store,
        client=client,
        gateway=gateway,
        sleeps=sleeps,
    )
