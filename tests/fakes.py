"""In-memory stand-ins for Discord objects, the osu!friends API and storage."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Dict, List, Optional

import discord

from osu_friends.config import RoleTier
from osu_friends.models import OsuUserDetails, Status
from osu_friends.state import UserDataStore
def discord_error(code: int, status: int = 403) -> discord.HTTPException:
    response = SimpleNamespace(status=status, reason="Forbidden")
    cls = discord.Forbidden if status == 403 else discord.HTTPException
    return cls(response, {"code": code, "message": "error"})


@dataclass(frozen=True)
class FakeRole:
    id: int
    name: str

    @property
    def mention(self) -> str:
        return f"<@&{self.id}>"


@dataclass
class FakeGuild:
    id: int
    name: str
    roles: List[FakeRole] = field(default_factory=list)

    def role(self, name: str) -> FakeRole:
        return next(role for role in self.roles if role.name == name)


@dataclass
class FakeMember:
    id: int
    guild: FakeGuild
    roles: List[FakeRole] = field(default_factory=list)
    display_name: str = "member"
    bot: bool = False

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"


class FakeGateway:
    """Records every platform call and applies role changes to the member."""

    def __init__(self) -> None:
        self.direct_messages: List[tuple] = []
        self.channel_messages: List[tuple] = []
        self.added: List[List[FakeRole]] = []
        self.removed: List[List[FakeRole]] = []
        self.nicknames: List[str] = []
        self.dm_error: Optional[Exception] = None
        self.dm_gate: Optional[asyncio.Event] = None
        self.nickname_allowed = True
        self.calls = 0

    async def send_direct_message(self, member, content=None, *, embed=None) -> None:
        self.calls += 1
        if self.dm_gate is not None:
            await self.dm_gate.wait()
        if self.dm_error is not None:
            raise self.dm_error
        self.direct_messages.append((member.id, content, embed))

    async def send_channel_message(self, channel, content=None, *, embed=None) -> None:
        self.calls += 1
        self.channel_messages.append((channel, content, embed))

    def get_guild_roles(self, guild):
        self.calls += 1
        return list(guild.roles)

    def get_user_roles(self, member):
        self.calls += 1
        return list(member.roles)

    async def add_roles(self, member, roles) -> None:
        self.calls += 1
        roles = list(roles)
        self.added.append(roles)
        member.roles.extend(role for role in roles if role not in member.roles)

    async def remove_roles(self, member, roles) -> None:
        self.calls += 1
        roles = list(roles)
        self.removed.append(roles)
        member.roles[:] = [role for role in member.roles if role not in roles]

    async def set_nickname(self, member, name: str) -> bool:
        self.calls += 1
        if not self.nickname_allowed:
            return False
        self.nicknames.append(name)
        member.display_name = name
        return True


class FakeOsuUser:
    def __init__(self, key: str, statuses: List[Optional[Status]], details: Optional[OsuUserDetails] = None):
        self.key = key
        self._statuses = list(statuses)
        self.details = details
        self.status_reads = 0

    @property
    def url(self) -> str:
        return f"https://osufriends.test/verify/{self.key}"

    async def get_status(self) -> Optional[Status]:
        self.status_reads += 1
        if len(self._statuses) > 1:
            return self._statuses.pop(0)
        return self._statuses[0] if self._statuses else None

    async def get_details(self) -> OsuUserDetails:
        if self.details is None:
            raise AssertionError("details requested before completion")
        return self.details


class FakeOsuClient:
    """Hands out prepared sessions; ``fresh`` serves calls without a key."""

    def __init__(self) -> None:
        self.fresh: List[FakeOsuUser] = []
        self.existing: Dict[str, FakeOsuUser] = {}
        self.created: List[Optional[str]] = []
        self.closed = False
        self._counter = 0

    def create_user(self, key: Optional[str] = None) -> FakeOsuUser:
        self.created.append(key)
        if key is not None:
            return self.existing.setdefault(key, FakeOsuUser(key, [Status.UNBOUND]))
        if self.fresh:
            return self.fresh.pop(0)
        self._counter += 1
        return FakeOsuUser(f"bound-{self._counter}", [Status.COMPLETED])

    async def close(self) -> None:
        self.closed = True


class CountingStore(UserDataStore):
    def __init__(self, db_path) -> None:
        super().__init__(db_path)
        self.finds = 0
        self.upserts = 0

    def find_by_id(self, user_id):
        self.finds += 1
        return super().find_by_id(user_id)

    def upsert(self, user) -> None:
        self.upserts += 1
        super().upsert(user)


TIERS = (
    RoleTier("Beginner", 0),
    RoleTier("Intermediate", 1000),
    RoleTier("Advanced", 3000),
    RoleTier("Expert", 6000),
)
