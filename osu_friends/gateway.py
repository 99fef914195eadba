"""Thin wrapper over the discord.py calls the verification flow needs."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional

import discord

from .models import GatewayErrorKind

logger = logging.getLogger(__name__)

# Discord API error code for "Cannot send messages to this user".
CANNOT_MESSAGE_USER = 50007


def classify_http_error(exc: BaseException) -> GatewayErrorKind:
    """Map a raw Discord failure onto the kinds the bot reacts to."""

    if isinstance(exc, discord.HTTPException) and exc.code == CANNOT_MESSAGE_USER:
        return GatewayErrorKind.CANNOT_MESSAGE
    return GatewayErrorKind.OTHER


class DiscordGateway:
    """Sends messages and mutates member roles and nicknames."""

    def __init__(self, reason: str = "osu!friends verification") -> None:
        self._reason = reason

    async def send_direct_message(
        self,
        member: discord.abc.User,
        content: Optional[str] = None,
        *,
        embed: Optional[discord.Embed] = None,
    ) -> None:
        await member.send(content=content, embed=embed)

    async def send_channel_message(
        self,
        channel: discord.abc.Messageable,
        content: Optional[str] = None,
        *,
        embed: Optional[discord.Embed] = None,
    ) -> None:
        await channel.send(content=content, embed=embed)

    def get_guild_roles(self, guild: discord.Guild) -> List[discord.Role]:
        return list(guild.roles)

    def get_user_roles(self, member: discord.Member) -> List[discord.Role]:
        return list(member.roles)

    async def add_roles(self, member: discord.Member, roles: Iterable[discord.Role]) -> None:
        await member.add_roles(*roles, reason=self._reason)

    async def remove_roles(self, member: discord.Member, roles: Iterable[discord.Role]) -> None:
        await member.remove_roles(*roles, reason=self._reason)

    async def set_nickname(self, member: discord.Member, name: str) -> bool:
        """Try to rename ``member``; a refusal from Discord is not an error."""

        try:
            await member.edit(nick=name, reason=self._reason)
        except discord.HTTPException as exc:
            logger.debug("Could not set nickname for %s: %s", member.id, exc)
            return False
        return True


__all__ = ["CANNOT_MESSAGE_USER", "DiscordGateway", "classify_http_error"]
