"""Discord message builders for verification feedback."""

from __future__ import annotations

from typing import Dict, Iterable, Optional

import discord

from .models import (
    DISCIPLINES,
    UserData,
    VerificationOutcome,
    VerificationResult,
)

SUCCESS_COLOUR = discord.Colour.green()
ERROR_COLOUR = discord.Colour.red()
INFO_COLOUR = discord.Colour.blurple()

_MAX_FIELD_LENGTH = 1024

_FAILURE_TEXT: Dict[VerificationOutcome, str] = {
    VerificationOutcome.LOCKED: "You are already verifying! Check your direct messages.",
    VerificationOutcome.SESSION_ALLOCATION: (
        "Could not start a verification session. Please try again later."
    ),
    VerificationOutcome.TIMEOUT: (
        "Verification timed out. Use the verify command in {guild} to try again."
    ),
    VerificationOutcome.DIRECT_MESSAGE: (
        "I can't send you direct messages. Enable DMs from server members and try again."
    ),
}


def _clamp_field(text: str) -> str:
    """Ensure Discord-compatible embed field length."""

    if len(text) <= _MAX_FIELD_LENGTH:
        return text
    return text[: _MAX_FIELD_LENGTH - 1].rstrip() + "…"


def _format_rating(value: float) -> str:
    return f"{value:,.0f}"


def _format_change(new: float, old: Optional[float]) -> str:
    if old is None or old == new:
        return _format_rating(new)
    delta = new - old
    sign = "+" if delta > 0 else "-"
    return f"{_format_rating(new)} ({sign}{_format_rating(abs(delta))})"


def _role_names(roles: Iterable[object]) -> str:
    names = [getattr(role, "mention", None) or str(getattr(role, "name", role)) for role in roles]
    return ", ".join(names) if names else "None"


def verify_instructions(member: discord.abc.User, url: str) -> discord.Embed:
    embed = discord.Embed(
        title="Verify your osu! account",
        description=(
            f"Hi {member.display_name}! Open the link below and log in with osu! "
            "to link your account. The link expires in three minutes."
        ),
        url=url,
        colour=INFO_COLOUR,
    )
    embed.add_field(name="Verification link", value=url, inline=False)
    return embed


def granted_roles(member: discord.abc.User, result: VerificationResult) -> discord.Embed:
    """Summarise granted roles and rating changes for a successful run."""

    details = result.details
    if details is None:
        raise ValueError("granted_roles() needs a successful result")
    embed = discord.Embed(
        title="Verification complete",
        description=f"{member.mention} is linked to osu! user **{details.username}**.",
        colour=SUCCESS_COLOUR,
    )
    embed.add_field(name="Roles", value=_clamp_field(_role_names(result.granted_roles)), inline=False)
    for name in DISCIPLINES:
        previous = result.previous.get(name) if result.previous else None
        embed.add_field(name=name, value=_format_change(getattr(details, name), previous), inline=True)
    return embed


def failure(result: VerificationResult) -> discord.Embed:
    text = _FAILURE_TEXT[result.outcome].format(guild=result.guild_name or "the server")
    return discord.Embed(title="Verification failed", description=text, colour=ERROR_COLOUR)


def outcome_message(member: discord.abc.User, result: VerificationResult) -> discord.Embed:
    if result.outcome is VerificationOutcome.SUCCESS:
        return granted_roles(member, result)
    if result.outcome in _FAILURE_TEXT:
        return failure(result)
    raise ValueError(f"Unhandled verification outcome: {result.outcome}")


def stats(member: discord.abc.User, user: UserData) -> discord.Embed:
    if not user.osu_friends_key:
        return discord.Embed(
            title=member.display_name,
            description="Not verified yet.",
            colour=INFO_COLOUR,
        )
    embed = discord.Embed(title=member.display_name, colour=INFO_COLOUR)
    for name, value in user.ratings().items():
        embed.add_field(name=name, value=_format_rating(value), inline=True)
    return embed


def command_error(reason: str) -> discord.Embed:
    return discord.Embed(title="Error", description=_clamp_field(reason), colour=ERROR_COLOUR)


__all__ = [
    "command_error",
    "failure",
    "granted_roles",
    "outcome_message",
    "stats",
    "verify_instructions",
]
