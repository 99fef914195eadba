"""Discord bot entry point for osu!friends."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

import discord
from discord.ext import commands

from . import messages
from .config import Settings, get_settings
from .gateway import DiscordGateway
from .osu_client import OsuFriendsClient
from .roles import RolePolicy
from .state import GuildSettingsStore, UserDataStore
from .telemetry import get_telemetry
from .telemetry_decorator import track_command
from .verification import VerificationService

logger = logging.getLogger(__name__)

_MAX_PREFIX_LENGTH = 10


def resolve_prefix(guild_settings: GuildSettingsStore, default: str, guild_id: Optional[int]) -> str:
    """Return the guild's custom prefix, or ``default`` outside guilds."""

    if guild_id is None:
        return default
    return guild_settings.get_prefix(str(guild_id)) or default


class OsuFriendsBot(commands.Bot):
    """Bot that owns the verification service and closes it on shutdown."""

    verification: VerificationService
    user_store: UserDataStore
    guild_settings: GuildSettingsStore

    async def close(self) -> None:
        verification = getattr(self, "verification", None)
        if verification is not None:
            await verification.close()
        get_telemetry().flush()
        await super().close()


def default_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.members = True
    intents.message_content = True
    return intents


def build_bot(
    db_path: Path,
    settings: Optional[Settings] = None,
    intents: Optional[discord.Intents] = None,
) -> OsuFriendsBot:
    settings = settings or get_settings()
    user_store = UserDataStore(db_path)
    guild_settings = GuildSettingsStore(db_path)

    def _command_prefix(bot: commands.Bot, message: discord.Message) -> List[str]:
        guild_id = message.guild.id if message.guild is not None else None
        prefix = resolve_prefix(guild_settings, settings.prefix, guild_id)
        return commands.when_mentioned_or(prefix)(bot, message)

    bot = OsuFriendsBot(command_prefix=_command_prefix, intents=intents or default_intents())
    service = VerificationService(
        user_store,
        OsuFriendsClient(),
        DiscordGateway(),
        RolePolicy.from_settings(settings),
        settings,
    )
    bot.verification = service
    bot.user_store = user_store
    bot.guild_settings = guild_settings

    @bot.event
    async def on_ready() -> None:
        logger.info("osu!friends bot connected as %s", bot.user)

    @bot.event
    async def on_member_join(member: discord.Member) -> None:
        if member.bot:
            return
        service.user_joined(member)

    @bot.event
    async def on_message(message: discord.Message) -> None:
        if message.author.bot or message.is_system():
            return
        if message.content == "uwu":
            user = user_store.find_by_id(str(message.author.id))
            user.uwu += 1
            user_store.upsert(user)
            await message.channel.send("What's This?")
        await bot.process_commands(message)

    @bot.event
    async def on_command_error(ctx: commands.Context, error: commands.CommandError) -> None:
        if isinstance(error, commands.CommandNotFound):
            return
        original = getattr(error, "original", error)
        if isinstance(error, commands.CommandInvokeError):
            logger.error(
                "Command %s failed",
                ctx.command.qualified_name if ctx.command else "?",
                exc_info=(type(original), original, original.__traceback__),
            )
        else:
            logger.debug("Command %s rejected: %s", ctx.command, error)
        try:
            await ctx.send(embed=messages.command_error(str(original)))
        except discord.HTTPException:
            logger.exception("Failed to report command error")

    @bot.command(name="verify", help="Link your osu! account and update your roles")
    @commands.guild_only()
    @track_command
    async def verify(ctx: commands.Context) -> None:
        await service.verify_command(ctx.author, ctx.channel)

    @bot.command(name="stats", help="Show stored osu! ratings")
    @commands.guild_only()
    @track_command
    async def stats(ctx: commands.Context, member: Optional[discord.Member] = None) -> None:
        target = member or ctx.author
        user = user_store.find_by_id(str(target.id))
        await ctx.send(embed=messages.stats(target, user))

    @bot.command(name="prefix", help="Change the command prefix for this server")
    @commands.guild_only()
    @commands.has_guild_permissions(administrator=True)
    @track_command
    async def prefix(ctx: commands.Context, new_prefix: str) -> None:
        if len(new_prefix) > _MAX_PREFIX_LENGTH or any(ch.isspace() for ch in new_prefix):
            raise commands.BadArgument(
                f"Prefix must be at most {_MAX_PREFIX_LENGTH} characters with no spaces."
            )
        guild_settings.set_prefix(str(ctx.guild.id), new_prefix)
        await ctx.send(f"Prefix set to `{new_prefix}`")

    return bot


def main() -> None:
    level_name = os.environ.get("OSU_FRIENDS_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO))
    token = os.environ.get("DISCORD_TOKEN")
    if not token:
        raise RuntimeError("DISCORD_TOKEN environment variable must be set")
    db_path = Path(os.environ.get("OSU_FRIENDS_DB", "osu_friends.db"))
    bot = build_bot(db_path)
    bot.run(token, log_handler=None)


__all__ = ["OsuFriendsBot", "build_bot", "default_intents", "main", "resolve_prefix"]


if __name__ == "__main__":  # pragma: no cover
    main()
