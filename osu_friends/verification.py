"""Links Discord members to osu! accounts and keeps their tier roles in sync."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Set, Tuple

import discord

from . import messages
from .config import Settings
from .gateway import DiscordGateway, classify_http_error
from .locks import VerificationLockSet
from .models import (
    GatewayErrorKind,
    OsuUserDetails,
    Status,
    VerificationOutcome,
    VerificationResult,
)
from .osu_client import OsuFriendsClient, OsuUser
from .roles import RolePolicy
from .state import UserDataStore
from .telemetry import TelemetryCollector, get_telemetry

logger = logging.getLogger(__name__)


class VerificationService:
    """Runs verification attempts, at most one per user at a time.

    Join-triggered attempts run as detached tasks with no cancellation
    handle; they finish on their own within the allocation and polling
    budgets.
    """

    def __init__(
        self,
        store: UserDataStore,
        client: OsuFriendsClient,
        gateway: DiscordGateway,
        policy: RolePolicy,
        settings: Settings,
        *,
        locks: Optional[VerificationLockSet] = None,
        telemetry: Optional[TelemetryCollector] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self._store = store
        self._client = client
        self._gateway = gateway
        self._policy = policy
        self._settings = settings
        self.locks = locks or VerificationLockSet()
        self._telemetry = telemetry
        self._sleep = sleep or asyncio.sleep
        self._background: Set[asyncio.Task] = set()

    @property
    def telemetry(self) -> TelemetryCollector:
        return self._telemetry or get_telemetry()

    # Triggers -----------------------------------------------------------
    def user_joined(self, member: discord.Member) -> asyncio.Task:
        """Start verifying a new member without waiting for the result."""

        task = asyncio.create_task(self._verify_joined(member), name=f"verify-{member.id}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _verify_joined(self, member: discord.Member) -> None:
        try:
            result = await self.verify(member)
            await self._notify_direct(member, result)
        except Exception:
            logger.exception("Verification of joining member %s failed", member.id)

    async def _notify_direct(self, member: discord.Member, result: VerificationResult) -> None:
        try:
            await self._gateway.send_direct_message(
                member, embed=messages.outcome_message(member, result)
            )
        except discord.HTTPException as exc:
            if classify_http_error(exc) is GatewayErrorKind.CANNOT_MESSAGE:
                logger.debug("Dropping %s notice for %s; DMs closed", result.outcome.value, member.id)
                return
            raise

    async def verify_command(
        self, member: discord.Member, channel: discord.abc.Messageable
    ) -> VerificationResult:
        """Verify on request and report the outcome to ``channel``."""

        result = await self.verify(member, reply_channel=channel)
        await self._gateway.send_channel_message(
            channel, embed=messages.outcome_message(member, result)
        )
        return result

    # Orchestration ------------------------------------------------------
    async def verify(
        self,
        member: discord.Member,
        reply_channel: Optional[discord.abc.Messageable] = None,
    ) -> VerificationResult:
        user_id = str(member.id)
        guild_name = getattr(member.guild, "name", None)
        trigger = "command" if reply_channel is not None else "join"
        start_time = time.time()
        logger.debug("Verifying user %s (%s)", user_id, trigger)

        with self.locks.hold(user_id) as acquired:
            if not acquired:
                result = VerificationResult.failure(VerificationOutcome.LOCKED, guild_name)
                self._track(result.outcome.value, user_id, start_time, trigger)
                return result
            try:
                result = await self._run(member, guild_name)
            except discord.HTTPException as exc:
                logger.debug("Discord error while verifying %s: status=%s code=%s", user_id, exc.status, exc.code)
                if classify_http_error(exc) is not GatewayErrorKind.CANNOT_MESSAGE:
                    self._track("error", user_id, start_time, trigger)
                    raise
                result = VerificationResult.failure(VerificationOutcome.DIRECT_MESSAGE, guild_name)
            except Exception:
                self._track("error", user_id, start_time, trigger)
                raise

        logger.info("Verification of %s finished: %s", user_id, result.outcome.value)
        self._track(result.outcome.value, user_id, start_time, trigger)
        return result

    async def _run(self, member: discord.Member, guild_name: Optional[str]) -> VerificationResult:
        user = self._store.find_by_id(str(member.id))
        previous = user.ratings() if user.osu_friends_key else {}

        osu_user: Optional[OsuUser] = None
        if user.osu_friends_key:
            osu_user = await self._resume(user.osu_friends_key)

        if osu_user is None:
            osu_user = await self._allocate()
            if osu_user is None:
                return VerificationResult.failure(VerificationOutcome.SESSION_ALLOCATION, guild_name)
            await self._gateway.send_direct_message(
                member, embed=messages.verify_instructions(member, osu_user.url)
            )
            if not await self._wait_for_completion(osu_user):
                return VerificationResult.failure(VerificationOutcome.TIMEOUT, guild_name)

        details = await osu_user.get_details()
        user.osu_friends_key = osu_user.key
        granted, details = await self.reconcile(member, details)
        user.apply_details(details)
        self._store.upsert(user)
        return VerificationResult.success(granted, details, previous, guild_name)

    async def _resume(self, key: str) -> Optional[OsuUser]:
        osu_user = self._client.create_user(key)
        status = await osu_user.get_status()
        logger.debug("Stored session %s status: %s", key, status)
        if status is not Status.COMPLETED:
            return None
        return osu_user

    async def _allocate(self) -> Optional[OsuUser]:
        # Sessions already claimed by someone else are dropped, not reused.
        for attempt in range(self._settings.allocation_attempts):
            osu_user = self._client.create_user()
            status = await osu_user.get_status()
            logger.debug("Allocation attempt %d status: %s", attempt + 1, status)
            if status is Status.UNBOUND:
                return osu_user
        logger.warning(
            "No unbound session after %d attempts", self._settings.allocation_attempts
        )
        return None

    async def _wait_for_completion(self, osu_user: OsuUser) -> bool:
        for attempt in range(self._settings.poll_attempts):
            status = await osu_user.get_status()
            logger.debug("Poll %d for %s: %s", attempt + 1, osu_user.key, status)
            if status is Status.COMPLETED:
                return True
            await self._sleep(self._settings.poll_interval_seconds)
        return False

    # Roles --------------------------------------------------------------
    async def reconcile(
        self, member: discord.Member, details: OsuUserDetails
    ) -> Tuple[List[discord.Role], OsuUserDetails]:
        """Bring the member's tier roles in line with ``details``.

        Returns the roles the member should now hold and the details used.
        """

        target_names = self._policy.target_roles(details)
        # First guild role wins when several share a tier name.
        managed: Dict[str, discord.Role] = {}
        for role in self._gateway.get_guild_roles(member.guild):
            if self._policy.in_universe(role.name):
                managed.setdefault(role.name, role)
        missing = sorted(name for name in target_names if name not in managed)
        if missing:
            logger.warning("Guild %s has no role named %s", getattr(member.guild, "id", None), missing)

        target = [managed[tier.name] for tier in self._policy.tiers if tier.name in target_names and tier.name in managed]
        current = self._gateway.get_user_roles(member)

        to_remove = [
            role for role in current if self._policy.in_universe(role.name) and role not in target
        ]
        if to_remove:
            await self._gateway.remove_roles(member, to_remove)
        to_add = [role for role in target if role not in current]
        if to_add:
            await self._gateway.add_roles(member, to_add)
        logger.debug(
            "Reconciled %s: +%s -%s",
            member.id,
            [role.name for role in to_add],
            [role.name for role in to_remove],
        )

        await self._gateway.set_nickname(member, details.username)
        return target, details

    def _track(self, outcome: str, user_id: str, start_time: float, trigger: str) -> None:
        duration_ms = (time.time() - start_time) * 1000
        self.telemetry.track_verification(outcome, user_id, duration_ms, trigger=trigger)

    async def close(self) -> None:
        await self._client.close()


__all__ = ["VerificationService"]
