"""Async client for the osu!friends verification API."""
from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp

from .models import OsuUserDetails, Status

logger = logging.getLogger(__name__)


class OsuFriendsApiError(RuntimeError):
    """Raised when the osu!friends API returns an unusable response."""


@dataclass
class OsuFriendsConfig:
    """Configuration for the osu!friends client."""
    api_base: str = "https://osufriends.ovh/api/v1"
    site_base: str = "https://osufriends.ovh"
    timeout: float = 10.0

    @classmethod
    def from_env(cls) -> "OsuFriendsConfig":
        """Load configuration from environment variables."""
        timeout_env = os.getenv("OSU_FRIENDS_TIMEOUT", "10")
        try:
            timeout = float(timeout_env)
        except ValueError:
            logger.warning("Invalid OSU_FRIENDS_TIMEOUT value: %s", timeout_env)
            timeout = 10.0
        return cls(
            api_base=os.getenv("OSU_FRIENDS_API_BASE", cls.api_base).rstrip("/"),
            site_base=os.getenv("OSU_FRIENDS_SITE_BASE", cls.site_base).rstrip("/"),
            timeout=timeout,
        )


class OsuUser:
    """Handle to one verification session, identified by its key."""

    def __init__(self, client: "OsuFriendsClient", key: str) -> None:
        self._client = client
        self.key = key

    @property
    def url(self) -> str:
        """Link the member opens to claim this session."""
        return f"{self._client.config.site_base}/verify/{self.key}"

    async def get_status(self) -> Optional[Status]:
        status, payload = await self._client._get_json(f"/verify/{self.key}")
        if status != 200 or not isinstance(payload, dict):
            logger.debug("Status lookup for %s returned HTTP %s", self.key, status)
            return None
        return Status.parse(payload.get("status"))

    async def get_details(self) -> OsuUserDetails:
        status, payload = await self._client._get_json(f"/verify/{self.key}/details")
        if status != 200 or not isinstance(payload, dict):
            raise OsuFriendsApiError(f"Details lookup for {self.key} failed with HTTP {status}")
        try:
            return OsuUserDetails(
                username=str(payload["username"]),
                std=float(payload.get("std") or 0),
                taiko=float(payload.get("taiko") or 0),
                ctb=float(payload.get("ctb") or 0),
                mania=float(payload.get("mania") or 0),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise OsuFriendsApiError(f"Malformed details payload for {self.key}: {exc}") from exc

    def __repr__(self) -> str:
        return f"OsuUser(key={self.key!r})"


class OsuFriendsClient:
    """Creates session handles and performs the HTTP calls behind them."""

    def __init__(self, config: Optional[OsuFriendsConfig] = None) -> None:
        self.config = config or OsuFriendsConfig.from_env()
        self._session: Optional[aiohttp.ClientSession] = None

    def create_user(self, key: Optional[str] = None) -> OsuUser:
        """Return a handle for ``key``, or for a freshly generated key."""
        return OsuUser(self, key or uuid.uuid4().hex)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.timeout)
            )
        return self._session

    async def _get_json(self, path: str) -> tuple[int, Any]:
        url = f"{self.config.api_base}{path}"
        async with self._get_session().get(url) as response:
            if response.status != 200:
                return response.status, None
            payload: Dict[str, Any] = await response.json(content_type=None)
            return response.status, payload

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


__all__ = ["OsuFriendsApiError", "OsuFriendsClient", "OsuFriendsConfig", "OsuUser"]
