"""Core data models for the osu!friends bot."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

DISCIPLINES = ("std", "taiko", "ctb", "mania")


class Status(str, Enum):
    """State of an osu!friends verification session."""

    UNBOUND = "invalid"
    PENDING = "pending"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value: object) -> Optional["Status"]:
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class GatewayErrorKind(Enum):
    CANNOT_MESSAGE = "cannot_message"
    OTHER = "other"


@dataclass
class OsuUserDetails:
    username: str
    std: float = 0.0
    taiko: float = 0.0
    ctb: float = 0.0
    mania: float = 0.0

    def ratings(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in DISCIPLINES}

    def best_rating(self) -> float:
        return max(self.ratings().values())


@dataclass
class UserData:
    """Stored snapshot for one Discord user."""

    id: str
    osu_friends_key: Optional[str] = None
    std: float = 0.0
    taiko: float = 0.0
    ctb: float = 0.0
    mania: float = 0.0
    uwu: int = 0

    def ratings(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in DISCIPLINES}

    def apply_details(self, details: OsuUserDetails) -> None:
        for name in DISCIPLINES:
            setattr(self, name, getattr(details, name))


class VerificationOutcome(str, Enum):
    SUCCESS = "success"
    LOCKED = "locked"
    SESSION_ALLOCATION = "session_allocation"
    TIMEOUT = "timeout"
    DIRECT_MESSAGE = "direct_message"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one verification attempt.

    Only ``SUCCESS`` carries roles and details; ``previous`` holds the ratings
    stored before this run so callers can show what changed.
    """

    outcome: VerificationOutcome
    granted_roles: Tuple[object, ...] = ()
    details: Optional[OsuUserDetails] = None
    previous: Dict[str, float] = field(default_factory=dict)
    guild_name: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.outcome is VerificationOutcome.SUCCESS

    @classmethod
    def success(
        cls,
        granted_roles,
        details: OsuUserDetails,
        previous: Dict[str, float],
        guild_name: Optional[str] = None,
    ) -> "VerificationResult":
        return cls(
            VerificationOutcome.SUCCESS,
            granted_roles=tuple(granted_roles),
            details=details,
            previous=dict(previous),
            guild_name=guild_name,
        )

    @classmethod
    def failure(cls, outcome: VerificationOutcome, guild_name: Optional[str] = None) -> "VerificationResult":
        if outcome is VerificationOutcome.SUCCESS:
            raise ValueError("failure() requires a failure outcome")
        return cls(outcome, guild_name=guild_name)
