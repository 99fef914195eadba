"""Mapping from osu! ratings to tier roles."""
from __future__ import annotations

from typing import FrozenSet, Iterable, Optional

from .config import RoleTier, Settings
from .models import OsuUserDetails


class RolePolicy:
    """Pure rating-to-role mapping over a fixed universe of role names.

    Reconciliation only ever adds or removes roles whose names are in
    :attr:`universe`; every other role on a member is left alone.
    """

    def __init__(self, tiers: Iterable[RoleTier]) -> None:
        self._tiers = tuple(sorted(tiers, key=lambda tier: tier.min_rating))
        self.universe: FrozenSet[str] = frozenset(tier.name for tier in self._tiers)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RolePolicy":
        return cls(settings.role_tiers)

    @property
    def tiers(self) -> tuple[RoleTier, ...]:
        return self._tiers

    def tier_for(self, rating: float) -> Optional[RoleTier]:
        chosen: Optional[RoleTier] = None
        for tier in self._tiers:
            if rating >= tier.min_rating:
                chosen = tier
        return chosen

    def target_roles(self, details: OsuUserDetails) -> FrozenSet[str]:
        tier = self.tier_for(details.best_rating())
        if tier is None:
            return frozenset()
        return frozenset({tier.name})

    def in_universe(self, role_name: str) -> bool:
        return role_name in self.universe


__all__ = ["RolePolicy"]
