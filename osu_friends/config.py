"""Configuration loading utilities for the osu!friends bot."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml


DEFAULT_SETTINGS_PATH = Path(__file__).parent / "data" / "settings.yaml"


@dataclass(frozen=True)
class RoleTier:
    name: str
    min_rating: float


@dataclass(frozen=True)
class Settings:
    """Typed view over the settings YAML file."""

    prefix: str
    allocation_attempts: int
    poll_attempts: int
    poll_interval_seconds: float
    role_tiers: Tuple[RoleTier, ...]

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Settings":
        verification_cfg = data.get("verification", {}) or {}
        roles_cfg = data.get("roles", {}) or {}
        tiers: List[RoleTier] = []
        for entry in roles_cfg.get("tiers", []):
            tiers.append(RoleTier(name=str(entry["name"]), min_rating=float(entry.get("min_rating", 0))))
        names = [tier.name for tier in tiers]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate role tier names: {names}")
        return Settings(
            prefix=str(data.get("prefix", "o!")),
            allocation_attempts=max(1, int(verification_cfg.get("allocation_attempts", 30))),
            poll_attempts=max(1, int(verification_cfg.get("poll_attempts", 60))),
            poll_interval_seconds=max(0.0, float(verification_cfg.get("poll_interval_seconds", 3.0))),
            role_tiers=tuple(sorted(tiers, key=lambda tier: tier.min_rating)),
        )


class SettingsLoader:
    """Loads and caches settings from YAML configuration files."""

    def __init__(self, path: Path | None = None) -> None:
        env_path = os.environ.get("OSU_FRIENDS_SETTINGS")
        self._path = path or (Path(env_path) if env_path else DEFAULT_SETTINGS_PATH)
        self._cache: Settings | None = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self, force: bool = False) -> Settings:
        if self._cache is not None and not force:
            return self._cache
        with self._path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        self._cache = Settings.from_dict(data)
        return self._cache


def get_settings() -> Settings:
    """Convenience accessor for default settings."""

    return SettingsLoader().load()


__all__ = ["RoleTier", "Settings", "SettingsLoader", "get_settings"]
