"""Persistent user and guild state."""
from __future__ import annotations

import logging
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Dict, Optional

from .models import UserData

logger = logging.getLogger(__name__)

_DB_SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    osu_friends_key TEXT,
    std REAL NOT NULL DEFAULT 0,
    taiko REAL NOT NULL DEFAULT 0,
    ctb REAL NOT NULL DEFAULT 0,
    mania REAL NOT NULL DEFAULT 0,
    uwu INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS guild_settings (
    guild_id TEXT PRIMARY KEY,
    prefix TEXT
);
"""

_USER_COLUMNS = "id, osu_friends_key, std, taiko, ctb, mania, uwu"


def ensure_schema(db_path: Path) -> None:
    with closing(sqlite3.connect(db_path)) as conn:
        conn.executescript(_DB_SCHEMA)
        conn.commit()


def _row_to_user(row) -> UserData:
    return UserData(
        id=row[0],
        osu_friends_key=row[1],
        std=row[2],
        taiko=row[3],
        ctb=row[4],
        mania=row[5],
        uwu=row[6],
    )


class UserDataStore:
    """Keyed storage for :class:`UserData` snapshots."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        ensure_schema(db_path)

    def find_by_id(self, user_id: str) -> UserData:
        """Return the stored record, or a fresh default one if absent."""

        with closing(sqlite3.connect(self._db_path)) as conn:
            row = conn.execute(
                f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?",
                (str(user_id),),
            ).fetchone()
        if row is None:
            return UserData(id=str(user_id))
        return _row_to_user(row)

    def upsert(self, user: UserData) -> None:
        with closing(sqlite3.connect(self._db_path)) as conn:
            conn.execute(
                f"REPLACE INTO users ({_USER_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    str(user.id),
                    user.osu_friends_key,
                    user.std,
                    user.taiko,
                    user.ctb,
                    user.mania,
                    user.uwu,
                ),
            )
            conn.commit()


class GuildSettingsStore:
    """Per-guild command prefix with a read-through cache."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        ensure_schema(db_path)
        self._cache: Dict[str, Optional[str]] = {}

    def get_prefix(self, guild_id: str) -> Optional[str]:
        key = str(guild_id)
        if key in self._cache:
            return self._cache[key]
        with closing(sqlite3.connect(self._db_path)) as conn:
            row = conn.execute(
                "SELECT prefix FROM guild_settings WHERE guild_id = ?",
                (key,),
            ).fetchone()
        prefix = row[0] if row else None
        self._cache[key] = prefix
        return prefix

    def set_prefix(self, guild_id: str, prefix: Optional[str]) -> None:
        key = str(guild_id)
        with closing(sqlite3.connect(self._db_path)) as conn:
            conn.execute(
                "REPLACE INTO guild_settings (guild_id, prefix) VALUES (?, ?)",
                (key, prefix),
            )
            conn.commit()
        self._cache[key] = prefix
        logger.info("Guild %s prefix set to %r", key, prefix)


__all__ = ["GuildSettingsStore", "UserDataStore", "ensure_schema"]
