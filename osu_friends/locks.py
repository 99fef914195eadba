"""Single-flight guard for per-user verification."""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Set

logger = logging.getLogger(__name__)


class VerificationLockSet:
    """Set of user ids with a verification in progress.

    The mutex covers only the membership test-and-set and the removal, so
    distinct users never wait on each other.
    """

    def __init__(self) -> None:
        self._ids: Set[str] = set()
        self._mutex = threading.Lock()

    def try_acquire(self, user_id: str) -> bool:
        with self._mutex:
            if user_id in self._ids:
                return False
            self._ids.add(user_id)
            return True

    def release(self, user_id: str) -> None:
        with self._mutex:
            self._ids.discard(user_id)

    @contextmanager
    def hold(self, user_id: str) -> Iterator[bool]:
        """Yield whether ``user_id`` was acquired; release it on any exit."""

        acquired = self.try_acquire(user_id)
        if not acquired:
            logger.debug("User %s is already verifying", user_id)
            yield False
            return
        try:
            yield True
        finally:
            self.release(user_id)

    def __contains__(self, user_id: object) -> bool:
        with self._mutex:
            return user_id in self._ids

    def __len__(self) -> int:
        with self._mutex:
            return len(self._ids)


__all__ = ["VerificationLockSet"]
