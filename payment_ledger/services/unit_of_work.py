from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlmodel import Session

from ..core.locks import AccountLockManager


logger = logging.getLogger(__name__)


class UnitOfWork:
    """One atomic scope: a session plus the account locks taken through it.

    On exit the session is committed (or rolled back when the block raised),
    closed, and only then are the locks released, newest first. Locks are
    never released while the scope is still open, except for a lock taken on
    a row that turned out not to exist.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        locks: AccountLockManager,
        lock_timeout: float,
    ) -> None:
        self._session_factory = session_factory
        self._locks = locks
        self._lock_timeout = lock_timeout
        self._held: list[str] = []
        self.session: Optional[Session] = None

    def __enter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        self._held = []
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None:
                self.session.commit()
            else:
                self.session.rollback()
                logger.warning("unit_of_work.rolled_back", exc_info=(exc_type, exc, tb))
        finally:
            self.session.close()
            self._release_all()
        return False

    def lock(self, account_id: str) -> None:
        if account_id in self._held:
            return
        self._locks.acquire(account_id, self._lock_timeout)
        self._held.append(account_id)

    def unlock(self, account_id: str) -> None:
        self._held.remove(account_id)
        self._locks.release(account_id)

    def holds(self, account_id: str) -> bool:
        return account_id in self._held

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def _release_all(self) -> None:
        while self._held:
            self._locks.release(self._held.pop())
