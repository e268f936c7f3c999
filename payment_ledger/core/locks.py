from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from .errors import LockContentionError


logger = logging.getLogger(__name__)


@dataclass
class _LockEntry:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class AccountLockManager:
    """Process-wide exclusive locks keyed by account id.

    Entries are reference counted and dropped once no thread holds or waits
    on them, so the registry only grows with the number of accounts that are
    busy right now. Locks are not reentrant.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: dict[str, _LockEntry] = {}

    def acquire(self, account_id: str, timeout: float) -> None:
        with self._guard:
            entry = self._entries.get(account_id)
            if entry is None:
                entry = self._entries[account_id] = _LockEntry()
            entry.users += 1

        if entry.lock.acquire(timeout=timeout):
            return

        with self._guard:
            self._drop_user(account_id, entry)
        logger.warning(
            "lock.timeout",
            extra={"account_id": account_id, "timeout": timeout},
        )
        raise LockContentionError(account_id, timeout)

    def release(self, account_id: str) -> None:
        with self._guard:
            entry = self._entries.get(account_id)
            if entry is None or not entry.lock.locked():
                raise RuntimeError(f"Account {account_id} is not locked")
            entry.lock.release()
            self._drop_user(account_id, entry)

    def is_locked(self, account_id: str) -> bool:
        with self._guard:
            entry = self._entries.get(account_id)
            return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _drop_user(self, account_id: str, entry: _LockEntry) -> None:
        entry.users -= 1
        if entry.users == 0:
            del self._entries[account_id]
