"""Per-account mutual exclusion for token revoke/reissue sequences."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class _AccountLock:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class AccountLocks:
    """
    Registry of one lock per account id.

    Serializes revoke-then-issue for a single account inside this process.
    Cross-process exclusion comes from the row lock taken in the same
    transaction (CredentialStore.lock_for_update).

    An entry lives only while some thread holds or waits on it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, _AccountLock] = {}

    def _acquire_entry(self, account_id: int) -> _AccountLock:
        with self._guard:
            entry = self._locks.get(account_id)
            if entry is None:
                entry = _AccountLock()
                self._locks[account_id] = entry
            entry.holders += 1
            return entry

    def _release_entry(self, account_id: int, entry: _AccountLock) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0:
                del self._locks[account_id]

    @contextmanager
    def hold(self, account_id: int) -> Iterator[None]:
        """Context manager: hold the account's lock for the duration of the block."""
        entry = self._acquire_entry(account_id)
        try:
            with entry.lock:
                yield
        finally:
            self._release_entry(account_id, entry)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Shared by every request handled in this process.
account_locks = AccountLocks()
