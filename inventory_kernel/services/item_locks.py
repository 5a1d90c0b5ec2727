"""
ItemLockRegistry -- item-scoped critical sections.

Responsibility:
    Hands out one in-process lock per key (``item:<uuid>``,
    ``request:<uuid>``) so that two units of work touching the same stock
    item never interleave their read-modify-write of balances, while units
    of work on different items run in parallel.  There is no global lock.

Invariants enforced:
    - Keys are always acquired in sorted order, so two units of work that
      need overlapping key sets cannot deadlock.
    - Acquisition is bounded by a timeout.  On timeout every key already
      taken is released and LockTimeoutError is raised; nothing has run
      under the lock yet, so the caller may safely retry.

Scope:
    Process-local.  Cross-process serialization comes from
    ``SELECT ... FOR UPDATE`` on the stock item row (PostgreSQL), which
    AllocationLedger.lock_item issues inside the same unit of work.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterable, Iterator
from uuid import UUID

from inventory_kernel.exceptions import LockTimeoutError
from inventory_kernel.invariants import KernelInvariant
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.item_locks")


def item_key(item_id: UUID) -> str:
    return f"item:{item_id}"


def request_key(request_id: UUID) -> str:
    return f"request:{request_id}"


class ItemLockRegistry:
    """Registry of named locks, created lazily and kept for reuse."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, keys: Iterable[str], timeout: float) -> Iterator[tuple[str, ...]]:
        """
        Acquire every lock in ``keys`` (sorted, de-duplicated) for the block.

        Raises:
            LockTimeoutError: a lock was not acquired within ``timeout``
                seconds.  Locks already taken are released first.
        """
        ordered = tuple(sorted(set(keys)))
        acquired: list[threading.Lock] = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                if not lock.acquire(timeout=timeout):
                    logger.warning(
                        "item_lock_timeout",
                        extra={
                            "key": key,
                            "timeout": timeout,
                            "invariant": KernelInvariant.ITEM_SERIALIZATION.value,
                        },
                    )
                    raise LockTimeoutError(key, timeout)
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()

    def is_locked(self, key: str) -> bool:
        """True if ``key`` is currently held (diagnostics and tests)."""
        with self._guard:
            lock = self._locks.get(key)
        return lock is not None and lock.locked()
