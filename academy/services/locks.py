"""Per-(student, course) write serialization.

Every ledger write for a pair, plus the completion check that follows
it, runs under that pair's lock.  Two lesson completions racing for the
last lesson therefore evaluate one after the other, and the second sees
the enrollment already COMPLETED.

The lock only covers one process and is released when the service call
returns, before the transaction commits.  Across processes, and until
commit, writers queue on the enrollment row instead
(``EnrollmentService.lock_enrollment``).  The lock just keeps the common
single-instance path from piling onto the database.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID


class PairLocks:
    def __init__(self) -> None:
        self._locks: dict[tuple[str, UUID], asyncio.Lock] = {}
        self._waiters: dict[tuple[str, UUID], int] = {}

    @asynccontextmanager
    async def hold(self, student_id: str, course_id: UUID) -> AsyncIterator[None]:
        key = (student_id, course_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            # Drop idle locks so the table does not grow with every pair seen
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)
