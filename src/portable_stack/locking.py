"""Per-instance mutual exclusion.

One ``asyncio.Lock`` per (scope, package id, version) so that at most one
install-type and one service-type operation is in flight per instance.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Tuple

SCOPE_INSTALL = "install"
SCOPE_SERVICE = "service"


class KeyedLocks:
    """Lazily created asyncio locks keyed by (scope, package_id, version)."""

    def __init__(self) -> None:
        self._locks: Dict[Tuple[str, str, str], asyncio.Lock] = {}

    def get(self, scope: str, package_id: str, version: str) -> asyncio.Lock:
        key = (scope, package_id, version)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, scope: str, package_id: str, version: str) -> AsyncIterator[None]:
        async with self.get(scope, package_id, version):
            yield
