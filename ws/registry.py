"""
Subscription Registry - identity to live connection mapping

@.architecture
Incoming: ws/hub.py (connect/disconnect), ws/bridge.py (fan-out) --- {str user_id, str connection_id}
Processing: register(), unregister(), resolve(), stats(), check_health() --- {3 jobs: connection_tracking, identity_resolution, cleanup}
Outgoing: ws/bridge.py, monitoring/health.py --- {FrozenSet[str] connection ids, registry statistics}

Invariants:
- a connection id belongs to at most one identity
- an identity with no connections has no entry at all
- register/unregister are idempotent; unregister of an unknown pair is a no-op
"""

import asyncio
from typing import Any, Dict, FrozenSet, Set

from monitoring import get_logger

logger = get_logger(__name__)


class SubscriptionRegistry:
    """
    In-memory map of user identity -> set of open connection ids.

    All access goes through a single asyncio.Lock, so a resolve observes
    every register/unregister that completed before it. The underlying maps
    are never handed out; resolve returns a frozen snapshot.
    """

    def __init__(self):
        self._connections: Dict[str, Set[str]] = {}
        self._owners: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: str, connection_id: str) -> None:
        """
        Add ``connection_id`` under ``user_id``.

        A connection id already registered under another identity is moved.
        """
        async with self._lock:
            previous = self._owners.get(connection_id)
            if previous == user_id:
                return
            if previous is not None:
                logger.warning(
                    f"Connection {connection_id} re-registered from {previous} to {user_id}"
                )
                self._discard(previous, connection_id)

            self._connections.setdefault(user_id, set()).add(connection_id)
            self._owners[connection_id] = user_id

        logger.debug(f"Registered connection {connection_id} for {user_id}")

    async def unregister(self, user_id: str, connection_id: str) -> None:
        """Remove ``connection_id`` from ``user_id``; unknown pairs are ignored."""
        async with self._lock:
            if self._owners.get(connection_id) != user_id:
                return
            del self._owners[connection_id]
            self._discard(user_id, connection_id)

        logger.debug(f"Unregistered connection {connection_id} for {user_id}")

    async def resolve(self, user_id: str) -> FrozenSet[str]:
        """Connection ids currently registered for ``user_id`` (empty if none)."""
        async with self._lock:
            return frozenset(self._connections.get(user_id, ()))

    def _discard(self, user_id: str, connection_id: str) -> None:
        # Caller holds the lock
        connections = self._connections.get(user_id)
        if connections is None:
            return
        connections.discard(connection_id)
        if not connections:
            del self._connections[user_id]

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._connections

    def stats(self) -> Dict[str, int]:
        return {
            "identities": len(self._connections),
            "connections": len(self._owners),
        }

    async def check_health(self) -> Dict[str, Any]:
        return {"healthy": True, "message": "Registry available", **self.stats()}
