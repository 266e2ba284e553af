"""
Balance Oracle - TTL-cached token balance lookup.

@.architecture
Incoming: security/admission.py --- {str wallet address}
Processing: get_balance(), _query(), _cached(), _store() --- {4 jobs: caching, ledger_query, query_coalescing, summing}
Outgoing: core/ledger/solana.py --- {accounts_by_owner(address, mint) calls, int balance in base units}
"""

import asyncio
import functools
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol

from core.errors import BalanceQueryFailed
from monitoring import get_logger

logger = get_logger(__name__)

DEFAULT_CACHE_TTL = 30.0


class Ledger(Protocol):
    async def accounts_by_owner(self, owner: str, mint: str) -> List[int]:
        ...


@dataclass(frozen=True)
class CachedBalance:
    """One observed balance; valid only while younger than the TTL."""
    address: str
    balance: int
    observed_at: float


class BalanceOracle:
    """
    Wraps a ledger query behind a time-bounded cache.

    Records older than ``ttl`` are cache misses, never stale hits. Expired
    records are evicted lazily on the next write; there is no sweeper task.
    Concurrent misses for one address share a single in-flight query, while
    different addresses query independently.
    Query failures propagate as BalanceQueryFailed and are not retried.
    """

    def __init__(
        self,
        ledger: Ledger,
        token_mint: str,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ledger = ledger
        self.token_mint = token_mint
        self.ttl = ttl
        self._clock = clock
        self._cache: Dict[str, CachedBalance] = {}
        self._inflight: Dict[str, "asyncio.Future[int]"] = {}
        self._lock = asyncio.Lock()

    async def get_balance(self, address: str) -> int:
        """
        Total base-unit balance of ``token_mint`` held by ``address``.

        Raises:
            BalanceQueryFailed: the live query failed
        """
        cached = await self._cached(address)
        if cached is not None:
            logger.debug(f"Balance cache hit for {address}")
            return cached.balance

        query = self._inflight.get(address)
        if query is None:
            query = asyncio.ensure_future(self._query(address))
            self._inflight[address] = query
            query.add_done_callback(functools.partial(self._query_done, address))
        else:
            logger.debug(f"Joining in-flight balance query for {address}")

        # A cancelled caller must not cancel the query other callers wait on
        return await asyncio.shield(query)

    async def _query(self, address: str) -> int:
        try:
            amounts = await self.ledger.accounts_by_owner(address, self.token_mint)
        except BalanceQueryFailed:
            raise
        except Exception as e:
            raise BalanceQueryFailed(f"Balance query failed for {address}: {e}") from e

        balance = sum(amounts, 0)
        await self._store(CachedBalance(address, balance, self._clock()))
        logger.debug(f"Balance for {address}: {balance} across {len(amounts)} account(s)")
        return balance

    def _query_done(self, address: str, query: "asyncio.Future[int]") -> None:
        if self._inflight.get(address) is query:
            del self._inflight[address]
        if not query.cancelled() and query.exception() is not None:
            logger.debug(f"Balance query for {address} failed: {query.exception()}")

    async def _cached(self, address: str) -> Optional[CachedBalance]:
        async with self._lock:
            record = self._cache.get(address)
            if record is None:
                return None
            if self._clock() - record.observed_at < self.ttl:
                return record
            return None

    async def _store(self, record: CachedBalance) -> None:
        async with self._lock:
            now = self._clock()
            expired = [
                key for key, cached in self._cache.items()
                if now - cached.observed_at >= self.ttl
            ]
            for key in expired:
                del self._cache[key]
            self._cache[record.address] = record

    def cached_addresses(self) -> List[str]:
        return list(self._cache)
