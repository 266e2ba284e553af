"""
Unit Tests: Balance Oracle

Tests for balance aggregation and the time-bounded cache.
"""

import asyncio

import pytest

from core.errors import BalanceQueryFailed
from core.ledger import BalanceOracle
from tests.fakes import ALICE_WALLET, BOB_WALLET, TOKEN_MINT, FakeLedger


class SlowLedger(FakeLedger):
    """Ledger whose queries take long enough for callers to overlap."""

    def __init__(self, accounts=None, delay: float = 0.05):
        super().__init__(accounts)
        self.delay = delay

    async def accounts_by_owner(self, owner, mint):
        await asyncio.sleep(self.delay)
        return await super().accounts_by_owner(owner, mint)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestBalance:
    """Aggregation across token accounts."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sums_all_accounts(self):
        oracle = BalanceOracle(FakeLedger({ALICE_WALLET: [1, 2, 3]}), token_mint=TOKEN_MINT)

        assert await oracle.get_balance(ALICE_WALLET) == 6

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_accounts_is_zero(self):
        oracle = BalanceOracle(FakeLedger(), token_mint=TOKEN_MINT)

        assert await oracle.get_balance(ALICE_WALLET) == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_large_amounts_keep_precision(self):
        big = 2 ** 64 + 1
        oracle = BalanceOracle(FakeLedger({ALICE_WALLET: [big, big]}), token_mint=TOKEN_MINT)

        assert await oracle.get_balance(ALICE_WALLET) == 2 * big

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_queries_with_configured_mint(self):
        ledger = FakeLedger()
        oracle = BalanceOracle(ledger, token_mint=TOKEN_MINT)

        await oracle.get_balance(ALICE_WALLET)

        assert ledger.calls == [(ALICE_WALLET, TOKEN_MINT)]


class TestCache:
    """TTL behaviour."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_one_query_within_ttl(self):
        clock = FakeClock()
        ledger = FakeLedger({ALICE_WALLET: [10]})
        oracle = BalanceOracle(ledger, token_mint=TOKEN_MINT, ttl=30.0, clock=clock)

        first = await oracle.get_balance(ALICE_WALLET)
        clock.now += 29.9
        second = await oracle.get_balance(ALICE_WALLET)

        assert first == second == 10
        assert len(ledger.calls) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_expired_record_is_requeried(self):
        clock = FakeClock()
        ledger = FakeLedger({ALICE_WALLET: [10]})
        oracle = BalanceOracle(ledger, token_mint=TOKEN_MINT, ttl=30.0, clock=clock)

        await oracle.get_balance(ALICE_WALLET)
        ledger.accounts[ALICE_WALLET] = [20]
        clock.now += 30.0

        assert await oracle.get_balance(ALICE_WALLET) == 20
        assert len(ledger.calls) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_expired_records_evicted_on_write(self):
        clock = FakeClock()
        oracle = BalanceOracle(FakeLedger(), token_mint=TOKEN_MINT, ttl=30.0, clock=clock)

        await oracle.get_balance(ALICE_WALLET)
        clock.now += 31.0
        await oracle.get_balance(BOB_WALLET)

        assert oracle.cached_addresses() == [BOB_WALLET]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self):
        ledger = FakeLedger({ALICE_WALLET: [10]})
        ledger.fail_with = BalanceQueryFailed("rpc down")
        oracle = BalanceOracle(ledger, token_mint=TOKEN_MINT)

        with pytest.raises(BalanceQueryFailed):
            await oracle.get_balance(ALICE_WALLET)

        ledger.fail_with = None
        assert await oracle.get_balance(ALICE_WALLET) == 10

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_errors_become_query_failures(self):
        ledger = FakeLedger()
        ledger.fail_with = ConnectionResetError("peer reset")
        oracle = BalanceOracle(ledger, token_mint=TOKEN_MINT)

        with pytest.raises(BalanceQueryFailed):
            await oracle.get_balance(ALICE_WALLET)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_warm_cache_serves_concurrent_lookups(self):
        ledger = FakeLedger({ALICE_WALLET: [7]})
        oracle = BalanceOracle(ledger, token_mint=TOKEN_MINT)

        await oracle.get_balance(ALICE_WALLET)
        results = await asyncio.gather(*[oracle.get_balance(ALICE_WALLET) for _ in range(10)])

        assert results == [7] * 10
        assert len(ledger.calls) == 1


class TestConcurrentMisses:
    """Cold lookups racing for the same or different addresses."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cold_lookups_for_one_address_query_once(self):
        ledger = SlowLedger({ALICE_WALLET: [7]})
        oracle = BalanceOracle(ledger, token_mint=TOKEN_MINT)

        results = await asyncio.gather(*[oracle.get_balance(ALICE_WALLET) for _ in range(5)])

        assert results == [7] * 5
        assert ledger.calls == [(ALICE_WALLET, TOKEN_MINT)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_different_addresses_query_independently(self):
        ledger = SlowLedger({ALICE_WALLET: [7], BOB_WALLET: [9]})
        oracle = BalanceOracle(ledger, token_mint=TOKEN_MINT)

        results = await asyncio.gather(
            oracle.get_balance(ALICE_WALLET),
            oracle.get_balance(BOB_WALLET),
            oracle.get_balance(ALICE_WALLET),
        )

        assert results == [7, 9, 7]
        assert sorted(owner for owner, _ in ledger.calls) == sorted([ALICE_WALLET, BOB_WALLET])

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_shared_failure_reaches_every_caller_and_is_not_cached(self):
        ledger = SlowLedger({ALICE_WALLET: [7]})
        ledger.fail_with = BalanceQueryFailed("rpc down")
        oracle = BalanceOracle(ledger, token_mint=TOKEN_MINT)

        results = await asyncio.gather(
            *[oracle.get_balance(ALICE_WALLET) for _ in range(3)],
            return_exceptions=True,
        )

        assert all(isinstance(r, BalanceQueryFailed) for r in results)
        assert len(ledger.calls) == 1

        ledger.fail_with = None
        assert await oracle.get_balance(ALICE_WALLET) == 7
        assert len(ledger.calls) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_shared_query(self):
        ledger = SlowLedger({ALICE_WALLET: [7]})
        oracle = BalanceOracle(ledger, token_mint=TOKEN_MINT)

        first = asyncio.create_task(oracle.get_balance(ALICE_WALLET))
        second = asyncio.create_task(oracle.get_balance(ALICE_WALLET))
        await asyncio.sleep(0.01)
        first.cancel()

        assert await second == 7
        assert len(ledger.calls) == 1
        assert oracle.cached_addresses() == [ALICE_WALLET]
