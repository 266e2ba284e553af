"""Ledger balance lookup: Solana RPC client and the TTL-cached oracle."""

from .oracle import BalanceOracle, CachedBalance
from .solana import SolanaLedger, is_valid_address

__all__ = ["BalanceOracle", "CachedBalance", "SolanaLedger", "is_valid_address"]
