"""
Admission Pipeline - Security Layer

@.architecture
Incoming: ws/hub.py (connect) --- {raw credential from handshake, optional declared wallet address}
Processing: admit(), _resolve_identity(), _check_eligibility() --- {4 jobs: token_check, identity_resolution, eligibility_check, rejection_mapping}
Outgoing: ws/hub.py, security/identity.py, core/ledger/oracle.py --- {SessionContext or Rejected, verify/lookup calls, get_balance calls}

Stages run in order and short-circuit on the first failure:
1. token check (no external call)
2. identity resolution (identity provider)
3. eligibility check (balance oracle, optional)
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Tuple, Union

from core.errors import (
    AuthenticationError,
    AuthenticationFailed,
    InsufficientBalance,
    MissingToken,
    MissingWalletAddress,
)
from core.ledger.solana import is_valid_address
from monitoring import get_logger

logger = get_logger(__name__)

ADDRESS_FROM_PROVIDER = "provider"
ADDRESS_FROM_HANDSHAKE = "handshake"


class IdentityProvider(Protocol):
    async def verify(self, token: str) -> Any:
        ...

    async def lookup(self, user_id: str) -> Any:
        ...


class BalanceSource(Protocol):
    async def get_balance(self, address: str) -> int:
        ...


@dataclass(frozen=True)
class SessionContext:
    """Outcome of a successful admission."""
    user_id: str
    wallet_address: str
    balance: Optional[int] = None


@dataclass(frozen=True)
class Rejected:
    """Outcome of a failed admission; ``reason`` is safe to show the client."""
    reason: str
    error: AuthenticationError


AdmissionResult = Union[SessionContext, Rejected]


class AdmissionPipeline:
    """
    Gates a new connection: token -> identity -> balance.

    Categorised failures (missing token, missing wallet, insufficient
    balance) are reported to the client by name. Anything else, including
    identity provider and oracle faults, becomes a generic
    AuthenticationFailed and the cause is only logged.
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        balance_source: Optional[BalanceSource] = None,
        min_balance: int = 0,
        min_balance_display: str = "0.00",
        address_source: str = ADDRESS_FROM_PROVIDER,
        eligibility_enabled: bool = True,
    ):
        if address_source not in (ADDRESS_FROM_PROVIDER, ADDRESS_FROM_HANDSHAKE):
            raise ValueError(f"Unknown address source: {address_source}")
        if eligibility_enabled and balance_source is None:
            raise ValueError("Eligibility gating requires a balance source")

        self.identity_provider = identity_provider
        self.balance_source = balance_source
        self.min_balance = min_balance
        self.min_balance_display = min_balance_display
        self.address_source = address_source
        self.eligibility_enabled = eligibility_enabled

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        identity_provider: IdentityProvider,
        balance_source: Optional[BalanceSource],
    ) -> "AdmissionPipeline":
        return cls(
            identity_provider=identity_provider,
            balance_source=balance_source,
            min_balance=settings.ledger.min_balance_base_units,
            min_balance_display=settings.ledger.min_balance_display,
            address_source=settings.identity.address_source,
            eligibility_enabled=settings.ledger.eligibility_enabled,
        )

    async def admit(
        self,
        raw_credential: Any,
        declared_address: Optional[str] = None,
    ) -> AdmissionResult:
        """
        Run every stage and return a SessionContext or a Rejected.

        Cancellation (client gone mid-admission) propagates untouched.
        """
        try:
            token = self._check_token(raw_credential)
            user_id, wallet_address = await self._resolve_identity(token, declared_address)
            balance = await self._check_eligibility(wallet_address)
        except asyncio.CancelledError:
            raise
        except AuthenticationFailed as e:
            logger.warning(f"Authentication failed: {e}")
            return Rejected(reason="Authentication failed", error=e)
        except AuthenticationError as e:
            logger.warning(f"Authentication failed: {e.reason}")
            return Rejected(reason=f"Authentication failed: {e.reason}", error=e)
        except Exception as e:
            logger.warning(f"Authentication failed: {type(e).__name__}: {e}")
            return Rejected(reason="Authentication failed", error=AuthenticationFailed())

        return SessionContext(user_id=user_id, wallet_address=wallet_address, balance=balance)

    # Stages

    @staticmethod
    def _check_token(raw_credential: Any) -> str:
        if not isinstance(raw_credential, str) or not raw_credential.strip():
            raise MissingToken()
        return raw_credential.strip()

    async def _resolve_identity(
        self,
        token: str,
        declared_address: Optional[str],
    ) -> Tuple[str, str]:
        verified = await self.identity_provider.verify(token)
        user_id = verified.user_id

        if self.address_source == ADDRESS_FROM_HANDSHAKE:
            if not declared_address or not is_valid_address(declared_address):
                raise MissingWalletAddress()
            return user_id, declared_address

        record = await self.identity_provider.lookup(user_id)
        wallet_address = getattr(record, "wallet_address", None)
        if not wallet_address or not isinstance(wallet_address, str):
            raise MissingWalletAddress()
        if declared_address and declared_address != wallet_address:
            logger.debug(f"Ignoring declared address for {user_id}; provider address wins")
        return user_id, wallet_address

    async def _check_eligibility(self, wallet_address: str) -> Optional[int]:
        if not self.eligibility_enabled:
            return None

        balance = await self.balance_source.get_balance(wallet_address)
        if balance < self.min_balance:
            raise InsufficientBalance(self.min_balance_display)
        return balance
