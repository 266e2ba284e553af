"""
Identity Provider - Privy access token verification and user lookup.

@.architecture
Incoming: security/admission.py --- {str access token, str user id}
Processing: verify(), lookup(), _wallet_from_user() --- {3 jobs: token_verification, user_lookup, wallet_selection}
Outgoing: Privy REST API (via utils/http.py) --- {VerifiedToken, IdentityRecord}

Access tokens are ES256 JWTs signed by Privy. They are verified locally with
the app's verification key; only the user lookup goes over the network.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from jose import JWTError, jwt

from core.errors import IdentityProviderError
from monitoring import get_logger
from utils.http import HTTPClient, HTTPClientConfig

logger = get_logger(__name__)

_ALGORITHM = "ES256"


@dataclass(frozen=True)
class VerifiedToken:
    """Claims extracted from a valid access token."""
    user_id: str
    session_id: Optional[str] = None
    expires_at: Optional[int] = None


@dataclass(frozen=True)
class IdentityRecord:
    """User record as far as the gateway cares about it."""
    user_id: str
    wallet_address: Optional[str]


class PrivyIdentityProvider:
    """
    Identity provider client for Privy.

    ``verify`` checks signature, audience (app id), issuer and expiry.
    ``lookup`` fetches the user and picks its wallet address, preferring a
    wallet on ``preferred_chain``.
    """

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        verification_key: str,
        api_base: str = "https://auth.privy.io/api/v1",
        issuer: str = "privy.io",
        preferred_chain: str = "solana",
        http_client: Optional[HTTPClient] = None,
    ):
        self.app_id = app_id
        self._app_secret = app_secret
        self._verification_key = verification_key
        self.api_base = api_base.rstrip("/")
        self.issuer = issuer
        self.preferred_chain = preferred_chain
        self._http = http_client or HTTPClient(HTTPClientConfig(max_retries=1))

    async def verify(self, token: str) -> VerifiedToken:
        """
        Verify an access token.

        Raises:
            IdentityProviderError: signature, audience, issuer or expiry check failed
        """
        try:
            claims = jwt.decode(
                token,
                self._verification_key,
                algorithms=[_ALGORITHM],
                audience=self.app_id,
                issuer=self.issuer,
            )
        except JWTError as e:
            raise IdentityProviderError(f"Token verification failed: {e}") from e

        user_id = claims.get("sub")
        if not user_id or not isinstance(user_id, str):
            raise IdentityProviderError("Token has no subject")

        return VerifiedToken(
            user_id=user_id,
            session_id=claims.get("sid"),
            expires_at=claims.get("exp"),
        )

    async def lookup(self, user_id: str) -> IdentityRecord:
        """
        Fetch the user and resolve its wallet address.

        Raises:
            IdentityProviderError: request failed or the response was malformed
        """
        url = f"{self.api_base}/users/{user_id}"
        try:
            response = await self._http.get(
                url,
                headers={"privy-app-id": self.app_id},
                auth=(self.app_id, self._app_secret),
            )
            user = response.json()
        except httpx.HTTPError as e:
            raise IdentityProviderError(f"User lookup failed: {e}") from e
        except ValueError as e:
            raise IdentityProviderError("User lookup returned invalid JSON") from e

        if not isinstance(user, dict):
            raise IdentityProviderError("User lookup returned unexpected body")

        return IdentityRecord(
            user_id=user.get("id") or user_id,
            wallet_address=self._wallet_from_user(user),
        )

    def _wallet_from_user(self, user: Dict[str, Any]) -> Optional[str]:
        accounts: List[Dict[str, Any]] = [
            account for account in user.get("linked_accounts") or []
            if isinstance(account, dict) and account.get("type") == "wallet"
        ]
        if not accounts:
            return None

        preferred = [a for a in accounts if a.get("chain_type") == self.preferred_chain]
        chosen = (preferred or accounts)[0]
        address = chosen.get("address")
        return address if isinstance(address, str) and address else None

    async def close(self) -> None:
        await self._http.close()
