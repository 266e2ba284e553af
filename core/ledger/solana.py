"""
Solana ledger client.

Queries the SPL token accounts owned by a wallet for one mint over JSON-RPC
(``getTokenAccountsByOwner`` with ``jsonParsed`` encoding). Amounts are the
raw base-unit strings reported by the RPC node, returned as ``int``.

@.architecture
Incoming: core/ledger/oracle.py --- {str owner address, str mint address}
Processing: accounts_by_owner(), _rpc(), _parse_amounts() --- {3 jobs: address_validation, json_rpc, response_parsing}
Outgoing: Solana RPC node (via utils/http.py) --- {JSON-RPC request, List[int] base-unit amounts}
"""

import re
from itertools import count
from typing import Any, Dict, List, Optional

import httpx

from core.errors import BalanceQueryFailed
from monitoring import get_logger
from utils.http import HTTPClient, HTTPClientConfig

logger = get_logger(__name__)

# Base58 public key, 32 bytes encodes to 32-44 characters
_PUBKEY_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def is_valid_address(address: str) -> bool:
    return isinstance(address, str) and bool(_PUBKEY_RE.match(address))


class SolanaLedger:
    """
    Ledger balance query against a Solana RPC endpoint.

    Built with a single-attempt HTTP client: the caller owns retry policy.
    """

    def __init__(
        self,
        rpc_url: str,
        commitment: str = "confirmed",
        http_client: Optional[HTTPClient] = None,
    ):
        self.rpc_url = rpc_url
        self.commitment = commitment
        self._http = http_client or HTTPClient(HTTPClientConfig(max_retries=1))
        self._ids = count(1)

    async def accounts_by_owner(self, owner: str, mint: str) -> List[int]:
        """
        Base-unit amounts of every token account ``owner`` holds for ``mint``.

        Raises:
            BalanceQueryFailed: invalid address, transport error, RPC error
                or a response that does not have the expected shape
        """
        if not is_valid_address(owner):
            raise BalanceQueryFailed(f"Invalid wallet address: {owner!r}")
        if not is_valid_address(mint):
            raise BalanceQueryFailed(f"Invalid token mint: {mint!r}")

        result = await self._rpc(
            "getTokenAccountsByOwner",
            [
                owner,
                {"mint": mint},
                {"encoding": "jsonParsed", "commitment": self.commitment},
            ],
        )
        return self._parse_amounts(result)

    async def _rpc(self, method: str, params: List[Any]) -> Dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = await self._http.post(self.rpc_url, json=payload)
            body = response.json()
        except httpx.HTTPError as e:
            raise BalanceQueryFailed(f"{method} request failed: {e}") from e
        except ValueError as e:
            raise BalanceQueryFailed(f"{method} returned invalid JSON") from e

        if not isinstance(body, dict):
            raise BalanceQueryFailed(f"{method} returned unexpected body")

        if body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise BalanceQueryFailed(f"{method} RPC error: {message}")

        result = body.get("result")
        if not isinstance(result, dict):
            raise BalanceQueryFailed(f"{method} response missing result")
        return result

    @staticmethod
    def _parse_amounts(result: Dict[str, Any]) -> List[int]:
        accounts = result.get("value")
        if not isinstance(accounts, list):
            raise BalanceQueryFailed("Token account list missing from response")

        amounts = []
        for account in accounts:
            try:
                info = account["account"]["data"]["parsed"]["info"]
                amounts.append(int(info["tokenAmount"]["amount"]))
            except (KeyError, TypeError, ValueError) as e:
                raise BalanceQueryFailed(f"Malformed token account entry: {e}") from e
        return amounts

    async def close(self) -> None:
        await self._http.close()
