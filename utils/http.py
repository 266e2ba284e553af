"""
HTTP Client Utilities - Async HTTP helpers.

Provides an async HTTP client with optional retry logic, timeout management,
connection pooling, and error handling for the gateway's external calls
(identity provider, ledger RPC, chat REST backend).

@.architecture
Incoming: security/identity.py, core/ledger/solana.py, core/messaging/transports.py --- {str url, Dict[str, Any] json body, Dict[str, str] headers, auth tuple}
Processing: request(), _request_with_retry(), get(), post(), close(), _get_or_create_client() --- {5 jobs: cleanup, connection_pooling, error_handling, http_client_management, request_retry}
Outgoing: Identity provider, Solana RPC, Chat REST backend --- {httpx.Response}
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Union
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class HTTPClientConfig:
    """HTTP client configuration."""

    # Timeouts
    connect_timeout: float = 5.0
    read_timeout: float = 30.0
    write_timeout: float = 30.0
    pool_timeout: float = 5.0

    # Attempts per request; 1 disables retrying
    max_retries: int = 1
    retry_min_wait: float = 1.0
    retry_max_wait: float = 10.0

    # Connection pooling
    max_connections: int = 100
    max_keepalive_connections: int = 20
    keepalive_expiry: float = 5.0

    max_redirects: int = 5


# =============================================================================
# HTTP Client Manager
# =============================================================================

class HTTPClient:
    """
    HTTP client with optional retry, timeout, and error handling.

    Features:
    - Retry with exponential backoff on transport errors (max_retries > 1)
    - Configurable timeouts for different operations
    - Connection pooling
    - Lazy client creation and graceful cleanup
    """

    def __init__(
        self,
        config: Optional[HTTPClientConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize HTTP client.

        Args:
            config: Client configuration (uses defaults if None)
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.config = config or HTTPClientConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

    async def _get_or_create_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client with proper configuration."""
        async with self._client_lock:
            if self._client is None or self._client.is_closed:
                timeout = httpx.Timeout(
                    connect=self.config.connect_timeout,
                    read=self.config.read_timeout,
                    write=self.config.write_timeout,
                    pool=self.config.pool_timeout,
                )

                limits = httpx.Limits(
                    max_connections=self.config.max_connections,
                    max_keepalive_connections=self.config.max_keepalive_connections,
                    keepalive_expiry=self.config.keepalive_expiry,
                )

                self._client = httpx.AsyncClient(
                    timeout=timeout,
                    limits=limits,
                    max_redirects=self.config.max_redirects,
                    follow_redirects=True,
                    transport=self._transport,
                )
                logger.debug("Created new HTTP client")

            return self._client

    async def close(self) -> None:
        """Close HTTP client and cleanup resources."""
        async with self._client_lock:
            if self._client and not self._client.is_closed:
                await self._client.aclose()
                logger.debug("Closed HTTP client")
            self._client = None

    @asynccontextmanager
    async def client_context(self):
        """
        Context manager for HTTP client access.

        Usage:
            async with http_client.client_context() as client:
                response = await client.get(url)
        """
        client = await self._get_or_create_client()
        yield client

    # =========================================================================
    # Request Methods
    # =========================================================================

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        data: Optional[Union[Dict[str, Any], bytes]] = None,
        timeout: Optional[float] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request, retrying transport errors up to max_retries attempts.

        Raises:
            httpx.HTTPError: If the request fails (after retries, if enabled)
        """
        async with self.client_context() as client:
            if timeout is not None:
                kwargs['timeout'] = timeout

            return await self._request_with_retry(
                client, method, url,
                headers=headers,
                params=params,
                json=json,
                data=data,
                **kwargs
            )

    async def _request_with_retry(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs
    ) -> httpx.Response:
        """Internal request method with retry logic."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max(1, self.config.max_retries)),
            wait=wait_exponential(
                min=self.config.retry_min_wait,
                max=self.config.retry_max_wait,
            ),
            retry=retry_if_exception_type((
                httpx.TimeoutException,
                httpx.NetworkError,
                httpx.RemoteProtocolError,
            )),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
        return response

    async def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs
    ) -> httpx.Response:
        """Make GET request."""
        return await self.request("GET", url, params=params, headers=headers, **kwargs)

    async def post(
        self,
        url: str,
        json: Optional[Any] = None,
        data: Optional[Union[Dict[str, Any], bytes]] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs
    ) -> httpx.Response:
        """Make POST request."""
        return await self.request("POST", url, json=json, data=data, headers=headers, **kwargs)
