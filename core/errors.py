"""
Gateway error taxonomy.

Admission errors carry a user-facing ``reason``; anything else that escapes
the admission stages is folded into AuthenticationFailed so internal detail
never reaches the client.
"""

from typing import List, Optional


class GatewayError(Exception):
    """Base class for all gateway errors."""
    pass


class ConfigurationError(GatewayError):
    """Raised at startup when required configuration is missing or invalid."""

    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(f"Missing required configuration: {', '.join(missing)}")


# ==================== Admission ====================

class AuthenticationError(GatewayError):
    """Base class for admission rejections."""

    reason = "Authentication failed"

    def __init__(self, reason: Optional[str] = None):
        if reason is not None:
            self.reason = reason
        super().__init__(self.reason)


class MissingToken(AuthenticationError):
    reason = "Missing auth token"


class MissingWalletAddress(AuthenticationError):
    reason = "Missing wallet address"


class InsufficientBalance(AuthenticationError):
    """Balance below the configured minimum; ``minimum`` is in whole tokens."""

    def __init__(self, minimum: str):
        self.minimum = minimum
        super().__init__(
            f"Insufficient token balance. Minimum required: {minimum} tokens"
        )


class AuthenticationFailed(AuthenticationError):
    """Catch-all for identity provider and balance oracle faults."""
    reason = "Authentication failed"


# ==================== Collaborators ====================

class IdentityProviderError(GatewayError):
    """Token verification or user lookup failed at the identity provider."""
    pass


class BalanceQueryFailed(GatewayError):
    """Ledger balance lookup failed (network error or malformed response)."""
    pass


class PublishFailed(GatewayError):
    """Inbound message could not be handed to the worker tier."""
    pass


# ==================== Messaging ====================

class Unauthenticated(GatewayError):
    """Inbound message on a connection without a resolved identity."""
    pass


class MalformedEvent(GatewayError):
    """Outbound response event could not be parsed."""
    pass


class MalformedFrame(GatewayError):
    """Client frame could not be decoded into a known event."""
    pass
