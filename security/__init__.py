"""
Security Layer - connection admission.

- identity: Privy token verification and wallet lookup
- admission: token -> identity -> balance gating pipeline
"""

from .admission import (
    AdmissionPipeline,
    AdmissionResult,
    Rejected,
    SessionContext,
)
from .identity import IdentityRecord, PrivyIdentityProvider, VerifiedToken

__all__ = [
    "AdmissionPipeline",
    "AdmissionResult",
    "Rejected",
    "SessionContext",
    "IdentityRecord",
    "PrivyIdentityProvider",
    "VerifiedToken",
]
