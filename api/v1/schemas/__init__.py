"""
API V1 Schemas

Pydantic response models for the v1 endpoints.
"""

from .health import (
    ComponentHealth,
    HealthCheckResponse,
    SimpleHealthResponse,
    GatewayStatusResponse,
)

__all__ = [
    "ComponentHealth",
    "HealthCheckResponse",
    "SimpleHealthResponse",
    "GatewayStatusResponse",
]
