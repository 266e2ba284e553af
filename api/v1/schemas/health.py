"""
Health Check Schemas

Pydantic models for health and status endpoints.

@.architecture
Incoming: api/v1/endpoints/health.py, monitoring/health.py --- {health check results, registry and bridge stats}
Processing: Pydantic validation and serialization --- {2 jobs: data_validation, serialization}
Outgoing: api/v1/endpoints/health.py --- {HealthCheckResponse, ComponentHealth, SimpleHealthResponse, GatewayStatusResponse validated models}
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from monitoring import HealthStatus


class ComponentHealth(BaseModel):
    """Health status of a single component."""
    component: str
    status: HealthStatus
    message: Optional[str] = None
    response_time_ms: Optional[float] = None
    details: Optional[Dict[str, Any]] = None


class HealthCheckResponse(BaseModel):
    """Aggregated health of every registered component."""
    status: HealthStatus
    timestamp: str
    uptime_seconds: float
    check_duration_ms: float
    components: List[ComponentHealth] = Field(default_factory=list)


class SimpleHealthResponse(BaseModel):
    """Liveness answer for load balancers."""
    status: str = "ok"
    timestamp: float
    uptime_seconds: float
    version: Optional[str] = None


class GatewayStatusResponse(BaseModel):
    """Live connection and fan-out counters."""
    connections: int
    identities: int
    registered_connections: int
    bridge: Optional[Dict[str, Any]] = None
