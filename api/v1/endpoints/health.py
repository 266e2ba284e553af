"""
Health Check Endpoints

Health checks integrating with the monitoring layer, plus live gateway
counters.

@.architecture
Incoming: api/v1/router.py, Frontend (HTTP GET), Load Balancers --- {HTTP requests to /v1/health, /v1/health/detailed, /v1/health/component/{name}, /v1/status}
Processing: health_check(), detailed_health_check(), check_component_health(), gateway_status() --- {2 jobs: component_checking, health_monitoring}
Outgoing: monitoring/health.py, api/dependencies.py, Frontend (HTTP) --- {HealthCheckResponse, SimpleHealthResponse, ComponentHealth, GatewayStatusResponse}
"""

import time

from fastapi import APIRouter, Depends, HTTPException, status

from api.dependencies import get_bridge, get_hub, get_registry
from api.v1.schemas.health import (
    ComponentHealth,
    GatewayStatusResponse,
    HealthCheckResponse,
    SimpleHealthResponse,
)
from monitoring import HealthStatus, get_health_checker, get_logger
from ws.hub import WebSocketHub
from ws.registry import SubscriptionRegistry

logger = get_logger(__name__)
router = APIRouter(tags=["health"])

# Track startup time
START_TIME = time.time()


# =============================================================================
# Simple Health Check
# =============================================================================

@router.get(
    "/health",
    response_model=SimpleHealthResponse,
    summary="Simple health check",
    description="Quick health check endpoint for load balancers and monitoring"
)
async def health_check() -> SimpleHealthResponse:
    """Basic status and uptime; use for load balancer checks."""
    return SimpleHealthResponse(
        status="ok",
        timestamp=time.time(),
        uptime_seconds=time.time() - START_TIME
    )


# =============================================================================
# Comprehensive Health Check
# =============================================================================

@router.get(
    "/health/detailed",
    response_model=HealthCheckResponse,
    summary="Detailed health check",
    description="Health of the registry, fan-out bridge and message bus"
)
async def detailed_health_check() -> HealthCheckResponse:
    start_time = time.time()

    try:
        health_data = await get_health_checker().check_all()
    except Exception as e:
        logger.error(f"Health check failed: {e}", exc_info=True)
        return HealthCheckResponse(
            status=HealthStatus.UNHEALTHY,
            timestamp=str(time.time()),
            uptime_seconds=time.time() - START_TIME,
            check_duration_ms=(time.time() - start_time) * 1000,
            components=[
                ComponentHealth(
                    component="gateway",
                    status=HealthStatus.UNHEALTHY,
                    message=f"Health check error: {str(e)}"
                )
            ]
        )

    return HealthCheckResponse(
        status=HealthStatus(health_data["status"]),
        timestamp=health_data["timestamp"],
        uptime_seconds=health_data["uptime_seconds"],
        check_duration_ms=health_data["check_duration_ms"],
        components=[
            ComponentHealth(
                component=comp["component"],
                status=HealthStatus(comp["status"]),
                message=comp.get("message"),
                response_time_ms=comp.get("response_time_ms"),
                details=comp.get("details"),
            )
            for comp in health_data.get("components", [])
        ]
    )


# =============================================================================
# Component-Specific Health Checks
# =============================================================================

@router.get(
    "/health/component/{component_name}",
    response_model=ComponentHealth,
    summary="Check specific component",
    description="Check health of one gateway component"
)
async def check_component_health(component_name: str) -> ComponentHealth:
    """
    Check specific component health.

    Args:
        component_name: Component to check (registry, bridge, bus)

    Raises:
        HTTPException: If the component is not registered
    """
    result = await get_health_checker().check_component(component_name)

    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Component '{component_name}' not found"
        )

    return ComponentHealth(
        component=result.component,
        status=result.status,
        message=result.message,
        response_time_ms=result.response_time_ms,
        details=result.details
    )


# =============================================================================
# Gateway Status
# =============================================================================

@router.get(
    "/status",
    response_model=GatewayStatusResponse,
    summary="Gateway status",
    description="Live connection counts and fan-out counters"
)
async def gateway_status(
    hub: WebSocketHub = Depends(get_hub),
    registry: SubscriptionRegistry = Depends(get_registry),
) -> GatewayStatusResponse:
    stats = registry.stats()
    bridge = get_bridge()

    return GatewayStatusResponse(
        connections=hub.get_connection_count(),
        identities=stats["identities"],
        registered_connections=stats["connections"],
        bridge=bridge.get_stats() if bridge is not None else None,
    )
