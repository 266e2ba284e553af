"""
API Dependencies

FastAPI dependency injection functions for:
- Settings access
- WebSocket hub access
- Subscription registry access
- Fan-out bridge and message bus access

@.architecture
Incoming: app.py (startup_event), api/v1/endpoints/*.py --- {set_hub/set_registry/set_bridge/set_bus calls, Depends() injections from endpoints}
Processing: get_settings(), get_hub(), get_registry(), get_bridge(), get_bus(), reset_components() --- {2 jobs: dependency_injection, resource_management}
Outgoing: api/v1/endpoints/*.py, app.py --- {Settings instance, WebSocketHub, SubscriptionRegistry, FanoutBridge, RedisBus}
"""

from typing import Optional

from fastapi import HTTPException

from config.settings import Settings, get_settings as load_settings
from data.bus.redis import RedisBus
from monitoring import get_logger
from ws.bridge import FanoutBridge
from ws.hub import WebSocketHub
from ws.registry import SubscriptionRegistry

logger = get_logger(__name__)


# =============================================================================
# Settings Dependencies
# =============================================================================

def get_settings() -> Settings:
    """Get application settings (cached by the loader)."""
    return load_settings()


# =============================================================================
# Gateway Component Dependencies
# =============================================================================

_hub: Optional[WebSocketHub] = None
_registry: Optional[SubscriptionRegistry] = None
_bridge: Optional[FanoutBridge] = None
_bus: Optional[RedisBus] = None


def set_hub(hub: Optional[WebSocketHub]) -> None:
    """Set the global WebSocket hub instance."""
    global _hub
    _hub = hub


def get_hub() -> WebSocketHub:
    """
    Get the WebSocket hub instance.

    Raises:
        HTTPException: If the hub is not initialized
    """
    if _hub is None:
        logger.error("WebSocket hub not initialized")
        raise HTTPException(
            status_code=503,
            detail="WebSocket hub not initialized. Server is starting up."
        )
    return _hub


def set_registry(registry: Optional[SubscriptionRegistry]) -> None:
    """Set the global subscription registry instance."""
    global _registry
    _registry = registry


def get_registry() -> SubscriptionRegistry:
    """
    Get the subscription registry instance.

    Raises:
        HTTPException: If the registry is not initialized
    """
    if _registry is None:
        logger.error("Subscription registry not initialized")
        raise HTTPException(
            status_code=503,
            detail="Subscription registry not initialized. Server is starting up."
        )
    return _registry


def set_bridge(bridge: Optional[FanoutBridge]) -> None:
    global _bridge
    _bridge = bridge


def get_bridge() -> Optional[FanoutBridge]:
    return _bridge


def set_bus(bus: Optional[RedisBus]) -> None:
    global _bus
    _bus = bus


def get_bus() -> Optional[RedisBus]:
    return _bus


def reset_components() -> None:
    """Forget every registered component (shutdown and tests)."""
    set_hub(None)
    set_registry(None)
    set_bridge(None)
    set_bus(None)
