"""
Monitoring & Observability Layer

Provides observability for the gateway:
- Structured logging (JSON formatting, connection context injection)
- Health checks (registry, fan-out bridge, message bus)
"""

# Logging
from .logging import (
    JSONFormatter,
    ContextFilter,
    StructuredLogger,
    configure_logging,
    configure_from_preset,
    get_logger,
    set_connection_context,
    clear_connection_context,
    get_connection_id,
    LOGGING_PRESETS,
)

# Health checks
from .health import (
    HealthStatus,
    HealthCheckResult,
    HealthChecker,
    get_health_checker,
    initialize_health_checks,
)

__all__ = [
    # Logging
    'JSONFormatter',
    'ContextFilter',
    'StructuredLogger',
    'configure_logging',
    'configure_from_preset',
    'get_logger',
    'set_connection_context',
    'clear_connection_context',
    'get_connection_id',
    'LOGGING_PRESETS',

    # Health
    'HealthStatus',
    'HealthCheckResult',
    'HealthChecker',
    'get_health_checker',
    'initialize_health_checks',
]
