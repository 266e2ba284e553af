"""
Health Checks - Monitoring Layer

Aggregates health of the gateway's live components:
- Subscription registry (identities / connections)
- Outbound fan-out bridge (consumption loop state)
- Message bus (Redis ping)

@.architecture
Incoming: app.py, api/v1/endpoints/health.py, Component instances --- {SubscriptionRegistry, FanoutBridge, RedisBus, str component_name}
Processing: check_all(), check_component(), register_checker(), _aggregate_status() --- {3 jobs: aggregation, health_checking, registration}
Outgoing: api/v1/endpoints/health.py --- {Dict[str, Any] health status, HealthCheckResult, HealthStatus enum}
"""

import time
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class HealthStatus(str, Enum):
    """Health check status levels."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


@dataclass
class HealthCheckResult:
    """
    Result of a health check.

    Attributes:
        component: Component name
        status: Health status
        message: Status message
        details: Additional details
        checked_at: Timestamp of check
        response_time_ms: Check execution time
    """
    component: str
    status: HealthStatus
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    checked_at: str = field(default_factory=_utc_now)
    response_time_ms: Optional[float] = None


class HealthChecker:
    """
    Runs registered component checks and aggregates the results.

    A checker is any object with an async ``check_health()`` method that
    returns a dict carrying at least a ``healthy`` flag.
    """

    def __init__(self):
        self._start_time = time.time()
        self._checkers: Dict[str, Any] = {}

    def register_checker(self, name: str, checker: Any) -> None:
        """
        Register a component health checker.

        Args:
            name: Component name
            checker: Object with async check_health() method
        """
        self._checkers[name] = checker

    async def _run_checker(self, name: str, checker: Any) -> HealthCheckResult:
        try:
            check_start = time.time()
            result = await checker.check_health()
            check_time = (time.time() - check_start) * 1000

            return HealthCheckResult(
                component=name,
                status=HealthStatus.HEALTHY if result.get('healthy', False) else HealthStatus.UNHEALTHY,
                message=result.get('message', 'Component check completed'),
                details=result,
                response_time_ms=check_time
            )
        except Exception as e:
            return HealthCheckResult(
                component=name,
                status=HealthStatus.UNHEALTHY,
                message=f"Health check failed: {str(e)}",
                details={'error': str(e)}
            )

    async def check_all(self) -> Dict[str, Any]:
        """
        Run all health checks.

        Returns:
            Aggregated health check results
        """
        start = time.time()
        results = [
            await self._run_checker(name, checker)
            for name, checker in list(self._checkers.items())
        ]

        overall_status = self._aggregate_status(results)
        total_time = (time.time() - start) * 1000

        return {
            'status': overall_status.value,
            'timestamp': _utc_now(),
            'uptime_seconds': self.get_uptime(),
            'check_duration_ms': total_time,
            'components': [
                {
                    'component': r.component,
                    'status': r.status.value,
                    'message': r.message,
                    'details': r.details,
                    'response_time_ms': r.response_time_ms
                }
                for r in results
            ]
        }

    async def check_component(self, component: str) -> Optional[HealthCheckResult]:
        """
        Check health of specific component.

        Args:
            component: Component name

        Returns:
            HealthCheckResult or None if not found
        """
        checker = self._checkers.get(component)
        if checker is None:
            return None
        return await self._run_checker(component, checker)

    def _aggregate_status(self, results: List[HealthCheckResult]) -> HealthStatus:
        """
        Aggregate component statuses into overall status.

        No registered components means nothing is failing, so the gateway
        reports healthy.
        """
        statuses = [r.status for r in results]

        if HealthStatus.UNHEALTHY in statuses:
            return HealthStatus.UNHEALTHY

        if HealthStatus.DEGRADED in statuses:
            return HealthStatus.DEGRADED

        return HealthStatus.HEALTHY

    def get_uptime(self) -> float:
        """Get uptime in seconds."""
        return time.time() - self._start_time


_global_health_checker: Optional[HealthChecker] = None


def get_health_checker() -> HealthChecker:
    """
    Get global health checker.

    Returns:
        HealthChecker instance
    """
    global _global_health_checker
    if _global_health_checker is None:
        _global_health_checker = HealthChecker()
    return _global_health_checker


def initialize_health_checks(
    registry: Optional[Any] = None,
    bridge: Optional[Any] = None,
    bus: Optional[Any] = None
) -> HealthChecker:
    """
    Register the gateway components with the global health checker.

    Args:
        registry: SubscriptionRegistry
        bridge: FanoutBridge
        bus: RedisBus

    Returns:
        Configured HealthChecker
    """
    checker = get_health_checker()

    if registry is not None:
        checker.register_checker('registry', registry)

    if bridge is not None:
        checker.register_checker('bridge', bridge)

    if bus is not None:
        checker.register_checker('bus', bus)

    return checker
