"""
Unit Tests: Monitoring

Tests for structured logging and health checks.
"""

import json
import logging
import sys

import pytest

from monitoring.health import HealthChecker, HealthStatus
from monitoring.logging import (
    ContextFilter,
    JSONFormatter,
    clear_connection_context,
    get_connection_id,
    get_logger,
    set_connection_context,
)


# =============================================================================
# Logging Tests
# =============================================================================

class TestLogging:
    """Structured logging and connection context."""

    def _record(self, message: str = "hello") -> logging.LogRecord:
        return logging.LogRecord(
            name="ws.hub", level=logging.INFO, pathname=__file__, lineno=1,
            msg=message, args=(), exc_info=None,
        )

    @pytest.mark.unit
    def test_get_logger(self):
        logger = get_logger("test_module")

        assert logger.name == "test_module"

    @pytest.mark.unit
    def test_json_formatter_includes_context(self):
        set_connection_context(connection_id="conn-1", user_id="did:privy:alice")
        try:
            payload = json.loads(JSONFormatter().format(self._record()))
        finally:
            clear_connection_context()

        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"
        assert payload["connection_id"] == "conn-1"
        assert payload["user_id"] == "did:privy:alice"

    @pytest.mark.unit
    def test_json_formatter_includes_exception(self):
        try:
            raise ConnectionResetError("peer reset")
        except ConnectionResetError:
            record = logging.LogRecord(
                name="app", level=logging.ERROR, pathname=__file__, lineno=1,
                msg="WebSocket error", args=(), exc_info=sys.exc_info(),
            )

        payload = json.loads(JSONFormatter().format(record))

        assert payload["exception"]["type"] == "ConnectionResetError"
        assert payload["exception"]["message"] == "peer reset"

    @pytest.mark.unit
    def test_structured_logger_forwards_exc_info_and_extras(self, caplog):
        logger = get_logger("ws.hub")

        with caplog.at_level(logging.ERROR, logger="ws.hub"):
            try:
                raise RuntimeError("send failed")
            except RuntimeError:
                logger.error("Delivery failed", exc_info=True, connection="conn-1")

        record = caplog.records[-1]
        assert record.exc_info[0] is RuntimeError
        assert record.extra_fields == {"connection": "conn-1"}

    @pytest.mark.unit
    def test_context_filter_fills_placeholders(self):
        clear_connection_context()
        record = self._record()

        assert ContextFilter().filter(record) is True
        assert record.connection_id == "-"
        assert record.user_id == "-"

    @pytest.mark.unit
    def test_clear_context(self):
        set_connection_context(connection_id="conn-2")
        clear_connection_context()

        assert get_connection_id() is None

    @pytest.mark.unit
    def test_log_levels(self):
        logger = get_logger("test")

        # Should not raise exceptions
        logger.debug("Debug message")
        logger.info("Info message", extra_field="value")
        logger.warning("Warning message")
        logger.error("Error message")


# =============================================================================
# Health Check Tests
# =============================================================================

class _Component:
    def __init__(self, healthy=True, error=None):
        self.healthy = healthy
        self.error = error

    async def check_health(self):
        if self.error:
            raise self.error
        return {"healthy": self.healthy, "message": "ok" if self.healthy else "down"}


class TestHealthChecks:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_components_is_healthy(self):
        result = await HealthChecker().check_all()

        assert result["status"] == HealthStatus.HEALTHY.value
        assert result["components"] == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_one_unhealthy_component(self):
        checker = HealthChecker()
        checker.register_checker("registry", _Component())
        checker.register_checker("bus", _Component(healthy=False))

        result = await checker.check_all()

        assert result["status"] == "unhealthy"
        statuses = {c["component"]: c["status"] for c in result["components"]}
        assert statuses == {"registry": "healthy", "bus": "unhealthy"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_raising_checker_is_unhealthy(self):
        checker = HealthChecker()
        checker.register_checker("bridge", _Component(error=RuntimeError("boom")))

        result = await checker.check_component("bridge")

        assert result.status == HealthStatus.UNHEALTHY
        assert "boom" in result.message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_component(self):
        assert await HealthChecker().check_component("missing") is None
