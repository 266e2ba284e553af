"""
Integration Tests: HTTP API

Tests for health and status endpoints and application lifecycle.
"""

import pytest
from fastapi.testclient import TestClient

from app import create_app
from core.errors import ConfigurationError
from config.settings import Settings


class TestHealth:

    @pytest.mark.integration
    def test_root_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["connections"] == 0

    @pytest.mark.integration
    def test_v1_health(self, client):
        response = client.get("/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    @pytest.mark.integration
    def test_detailed_health_lists_components(self, client):
        response = client.get("/v1/health/detailed")

        assert response.status_code == 200
        components = {c["component"] for c in response.json()["components"]}
        assert {"registry", "bridge", "bus"} <= components

    @pytest.mark.integration
    def test_component_health(self, client):
        response = client.get("/v1/health/component/registry")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.integration
    def test_unknown_component(self, client):
        assert client.get("/v1/health/component/nope").status_code == 404

    @pytest.mark.integration
    def test_status(self, client):
        response = client.get("/v1/status")

        assert response.status_code == 200
        body = response.json()
        assert body["connections"] == 0
        assert body["bridge"]["running"] is True

class TestLifecycle:

    @pytest.mark.integration
    def test_startup_connects_bus_and_shutdown_stops_bridge(self, test_settings, components, bus):
        with TestClient(create_app(test_settings, components)):
            assert bus.connected is True
            assert components.bridge.running

        assert bus.connected is False
        assert not components.bridge.running

    @pytest.mark.integration
    def test_missing_configuration_fails_fast(self):
        with pytest.raises(ConfigurationError):
            create_app(Settings(environment="test"))
