"""
Integration fixtures: a full application over in-memory collaborators.
"""

import pytest
from fastapi.testclient import TestClient

from app import GatewayComponents, create_app


@pytest.fixture
def components(hub, registry, bridge, bus) -> GatewayComponents:
    return GatewayComponents(hub=hub, registry=registry, bridge=bridge, bus=bus)


@pytest.fixture
def client(test_settings, components):
    with TestClient(create_app(test_settings, components)) as test_client:
        yield test_client
