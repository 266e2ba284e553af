"""
Pytest Configuration and Shared Fixtures

Wires the in-memory fakes from tests/fakes.py into admission pipelines,
hubs and bridges shared by unit and integration tests.
"""

import os

import pytest

# Test environment setup
os.environ["GATEWAY_ENVIRONMENT"] = "test"

from config.settings import Settings
from core.ledger import BalanceOracle
from core.messaging import BusTransport, InboundMessageRouter
from security import AdmissionPipeline
from ws import FanoutBridge, MessageHandler, SubscriptionRegistry, WebSocketHub
from tests.fakes import (
    ALICE_WALLET,
    BOB_WALLET,
    MIN_BALANCE_BASE_UNITS,
    TOKEN_MINT,
    FakeIdentityProvider,
    FakeLedger,
    InMemoryBus,
)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test component interactions"
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider(
        tokens={"alice-token": "did:privy:alice", "bob-token": "did:privy:bob"},
        wallets={"did:privy:alice": ALICE_WALLET, "did:privy:bob": BOB_WALLET},
    )


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger({
        ALICE_WALLET: [MIN_BALANCE_BASE_UNITS, 5],
        BOB_WALLET: [MIN_BALANCE_BASE_UNITS - 1],
    })


@pytest.fixture
def bus() -> InMemoryBus:
    return InMemoryBus()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="test",
        security={"allowed_origins": ["http://localhost:5173"]},
        identity={"app_id": "app-id", "app_secret": "secret", "verification_key": "key"},
        ledger={"token_mint": TOKEN_MINT},
    )


@pytest.fixture
def pipeline(identity_provider, ledger) -> AdmissionPipeline:
    return AdmissionPipeline(
        identity_provider=identity_provider,
        balance_source=BalanceOracle(ledger, token_mint=TOKEN_MINT),
        min_balance=MIN_BALANCE_BASE_UNITS,
        min_balance_display="100000.00",
    )


@pytest.fixture
def registry() -> SubscriptionRegistry:
    return SubscriptionRegistry()


@pytest.fixture
def hub(pipeline, registry, bus) -> WebSocketHub:
    return WebSocketHub(
        pipeline=pipeline,
        registry=registry,
        message_handler=MessageHandler(InboundMessageRouter(BusTransport(bus))),
        welcome_message="👋 Connected to Nova Dova AI",
    )


@pytest.fixture
def bridge(bus, registry, hub) -> FanoutBridge:
    return FanoutBridge(
        bus=bus,
        channel="chat:responses",
        registry=registry,
        deliverer=hub,
        resubscribe_delay=0.01,
    )
