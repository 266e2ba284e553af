"""
FastAPI Application Factory

Creates and configures the gateway application with:
- Component wiring (identity, ledger, admission, bus, hub, bridge)
- CORS and origin policy
- The client WebSocket endpoint
- Lifecycle management (startup/shutdown)

@.architecture
Incoming: main.py, config/settings.py, api/v1/router.py, ws/*.py, security/*.py, core/*.py --- {Settings object, APIRouter instances, component constructors}
Processing: create_app(), build_components(), startup_event(), shutdown_event(), websocket_endpoint() --- {8 jobs: application_creation, cleanup, component_wiring, connection_management, health_monitoring, lifecycle_management, origin_policy, routing_registration}
Outgoing: main.py, Frontend (HTTP/WebSocket) --- {FastAPI application instance, HTTP responses, WebSocket frames}
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional
import time

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.settings import Settings, get_settings, validate_settings
from api.v1.router import api_v1_router
from api.dependencies import (
    reset_components,
    set_bridge,
    set_bus,
    set_hub,
    set_registry,
)
from core.ledger import BalanceOracle, SolanaLedger
from core.messaging import BusTransport, HttpTransport, InboundMessageRouter
from data.bus import RedisBus
from monitoring import (
    clear_connection_context,
    configure_from_preset,
    get_logger,
    initialize_health_checks,
)
from security import AdmissionPipeline, PrivyIdentityProvider
from ws import FanoutBridge, MessageHandler, SubscriptionRegistry, WebSocketHub
from ws.protocols import CLOSE_CODE_POLICY

logger = get_logger(__name__)

# Track startup time for uptime calculation
START_TIME = time.time()


@dataclass
class GatewayComponents:
    """
    Everything the application drives over its lifetime.

    ``bus`` and ``bridge`` are optional so a gateway can be assembled
    without a live message bus (tests, echo-only deployments).
    ``closers`` are awaited on shutdown, after the bridge has stopped.
    """
    hub: WebSocketHub
    registry: SubscriptionRegistry
    bridge: Optional[FanoutBridge] = None
    bus: Optional[Any] = None
    closers: List[Callable[[], Awaitable[None]]] = field(default_factory=list)


def build_components(settings: Settings) -> GatewayComponents:
    """
    Wire the production collaborators from validated settings.
    """
    bus = RedisBus(redis_url=settings.bus.redis_url)

    identity_provider = PrivyIdentityProvider(
        app_id=settings.identity.app_id,
        app_secret=settings.identity.app_secret,
        verification_key=settings.identity.verification_key,
        api_base=settings.identity.api_base,
        issuer=settings.identity.issuer,
        preferred_chain=settings.identity.preferred_chain,
    )
    closers: List[Callable[[], Awaitable[None]]] = [identity_provider.close]

    oracle = None
    if settings.ledger.eligibility_enabled:
        ledger = SolanaLedger(
            rpc_url=settings.ledger.rpc_url,
            commitment=settings.ledger.commitment,
        )
        closers.append(ledger.close)
        oracle = BalanceOracle(
            ledger,
            token_mint=settings.ledger.token_mint,
            ttl=settings.ledger.cache_ttl,
        )

    pipeline = AdmissionPipeline.from_settings(settings, identity_provider, oracle)

    if settings.bus.inbound_transport == "http":
        transport = HttpTransport(settings.bus.chat_api_url)
        closers.append(transport.close)
    else:
        transport = BusTransport(bus, settings.bus.inbound_queue_template)

    registry = SubscriptionRegistry()
    hub = WebSocketHub(
        pipeline=pipeline,
        registry=registry,
        message_handler=MessageHandler(
            InboundMessageRouter(transport),
            echo_inputs=settings.gateway.echo_inputs,
        ),
        welcome_message=settings.gateway.welcome_message,
        send_timeout=settings.gateway.send_timeout,
    )
    bridge = FanoutBridge(
        bus=bus,
        channel=settings.bus.response_channel,
        registry=registry,
        deliverer=hub,
        resubscribe_delay=settings.bus.resubscribe_delay,
    )

    return GatewayComponents(
        hub=hub,
        registry=registry,
        bridge=bridge,
        bus=bus,
        closers=closers,
    )


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def create_app(
    settings: Optional[Settings] = None,
    components: Optional[GatewayComponents] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        settings: Settings to use (defaults to the cached loader)
        components: Pre-built components; when omitted they are wired from
            settings, which must then pass validate_settings()

    Returns:
        FastAPI: Configured application instance

    Raises:
        ConfigurationError: required configuration is missing
    """
    settings = settings or get_settings()

    # Configure logging based on environment
    if settings.environment == "production":
        configure_from_preset(
            "production",
            level=settings.monitoring.log_level,
            format_type=settings.monitoring.log_format,
        )
    elif settings.environment == "test":
        configure_from_preset("testing")
    else:
        configure_from_preset(
            "development",
            level=settings.monitoring.log_level,
            format_type=settings.monitoring.log_format,
        )

    logger.info(f"Creating {settings.app_name} (environment: {settings.environment})")

    if components is None:
        validate_settings(settings)
        components = build_components(settings)

    hub = components.hub

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Authenticated WebSocket gateway between chat clients and the worker tier",
        redirect_slashes=False
    )
    app.state.settings = settings
    app.state.components = components

    # ==========================================================================
    # Middleware Configuration
    # ==========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.allowed_origins,
        allow_credentials=settings.security.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==========================================================================
    # API Routers
    # ==========================================================================

    app.include_router(api_v1_router)

    @app.get("/health")
    async def health_check():
        """Root-level liveness check."""
        return JSONResponse({
            "status": "ok",
            "timestamp": time.time(),
            "uptime_seconds": time.time() - START_TIME,
            "version": settings.app_version,
            "connections": hub.get_connection_count(),
        })

    # ==========================================================================
    # WebSocket Endpoint
    # ==========================================================================

    @app.websocket("/")
    async def websocket_endpoint(websocket: WebSocket):
        """
        Client WebSocket endpoint.

        Credential: ``token`` query parameter or ``Authorization: Bearer``.
        Declared wallet address: ``address`` query parameter.
        """
        origin = websocket.headers.get("origin")
        if not settings.security.origin_allowed(origin):
            logger.warning(f"Refusing WebSocket from disallowed origin {origin}")
            await websocket.close(code=CLOSE_CODE_POLICY)
            return

        await websocket.accept()

        credential = (
            websocket.query_params.get("token")
            or _bearer_token(websocket.headers.get("authorization"))
        )
        declared_address = websocket.query_params.get("address")

        connection = await hub.connect(websocket, credential, declared_address)
        if connection is None:
            clear_connection_context()
            return

        try:
            for text in connection.drain_pending():
                await hub.handle_text(connection, text)

            while True:
                try:
                    message = await websocket.receive()
                except RuntimeError as e:
                    if "disconnect" in str(e).lower():
                        break
                    raise

                if message.get("type") == "websocket.disconnect":
                    logger.debug(f"Client {connection.id} sent disconnect")
                    break

                data = message.get("text")
                if data:
                    await hub.handle_text(connection, data)
                elif message.get("bytes"):
                    logger.warning(f"Ignoring binary frame from {connection.id}")

        except WebSocketDisconnect:
            logger.info(f"WebSocket client {connection.id} disconnected normally")
        except Exception as e:
            logger.error(f"WebSocket error for client {connection.id}: {e}", exc_info=True)
        finally:
            await hub.disconnect(connection)
            clear_connection_context()

    # ==========================================================================
    # Lifecycle Events
    # ==========================================================================

    @app.on_event("startup")
    async def startup_event():
        """
        Application startup.

        Connects the message bus, starts the fan-out bridge and registers
        health checks.
        """
        logger.info("=== Application Startup ===")

        set_hub(components.hub)
        set_registry(components.registry)
        set_bridge(components.bridge)
        set_bus(components.bus)

        if components.bus is not None and hasattr(components.bus, "connect"):
            if await components.bus.connect():
                logger.info("✅ Message bus connected")
            else:
                logger.warning("⚠️  Message bus unavailable, bridge will keep retrying")

        if components.bridge is not None:
            components.bridge.start()
            logger.info("✅ Fan-out bridge started")

        initialize_health_checks(
            registry=components.registry,
            bridge=components.bridge,
            bus=components.bus if hasattr(components.bus, "check_health") else None,
        )
        logger.info("✅ Health checks initialized")

        logger.info("=== Startup Complete ===")

    @app.on_event("shutdown")
    async def shutdown_event():
        """
        Application shutdown.

        Cleanup:
        - Stop the fan-out bridge
        - Release every connection
        - Close HTTP clients and the message bus
        """
        logger.info("=== Application Shutdown ===")

        if components.bridge is not None:
            try:
                await components.bridge.stop()
                logger.info("✅ Fan-out bridge stopped")
            except Exception as e:
                logger.error(f"Error stopping fan-out bridge: {e}")

        try:
            await components.hub.cleanup_all()
        except Exception as e:
            logger.error(f"Error cleaning up connections: {e}")

        for close in components.closers:
            try:
                await close()
            except Exception as e:
                logger.error(f"Error closing client: {e}")

        if components.bus is not None and hasattr(components.bus, "disconnect"):
            try:
                await components.bus.disconnect()
                logger.info("✅ Message bus closed")
            except Exception as e:
                logger.error(f"Error closing message bus: {e}")

        reset_components()
        logger.info("=== Shutdown Complete ===")

    return app
