"""Inbound message routing: envelopes, transports and the router."""

from .envelopes import InboundEnvelope, OutboundResponseEvent
from .router import DeliveryResult, InboundMessageRouter
from .transports import BusTransport, HttpTransport

__all__ = [
    "InboundEnvelope",
    "OutboundResponseEvent",
    "DeliveryResult",
    "InboundMessageRouter",
    "BusTransport",
    "HttpTransport",
]
