"""
Outbound Fan-out Bridge - worker responses to live connections

@.architecture
Incoming: data/bus/redis.py (subscribe) --- {raw payloads from the response channel}
Processing: run(), handle_payload(), start(), stop(), check_health() --- {4 jobs: subscription, event_parsing, identity_resolution, fan_out}
Outgoing: ws/registry.py, ws/hub.py --- {resolve(user_id) calls, response frames to each of the identity's connections}

Delivery is best effort: an event for an identity with no open connection
is dropped, and a malformed event is logged and skipped. Events are handled
one at a time in arrival order, so each connection sees them in the order
the bridge received them.
"""

import asyncio
from typing import Any, AsyncIterator, Dict, Iterable, Optional, Protocol

from core.errors import MalformedEvent
from core.messaging.envelopes import OutboundResponseEvent
from monitoring import get_logger
from ws.protocols import BaseEvent, ResponseEvent
from ws.registry import SubscriptionRegistry

logger = get_logger(__name__)


class Subscriber(Protocol):
    def subscribe(self, channel: str) -> AsyncIterator[Any]:
        ...


class Deliverer(Protocol):
    async def deliver(self, connection_ids: Iterable[str], event: BaseEvent) -> int:
        ...


class FanoutBridge:
    """
    Consumes the response channel for the lifetime of the process.

    A lost subscription (iterator ends or raises) is logged and the bridge
    subscribes again after ``resubscribe_delay`` seconds. Only cancellation
    stops it.
    """

    def __init__(
        self,
        bus: Subscriber,
        channel: str,
        registry: SubscriptionRegistry,
        deliverer: Deliverer,
        resubscribe_delay: float = 1.0,
    ):
        self.bus = bus
        self.channel = channel
        self.registry = registry
        self.deliverer = deliverer
        self.resubscribe_delay = resubscribe_delay

        self._task: Optional[asyncio.Task] = None
        self._received = 0
        self._delivered = 0
        self._dropped = 0
        self._malformed = 0
        self._subscription_losses = 0

    async def run(self) -> None:
        """Consume forever, re-subscribing whenever the subscription is lost."""
        while True:
            try:
                async for payload in self.bus.subscribe(self.channel):
                    await self.handle_payload(payload)
                logger.error(f"Subscription to {self.channel} ended")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Subscription to {self.channel} lost: {e}")

            self._subscription_losses += 1
            await asyncio.sleep(self.resubscribe_delay)

    async def handle_payload(self, payload: Any) -> int:
        """
        Fan one raw event out to its identity's connections.

        Returns:
            Number of connections the response was written to
        """
        self._received += 1

        try:
            event = OutboundResponseEvent.parse(payload)
        except MalformedEvent as e:
            self._malformed += 1
            logger.warning(f"Dropping malformed response event: {e}")
            return 0

        try:
            targets = await self.registry.resolve(event.user_id)
            if not targets:
                self._dropped += 1
                logger.debug(f"No live connection for {event.user_id}, dropping event")
                return 0

            frame = ResponseEvent(data=event.text, id=event.message_id)
            delivered = await self.deliverer.deliver(targets, frame)
        except Exception as e:
            logger.error(f"Delivery to {event.user_id} failed: {e}")
            return 0

        self._delivered += delivered
        logger.debug(f"Delivered response to {delivered}/{len(targets)} connection(s) of {event.user_id}")
        return delivered

    # Lifecycle

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="fanout-bridge")
            logger.info(f"Fan-out bridge consuming {self.channel}")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Fan-out bridge stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "channel": self.channel,
            "running": self.running,
            "received": self._received,
            "delivered": self._delivered,
            "dropped": self._dropped,
            "malformed": self._malformed,
            "subscription_losses": self._subscription_losses,
        }

    async def check_health(self) -> Dict[str, Any]:
        running = self.running
        return {
            "healthy": running,
            "message": "Consuming responses" if running else "Bridge not running",
            **self.get_stats(),
        }
