"""
Redis Bus - message bus between the gateway and the worker tier

@.architecture
Incoming: app.py (startup/shutdown), core/messaging/transports.py, ws/bridge.py --- {Redis URL, publish/enqueue requests, subscribe(channel) calls}
Processing: connect(), disconnect(), publish(), enqueue(), subscribe(), check_health() --- {5 jobs: connection_management, publishing, queueing, subscription, health_checking}
Outgoing: Redis server (via redis.asyncio), ws/bridge.py --- {PUBLISH/RPUSH/SUBSCRIBE commands, payload strings}

Provides:
- publish(channel, payload): pub/sub fan-out (worker responses)
- enqueue(key, payload): list push (inbound chat messages for workers)
- subscribe(channel): async iterator of payloads; it ends or raises when
  the subscription is lost and is not restartable
"""

from typing import Any, AsyncIterator, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from core.errors import PublishFailed
from monitoring import get_logger

logger = get_logger(__name__)


class RedisBus:
    """
    Redis-backed message bus.

    Usage:
        bus = RedisBus(redis_url="redis://localhost:6379")
        await bus.connect()

        await bus.enqueue("chat:message:123", payload)
        async for payload in bus.subscribe("chat:responses"):
            ...

        await bus.disconnect()
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        encoding: str = "utf-8"
    ):
        """
        Initialize Redis bus.

        Args:
            redis_url: Redis connection URL
            encoding: String encoding
        """
        self.redis_url = redis_url
        self.encoding = encoding

        self._client: Optional[Any] = None
        self._publish_count = 0
        self._error_count = 0

    # =========================================================================
    # CONNECTION MANAGEMENT
    # =========================================================================

    async def connect(self) -> bool:
        """
        Create the client and ping the server.

        The client reconnects on its own, so a failed ping is reported but
        the client is kept.

        Returns:
            True if the server answered, False otherwise
        """
        if self._client is None:
            self._client = redis.from_url(
                self.redis_url,
                encoding=self.encoding,
                decode_responses=True,
            )

        try:
            await self._client.ping()
            logger.info("Connected to Redis")
            return True
        except RedisError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            return False

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._client is None:
            return

        try:
            await self._client.aclose()
            logger.info("Disconnected from Redis")
        except RedisError as e:
            logger.error(f"Error disconnecting from Redis: {e}")
        finally:
            self._client = None

    def is_connected(self) -> bool:
        return self._client is not None

    def _require_client(self) -> Any:
        if self._client is None:
            raise RuntimeError("Redis bus not connected")
        return self._client

    # =========================================================================
    # PUBLISHING
    # =========================================================================

    async def publish(self, channel: str, payload: str) -> int:
        """
        Publish a payload on a pub/sub channel.

        Returns:
            Number of subscribers that received it

        Raises:
            PublishFailed: Redis error or bus not connected
        """
        try:
            receivers = await self._require_client().publish(channel, payload)
        except (RedisError, RuntimeError) as e:
            self._error_count += 1
            raise PublishFailed(f"Publish to {channel} failed: {e}") from e

        self._publish_count += 1
        logger.debug(f"Published to {channel} (subscribers: {receivers})")
        return receivers

    async def enqueue(self, key: str, payload: str) -> int:
        """
        Append a payload to a Redis list for workers to pop.

        Returns:
            Length of the list after the push

        Raises:
            PublishFailed: Redis error or bus not connected
        """
        try:
            length = await self._require_client().rpush(key, payload)
        except (RedisError, RuntimeError) as e:
            self._error_count += 1
            raise PublishFailed(f"Enqueue to {key} failed: {e}") from e

        self._publish_count += 1
        logger.debug(f"Enqueued to {key} (length: {length})")
        return length

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    async def subscribe(self, channel: str) -> AsyncIterator[str]:
        """
        Yield every payload published on ``channel``.

        Connection errors propagate to the consumer; the subscription is
        torn down when the consumer stops iterating.
        """
        pubsub = self._require_client().pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(channel)
        logger.info(f"Subscribed to channel: {channel}")

        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                yield message["data"]
        finally:
            try:
                await pubsub.unsubscribe(channel)
                await pubsub.aclose()
            except RedisError as e:
                logger.debug(f"Error closing subscription to {channel}: {e}")
            logger.info(f"Unsubscribed from channel: {channel}")

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    def get_stats(self) -> Dict[str, Any]:
        return {
            "connected": self.is_connected(),
            "publish_count": self._publish_count,
            "error_count": self._error_count,
        }

    async def check_health(self) -> Dict[str, Any]:
        """
        Perform health check.

        Returns:
            Dict with health status and info
        """
        result: Dict[str, Any] = {"healthy": False, **self.get_stats()}

        if self._client is None:
            result["message"] = "Not connected to Redis"
            return result

        try:
            await self._client.ping()
            result["healthy"] = True
            result["message"] = "Redis reachable"
        except RedisError as e:
            result["message"] = f"Redis ping failed: {e}"
            logger.error(f"Redis health check failed: {e}")

        return result
