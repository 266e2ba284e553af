"""
Bus Layer - message bus to the worker tier

- Redis list push for inbound chat messages
- Redis pub/sub for worker responses
"""

from .redis import RedisBus

__all__ = ["RedisBus"]
