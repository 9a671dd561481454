"""
Redis backend plugin for fabric_registry.

This package is kept separate from the core library so users can opt into a
Redis-backed coordination store only when needed:

    from fabric_registry_redis import RedisClientConfig, RedisCoordinationClient

    client = RedisCoordinationClient(
        config=RedisClientConfig(
            redis_url="redis://127.0.0.1:6379/0",
            namespace="orders-cluster",
        )
    )

Every cluster member pointing at the same Redis URL and namespace sees the same
node tree. Users can either import this package directly or use the core
backend factory:

    from fabric_registry import create_client
    client = create_client("redis", redis_url="redis://127.0.0.1:6379/0")
"""

from .client import RedisClientConfig, RedisCoordinationClient

__all__ = ["RedisClientConfig", "RedisCoordinationClient"]
