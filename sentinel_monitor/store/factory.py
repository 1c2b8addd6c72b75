"""
Store backend selection.
"""

import logging
from typing import Any, Mapping

from sentinel_monitor.errors import ValidationError
from sentinel_monitor.retry_policy import ReconnectPolicy
from sentinel_monitor.store.base import CounterStore
from sentinel_monitor.store.memory_store import InMemoryCounterStore

logger = logging.getLogger(__name__)

BACKENDS = ("memory", "redis")


def create_store_from_config(store_config: Mapping[str, Any]) -> CounterStore:
    """
    Create the counter store named by ``store_config['backend']``.
    
    Args:
        store_config: Mapping shaped like config.STORE_CONFIG
        
    Returns:
        A CounterStore instance
    """
    backend = str(store_config.get("backend", "memory")).lower()
    if backend not in BACKENDS:
        raise ValidationError(f"Unknown store backend '{backend}', expected one of {BACKENDS}")

    if backend == "memory":
        logger.info("Security monitor using in-memory counter store")
        return InMemoryCounterStore()

    from sentinel_monitor.store.redis_store import RedisCounterStore

    policy = ReconnectPolicy(
        max_attempts=int(store_config.get("max_reconnect_attempts", 5)),
        backoff=store_config.get("reconnect_backoff", "fixed"),
        base_delay=float(store_config.get("reconnect_delay", 5.0)),
        max_delay=float(store_config.get("max_reconnect_delay", 30.0))
    )
    logger.info(f"Security monitor using Redis counter store at {store_config.get('redis_url')}")
    return RedisCounterStore(
        redis_url=store_config.get("redis_url"),
        policy=policy,
        socket_timeout=float(store_config.get("socket_timeout", 0.5))
    )
