"""
Redis implementation of the counter store.

Every primitive goes through ``_execute``, which turns redis errors into
StoreUnavailableError and drives a bounded reconnect policy:

- on connection loss the store stops serving and schedules a reconnect probe
- probes run on later calls once the backoff delay has elapsed, never by
  sleeping inside a request
- after ``max_attempts`` failed probes the store logs a permanent
  degradation event and keeps failing fast, probing once per ``max_delay``
- the first successful probe restores full service and resets the counter
"""

import logging
import time
from typing import Any, Callable, List, Optional

import redis

from sentinel_monitor.errors import StoreUnavailableError
from sentinel_monitor.retry_policy import ReconnectPolicy
from sentinel_monitor.store.base import CounterStore, Value

logger = logging.getLogger(__name__)

CONNECTION_ERRORS = (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError)


class RedisCounterStore(CounterStore):
    """Redis-backed counter store shared by every request-handling process"""

    name = "redis"

    def __init__(
        self,
        redis_url: Optional[str] = None,
        client: Optional[redis.Redis] = None,
        policy: Optional[ReconnectPolicy] = None,
        socket_timeout: float = 0.5,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the Redis store.
        
        Args:
            redis_url: Connection URL, used when no client is given
            client: Pre-built redis client (tests inject a mock here)
            policy: Reconnect policy; defaults to 5 fixed 5-second attempts
            socket_timeout: Per-command timeout in seconds
            clock: Monotonic clock used to schedule reconnect probes
        """
        if client is None:
            if not redis_url:
                raise ValueError("redis_url or client is required")
            client = redis.Redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout
            )
        self.client = client
        self.policy = policy or ReconnectPolicy()
        self._clock = clock

        self._healthy = True
        self._degraded = False
        self._failed_attempts = 0
        self._next_attempt_at = 0.0

        try:
            self.client.ping()
            logger.info("Redis counter store connected")
        except CONNECTION_ERRORS as e:
            self._mark_connection_lost(e)

    @property
    def healthy(self) -> bool:
        return self._healthy

    @property
    def degraded(self) -> bool:
        """True once the reconnect budget is exhausted and no probe has succeeded since"""
        return self._degraded

    def _mark_connection_lost(self, error: Exception) -> None:
        if self._healthy:
            self._healthy = False
            self._failed_attempts = 0
            logger.warning(f"Redis connection lost, security monitor running fail-open: {error}")
        self._next_attempt_at = self._clock() + self.policy.get_delay(self._failed_attempts)

    def _try_reconnect(self) -> bool:
        try:
            self.client.ping()
        except CONNECTION_ERRORS as e:
            self._failed_attempts += 1
            now = self._clock()
            if self.policy.should_retry(self._failed_attempts):
                logger.warning(
                    f"Redis reconnect attempt {self._failed_attempts}/"
                    f"{self.policy.max_attempts} failed: {e}"
                )
                self._next_attempt_at = now + self.policy.get_delay(self._failed_attempts)
            else:
                if not self._degraded:
                    self._degraded = True
                    logger.error(
                        f"Max Redis reconnection attempts reached ({self.policy.max_attempts}); "
                        "security monitor permanently degraded to fail-open mode"
                    )
                self._next_attempt_at = now + self.policy.max_delay
            return False

        if self._degraded:
            logger.info("Redis reachable again, leaving degraded mode")
        else:
            logger.info(f"Redis reconnected after {self._failed_attempts} failed attempt(s)")
        self._healthy = True
        self._degraded = False
        self._failed_attempts = 0
        self._next_attempt_at = 0.0
        return True

    def _execute(self, operation: str, func: Callable[..., Any], *args, **kwargs) -> Any:
        if not self._healthy:
            if self._clock() < self._next_attempt_at or not self._try_reconnect():
                raise StoreUnavailableError(f"Redis unavailable, skipped {operation}")
        try:
            return func(*args, **kwargs)
        except CONNECTION_ERRORS as e:
            self._mark_connection_lost(e)
            raise StoreUnavailableError(f"Redis {operation} failed: {e}") from e
        except redis.exceptions.RedisError as e:
            logger.error(f"Redis {operation} error: {e}")
            raise StoreUnavailableError(f"Redis {operation} failed: {e}") from e

    def incr(self, key: str) -> int:
        return int(self._execute("INCR", self.client.incr, key))

    def expire(self, key: str, seconds: int) -> bool:
        return bool(self._execute("EXPIRE", self.client.expire, key, seconds))

    def get(self, key: str) -> Optional[str]:
        value = self._execute("GET", self.client.get, key)
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def set(self, key: str, value: Value, ttl: Optional[int] = None) -> bool:
        if ttl is None:
            return bool(self._execute("SET", self.client.set, key, value))
        return bool(self._execute("SET", self.client.set, key, value, ex=ttl))

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(self._execute("DEL", self.client.delete, *keys))

    def exists(self, key: str) -> bool:
        return int(self._execute("EXISTS", self.client.exists, key)) > 0

    def keys(self, pattern: str) -> List[str]:
        found = self._execute("SCAN", lambda: list(self.client.scan_iter(match=pattern, count=500)))
        return sorted(k.decode("utf-8") if isinstance(k, bytes) else k for k in found)

    def ttl(self, key: str) -> int:
        return int(self._execute("TTL", self.client.ttl, key))

    def ping(self) -> bool:
        return bool(self._execute("PING", self.client.ping))

    def close(self) -> None:
        self.client.close()
        logger.info("Redis counter store closed")
