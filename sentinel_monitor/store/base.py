"""
Counter store contract.

Any key-value technology with atomic single-key increment and TTL semantics
can back the security monitor by implementing these primitives.
"""

from typing import List, Optional, Union

Value = Union[str, bytes, int]


class CounterStore:
    """Abstract counter store interface"""

    name = "abstract"

    def incr(self, key: str) -> int:
        """Atomically increment ``key`` (created at 0), return the new value"""
        raise NotImplementedError

    def expire(self, key: str, seconds: int) -> bool:
        """Set a TTL on an existing key, return False if the key is absent"""
        raise NotImplementedError

    def get(self, key: str) -> Optional[str]:
        """Return the value or None if absent/expired"""
        raise NotImplementedError

    def set(self, key: str, value: Value, ttl: Optional[int] = None) -> bool:
        """Store ``value``; a TTL replaces any previous one, None clears it"""
        raise NotImplementedError

    def delete(self, *keys: str) -> int:
        """Delete keys, return how many existed"""
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        raise NotImplementedError

    def keys(self, pattern: str) -> List[str]:
        """Glob-style key listing; administrative use only"""
        raise NotImplementedError

    def ttl(self, key: str) -> int:
        """Remaining TTL in seconds, -1 if no TTL, -2 if absent (Redis semantics)"""
        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError

    def incr_with_expiry(self, key: str, seconds: int) -> int:
        """
        Increment ``key`` and start its TTL window when this call created it.

        The EXPIRE is issued only when INCR returns 1, so later increments
        never extend the window. Two processes racing on a fresh key can at
        worst shift the window by the latency between their calls.
        """
        count = self.incr(key)
        if count == 1:
            self.expire(key, seconds)
        return count
