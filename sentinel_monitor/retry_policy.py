"""
Bounded reconnect policy for the counter store.
"""


class ReconnectPolicy:
    """
    Decides how many reconnect attempts are allowed and how long to wait
    between them.

    - max_attempts: attempts allowed before the store is declared degraded
    - backoff: 'fixed' or 'exponential' (capped at max_delay)
    - base_delay: delay in seconds before the first retry
    """

    BACKOFF_STRATEGIES = ("fixed", "exponential")

    def __init__(
        self,
        max_attempts: int = 5,
        backoff: str = "fixed",
        base_delay: float = 5.0,
        max_delay: float = 30.0
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if backoff not in self.BACKOFF_STRATEGIES:
            raise ValueError(f"Unknown backoff strategy: {backoff}")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("Delays must not be negative")
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.base_delay = base_delay
        self.max_delay = max_delay

    def should_retry(self, attempt: int) -> bool:
        """True while ``attempt`` (0-based count of failures so far) is under the limit."""
        return attempt < self.max_attempts

    def get_delay(self, attempt: int) -> float:
        """Seconds to wait before reconnect attempt number ``attempt`` (0-based)."""
        if self.backoff == "fixed":
            return min(self.base_delay, self.max_delay)
        return min(self.base_delay * (2 ** attempt), self.max_delay)
