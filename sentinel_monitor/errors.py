"""
Exception types for the security monitoring engine.
"""


class ValidationError(ValueError):
    """Raised when a caller passes malformed input (empty id, non-positive TTL...)."""


class StoreUnavailableError(RuntimeError):
    """Raised by a counter store backend when an operation cannot be served."""


def require_identifier(value, name: str) -> str:
    """Return ``value`` as a stripped string or raise ValidationError if blank."""
    if value is None:
        raise ValidationError(f"{name} is required")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{name} must not be empty")
    return text


def require_positive(value, name: str) -> int:
    """Return ``value`` as an int or raise ValidationError unless it is >= 1 after truncation."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if value != value or value in (float("inf"), float("-inf")):
        raise ValidationError(f"{name} must be finite, got {value!r}")
    number = int(value)
    if number < 1:
        raise ValidationError(f"{name} must be at least 1, got {value!r}")
    return number
