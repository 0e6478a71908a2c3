"""Runtime settings for the storefront core.

Values are read from ``STOREFRONT_*`` environment variables once and cached.
Tests override them with ``set_settings()`` and restore defaults with
``reset_settings()``.
"""

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, default))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, default))


@dataclass(frozen=True)
class Settings:
    currency: str = "USD"
    # Failed payments tolerated before an order is cancelled
    max_payment_attempts: int = 3
    # Calls per processor operation while it reports itself unavailable
    processor_max_attempts: int = 3
    processor_backoff_seconds: float = 0.2
    processor_backoff_max_seconds: float = 2.0
    processor_timeout_seconds: float = 10.0
    lock_timeout_seconds: float = 5.0
    reservation_grace_seconds: int = 900
    stale_order_seconds: int = 86400

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            currency=os.getenv("STOREFRONT_CURRENCY", "USD").upper(),
            max_payment_attempts=_env_int("STOREFRONT_MAX_PAYMENT_ATTEMPTS", 3),
            processor_max_attempts=_env_int("STOREFRONT_PROCESSOR_MAX_ATTEMPTS", 3),
            processor_backoff_seconds=_env_float("STOREFRONT_PROCESSOR_BACKOFF_SECONDS", 0.2),
            processor_backoff_max_seconds=_env_float("STOREFRONT_PROCESSOR_BACKOFF_MAX_SECONDS", 2.0),
            processor_timeout_seconds=_env_float("STOREFRONT_PROCESSOR_TIMEOUT_SECONDS", 10.0),
            lock_timeout_seconds=_env_float("STOREFRONT_LOCK_TIMEOUT_SECONDS", 5.0),
            reservation_grace_seconds=_env_int("STOREFRONT_RESERVATION_GRACE_SECONDS", 900),
            stale_order_seconds=_env_int("STOREFRONT_STALE_ORDER_SECONDS", 86400),
        )


_current_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the active settings, loading them from the environment on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = Settings.from_env()
    return _current_settings


def set_settings(settings: Settings) -> None:
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    global _current_settings
    _current_settings = None
