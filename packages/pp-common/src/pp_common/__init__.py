"""
pp-common: Shared library for the PoolPilot notifier.

Provides the alert data models, configuration management, the error
taxonomy, database connection and table helpers, and structured logging
used by the notifier service and its maintenance scripts.
"""

from pp_common.config import Settings, get_settings
from pp_common.errors import (
    AuthError,
    ConfigError,
    DeliveryError,
    NotifierError,
    StoreError,
)

__all__ = [
    "AuthError",
    "ConfigError",
    "DeliveryError",
    "NotifierError",
    "Settings",
    "StoreError",
    "get_settings",
]
