"""
Error taxonomy for the PoolPilot notifier.

Only :class:`AuthError` and :class:`StoreError` end a dispatch run;
:class:`DeliveryError` is absorbed per record and :class:`ConfigError`
is raised once at process start.
"""

from __future__ import annotations


class NotifierError(Exception):
    """Base class for all notifier errors."""


class AuthError(NotifierError):
    """The trigger call presented a missing or wrong token."""


class StoreError(NotifierError):
    """A selection, claim or acknowledgment statement failed."""


class DeliveryError(NotifierError):
    """A single message could not be handed to its delivery channel.

    Args:
        message: Human-readable failure description.
        channel: Name of the channel that failed, if known.
    """

    def __init__(self, message: str, *, channel: str | None = None) -> None:
        super().__init__(message)
        self.channel = channel


class ConfigError(NotifierError):
    """Required configuration is absent.

    Args:
        missing: Names of the missing settings.
    """

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__("missing required configuration: " + ", ".join(self.missing))
