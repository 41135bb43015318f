"""
Abstract base class for delivery channels in the PoolPilot notifier.

Defines the AlertChannel interface that every channel implementation
must follow, ensuring consistent delivery semantics and error handling.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pp_common.models.alert import ContactKind


class AlertChannel(ABC):
    """Base class every delivery channel must implement.

    Subclasses override :meth:`send` to hand a rendered message to their
    specific transport (Twilio SMS, SMTP e-mail, ...).

    Attributes:
        name: Human-readable channel name used in logs.
        kind: Destination family the channel can reach.
        enabled: Runtime flag; ``False`` removes the channel from routing
                 without unregistering it.
    """

    name: str = "base"
    kind: ContactKind = ContactKind.SMS
    enabled: bool = True

    @abstractmethod
    async def send(self, destination: str, body: str) -> None:
        """Deliver *body* to *destination*.

        Args:
            destination: Channel-specific address (E.164 number, e-mail).
            body: Rendered message text.

        Raises:
            DeliveryError: The channel rejected or could not transmit the
                message.  Delivery is never retried within a run.
        """

    async def close(self) -> None:
        """Release any resources held by the channel (override if needed)."""
