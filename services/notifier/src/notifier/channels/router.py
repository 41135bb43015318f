"""
Destination routing across delivery channels.

A record is delivered to exactly one destination: its first contact
(phone before e-mail) that an enabled channel can reach.
"""

from __future__ import annotations

from collections.abc import Iterable

from pp_common.models.alert import ContactKind, Destination

from .base import AlertChannel


class ChannelRouter:
    """Map destination kinds to enabled channels.

    Args:
        channels: Configured channels.  The first enabled channel of each
                  kind wins.
    """

    def __init__(self, channels: Iterable[AlertChannel] = ()) -> None:
        self.channels = list(channels)

    @property
    def has_channels(self) -> bool:
        """Whether at least one enabled channel is registered."""
        return any(ch.enabled for ch in self.channels)

    def for_kind(self, kind: ContactKind) -> AlertChannel | None:
        for ch in self.channels:
            if ch.enabled and ch.kind == kind:
                return ch
        return None

    def route(
        self,
        destinations: Iterable[Destination],
    ) -> tuple[Destination, AlertChannel] | None:
        """Return the first reachable destination and its channel, if any."""
        for dest in destinations:
            ch = self.for_kind(dest.kind)
            if ch is not None:
                return dest, ch
        return None

    async def close(self) -> None:
        for ch in self.channels:
            await ch.close()
