"""Delivery channels for the PoolPilot notifier."""

from .base import AlertChannel
from .email_channel import SmtpEmailChannel
from .router import ChannelRouter
from .sms_channel import TwilioSmsChannel

__all__ = [
    "AlertChannel",
    "ChannelRouter",
    "SmtpEmailChannel",
    "TwilioSmsChannel",
]
