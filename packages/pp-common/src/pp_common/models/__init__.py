"""
Shared Pydantic data models for the PoolPilot notifier.

This package contains the alert record read from the store, delivery
destinations, the dispatch policy, and the run summary.
"""

from pp_common.models.alert import (
    AlertKey,
    AlertRecord,
    ContactKind,
    Destination,
    DispatchPolicy,
    KeyScheme,
    RunSummary,
    SkipReason,
    key_columns,
)

__all__ = [
    "AlertKey",
    "AlertRecord",
    "ContactKind",
    "Destination",
    "DispatchPolicy",
    "KeyScheme",
    "RunSummary",
    "SkipReason",
    "key_columns",
]
