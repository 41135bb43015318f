"""
Prometheus metrics for the PoolPilot notifier.

Counters are process-wide; the trigger app mounts them at ``/metrics``.
"""

from __future__ import annotations

from prometheus_client import Counter

runs_total = Counter(
    "notifier_runs_total",
    "Dispatch runs by final outcome",
    ["outcome"],
)
alerts_sent_total = Counter(
    "notifier_alerts_sent_total",
    "Alerts counted as sent (dry_run=true means no external call was made)",
    ["dry_run"],
)
alerts_skipped_total = Counter(
    "notifier_alerts_skipped_total",
    "Selected alerts not sent, by reason",
    ["reason"],
)
alerts_acknowledged_total = Counter(
    "notifier_alerts_acknowledged_total",
    "Alert rows newly stamped as notified",
)
