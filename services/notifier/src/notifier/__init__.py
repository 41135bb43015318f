"""
PoolPilot alert notifier service.

Scans the alert table for pending alerts, delivers each to its
recipient over SMS or e-mail, and stamps delivered rows so later runs
skip them.
"""
