"""
Database connection and table utilities for the PoolPilot notifier.

This package provides async engine creation via SQLAlchemy and the
Core table description of the alert table for both identity schemes.
"""

from pp_common.db.connection import build_engine, check_database_health
from pp_common.db.tables import build_alerts_table

__all__ = [
    "build_alerts_table",
    "build_engine",
    "check_database_health",
]
