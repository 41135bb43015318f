"""
Alert table definition for the PoolPilot notifier.

The alert table is produced upstream; the notifier only reads it and
stamps ``notified_at`` (and ``claimed_at`` when claims are enabled).
The same column set serves both identity schemes: ``KeyScheme.ID``
tables carry an ``alert_id`` primary key, ``KeyScheme.COMPOSITE``
tables are keyed by ``(system_id, snapshot_ts, alert_type)``.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Index, MetaData, String, Table, Text

from pp_common.models.alert import KeyScheme, key_columns


def build_alerts_table(
    name: str = "pool_alerts",
    scheme: KeyScheme = KeyScheme.COMPOSITE,
    metadata: MetaData | None = None,
) -> Table:
    """Describe the alert table for *scheme*.

    Args:
        name: Table name.
        scheme: Identity scheme, which decides the primary key.
        metadata: ``MetaData`` to register on.  A fresh one is created
            when omitted so that several schemes can coexist in tests.

    Returns:
        A SQLAlchemy Core ``Table``.
    """
    scheme = KeyScheme(scheme)
    pk = set(key_columns(scheme))
    columns: list[Column] = []
    if scheme is KeyScheme.ID:
        columns.append(Column("alert_id", String(64), primary_key=True))
    columns.extend(
        [
            Column("system_id", String(64), nullable=False, primary_key="system_id" in pk),
            Column("system_name", String(255)),
            Column("alert_type", String(64), nullable=False, primary_key="alert_type" in pk),
            Column("alert_summary", Text),
            Column("classification", String(32)),
            Column("agency_name", String(255)),
            Column("alert_phone", String(32)),
            Column("alert_email", String(255)),
            Column(
                "snapshot_ts",
                DateTime(timezone=True),
                nullable=False,
                primary_key="snapshot_ts" in pk,
            ),
            Column("observed_at", DateTime(timezone=True)),
            Column("notified_at", DateTime(timezone=True)),
            Column("claimed_at", DateTime(timezone=True)),
        ]
    )
    table = Table(name, metadata if metadata is not None else MetaData(), *columns)
    Index(f"ix_{name}_pending", table.c.notified_at, table.c.snapshot_ts)
    return table
