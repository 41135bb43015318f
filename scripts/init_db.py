"""Create the PoolPilot alert table and optionally seed sample pending alerts.

Usage:
    python scripts/init_db.py            # create the table only
    python scripts/init_db.py --seed     # create and insert sample alerts
"""

import argparse
import asyncio
import sys
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import insert

from pp_common.config import get_settings
from pp_common.db.connection import build_engine
from pp_common.logging import configure_logging
from notifier.store import AlertStore

logger = structlog.get_logger()


def sample_alerts(now: datetime) -> list[dict]:
    """Three pending alerts: deliverable, no contact, awaiting triage."""
    return [
        {
            "alert_id": "seed-1",
            "system_id": "sys-riverside",
            "system_name": "Riverside Community Pool",
            "alert_type": "chlorine_low",
            "alert_summary": "Free chlorine 0.4 ppm (min 1.0)",
            "classification": "valid",
            "agency_name": "Metro Health",
            "alert_phone": "+15550001111",
            "alert_email": "ops@riverside.example",
            "snapshot_ts": now - timedelta(minutes=5),
            "observed_at": now - timedelta(minutes=7),
        },
        {
            "alert_id": "seed-2",
            "system_id": "sys-oakhill",
            "system_name": "Oak Hill Swim Club",
            "alert_type": "ph_high",
            "alert_summary": "pH 8.4 (max 7.8)",
            "classification": "valid",
            "agency_name": "County Environmental Health",
            "snapshot_ts": now - timedelta(minutes=3),
        },
        {
            "alert_id": "seed-3",
            "system_id": "sys-lakeside",
            "system_name": "Lakeside Aquatic Center",
            "alert_type": "turbidity_high",
            "alert_summary": "Turbidity 1.2 NTU (max 0.5)",
            "classification": "pending",
            "alert_phone": "+15550003333",
            "snapshot_ts": now - timedelta(minutes=1),
        },
    ]


async def main(seed: bool) -> None:
    settings = get_settings()
    engine = build_engine(settings.db_uri, settings.db_pool_size)
    store = AlertStore(
        engine,
        table_name=settings.alerts_table,
        scheme=settings.key_scheme,
        timeout=settings.store_timeout_s,
        retry_attempts=settings.store_retry_attempts,
    )
    try:
        await store.create_schema()
        logger.info("alerts_table_ready", table=settings.alerts_table, scheme=settings.key_scheme.value)

        if seed:
            columns = store.table.c.keys()
            rows = [
                {col: row.get(col) for col in columns}
                for row in sample_alerts(datetime.now(timezone.utc))
            ]
            async with engine.begin() as conn:
                await conn.execute(insert(store.table), rows)
            logger.info("alerts_seeded", count=len(rows))
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--seed", action="store_true", help="insert sample pending alerts")
    args = parser.parse_args()

    configure_logging(get_settings().log_level, json=False, service="init_db")
    try:
        asyncio.run(main(args.seed))
    except Exception:
        logger.exception("init_db_failed")
        sys.exit(1)
