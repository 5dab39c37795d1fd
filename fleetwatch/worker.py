"""
FleetWatch worker — scheduled entry point.

Runs one poll cycle against the real vendor APIs and the Supabase alert
store, prints a text report and exits. An external scheduler (cron, Supabase
cron, Kubernetes CronJob) is expected to call it every poll_interval_minutes;
--loop keeps the process alive and polls on that interval itself.

Exit status is 0 even when a source failed or some alerts couldn't be saved:
partial data is a normal outcome. Only a configuration error exits 1.

Usage:
    python -m fleetwatch.worker [--loop] [--cleanup]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from fleetwatch.agents import cleanup
from fleetwatch.agents.monitor import AlertMonitor, default_sources
from fleetwatch.config import Settings, get_settings
from fleetwatch.store.postgrest import PostgrestAlertStore
from fleetwatch.utils.templates import render_template

logger = logging.getLogger(__name__)


def build_monitor(settings: Settings) -> AlertMonitor:
    """Wire an AlertMonitor to the configured store and vendor clients.

    Raises:
        RuntimeError: If the Supabase store settings are missing.
        ValueError: If the detection settings are inconsistent.
    """
    store = PostgrestAlertStore.from_settings(settings)
    return AlertMonitor(settings.engine_config(), store, default_sources(settings))


async def run_once(monitor: AlertMonitor, settings: Settings, with_cleanup: bool = False) -> None:
    summary = await monitor.run_cycle(datetime.now(timezone.utc))
    print(render_template("run_summary.jinja2", summary=summary))

    if with_cleanup:
        result = await cleanup.run(
            monitor.store,
            datetime.now(timezone.utc),
            retention_days=settings.resolved_retention_days,
            max_active=settings.max_active_alerts,
        )
        print(render_template("cleanup_summary.jinja2", result=result))


async def run_forever(monitor: AlertMonitor, settings: Settings, with_cleanup: bool = False) -> None:
    interval = settings.poll_interval_minutes * 60
    while True:
        await run_once(monitor, settings, with_cleanup)
        await asyncio.sleep(interval)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="fleetwatch-worker", description=__doc__.split("\n\n")[0])
    parser.add_argument("--loop", action="store_true", help="poll every POLL_INTERVAL_MINUTES instead of once")
    parser.add_argument("--cleanup", action="store_true", help="apply the retention policy after each cycle")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)

    try:
        settings = get_settings()
        monitor = build_monitor(settings)
    except (RuntimeError, ValueError) as e:
        logger.error("worker.config_error", extra={"error": str(e)})
        print(f"fleetwatch-worker: {e}", file=sys.stderr)
        return 1

    if args.loop:
        asyncio.run(run_forever(monitor, settings, args.cleanup))
    else:
        asyncio.run(run_once(monitor, settings, args.cleanup))
    return 0


if __name__ == "__main__":
    sys.exit(main())
