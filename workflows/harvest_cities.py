#!/usr/bin/env python3
"""
Workflow: Harvest Cities
========================
Collects hotel search results for a list of cities, a few cities at a time,
and writes one CSV per city.

USAGE
-----

1. Harvest the default Texas cities:
    uv run python workflows/harvest_cities.py

2. Pick cities and concurrency:
    uv run python workflows/harvest_cities.py --city Houston --city "San Antonio" --concurrency 2

3. Headless run with a Slack summary:
    uv run python workflows/harvest_cities.py --headless --notify

OUTPUT
------
data/<YYYY-MM-DD>/<City>_hotels_<HH-MM-SS>.csv
screenshots/<YYYY-MM-DD>/<HH-MM-SS>/<City>_after_load.png
logs/harvest_<YYYY-MM-DD>_<HHMMSS>.log.gz

The browser is visible by default so a challenge can be solved by hand.
Ctrl+C cancels every running session and still prints the summary.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import asyncio
import signal
from contextlib import contextmanager
from typing import List, Optional

from loguru import logger

from infra import slack
from lib.browser import BrowserPool
from lib.harvest import (
    DEFAULT_CITIES,
    CsvSink,
    FailurePolicy,
    HarvestConfig,
    Orchestrator,
    Query,
    RateLimiter,
    RunLogger,
    RunSummary,
    SessionRunner,
)


@contextmanager
def shutdown_on_signals(orchestrator: Orchestrator):
    """Route SIGINT/SIGTERM to a cooperative shutdown while the block runs.

    The previous handlers are restored on exit.
    """
    loop = asyncio.get_running_loop()

    def handle_shutdown(signum, frame):
        logger.info("Shutdown requested, cancelling sessions...")
        loop.call_soon_threadsafe(orchestrator.request_shutdown)

    previous = {sig: signal.signal(sig, handle_shutdown) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


async def harvest_cities_workflow(
    cities: List[str],
    concurrency: Optional[int] = None,
    headless: Optional[bool] = None,
    policy: str = FailurePolicy.ISOLATE,
    notify: bool = False,
) -> RunSummary:
    """Harvest every city and return the run summary."""
    config = HarvestConfig.from_env(concurrency=concurrency, headless=headless)
    queries = [Query(name=city) for city in cities]

    try:
        with RunLogger("harvest", log_dir=config.log_dir):
            async with BrowserPool.from_config(config) as pool:
                runner = SessionRunner(
                    config,
                    RateLimiter(config.rate_interval_seconds),
                    pool.open_port,
                    CsvSink(config.output_dir),
                )
                orchestrator = Orchestrator(runner, concurrency=config.concurrency, policy=policy)
                with shutdown_on_signals(orchestrator):
                    summary = await orchestrator.run(queries)
    except Exception as e:
        logger.error(f"Harvest failed: {e}")
        if notify:
            slack.send_error("Hotel Harvest", str(e))
        raise

    if notify:
        slack.send_run_summary(summary)
    return summary


def print_summary(summary: RunSummary) -> None:
    print()
    print("=" * 70)
    print(f"HARVEST SUMMARY: {len(summary.succeeded)}/{len(summary.outcomes)} cities succeeded")
    print("=" * 70)
    print(f"{'City':<18} {'Status':<10} {'Hotels':>7}  Detail")
    print("-" * 70)
    for outcome in summary.outcomes:
        detail = outcome.output_path if outcome.output_path else f"{outcome.error_kind}: {outcome.error_message}"
        print(f"{outcome.query:<18} {outcome.status:<10} {outcome.records:>7}  {detail}")
    print("-" * 70)
    if summary.fault:
        print(f"Fault: {summary.fault}")
    print()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Harvest hotel search results for a list of cities")

    parser.add_argument("--city", action="append", metavar="NAME", help="City to harvest (repeatable, default: Texas top 10)")
    parser.add_argument("--concurrency", type=int, help="Max parallel sessions (default: 3)")
    parser.add_argument("--headless", action="store_true", default=None, help="Run the browser headless")
    parser.add_argument(
        "--policy",
        choices=[FailurePolicy.ISOLATE, FailurePolicy.CANCEL_ON_ERROR],
        default=FailurePolicy.ISOLATE,
        help="What a failed session does to the others (default: isolate)",
    )
    parser.add_argument("--notify", action="store_true", help="Send a Slack summary")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    # Configure logging
    logger.remove()
    level = "DEBUG" if args.debug else "INFO"
    logger.add(sys.stderr, level=level, format="<level>{level: <8}</level> | {message}")

    cities = args.city or DEFAULT_CITIES
    summary = asyncio.run(harvest_cities_workflow(
        cities,
        concurrency=args.concurrency,
        headless=args.headless,
        policy=args.policy,
        notify=args.notify,
    ))

    print_summary(summary)
    return 0 if summary.ok else 1


if __name__ == "__main__":
    sys.exit(main())
