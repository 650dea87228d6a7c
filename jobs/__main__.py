"""Command-line entrypoint for batch jobs."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from typing import Iterable

from jobs.config import TRACKED_INDICATORS, IndicatorConfig, iter_indicators
from jobs.backfill import main as run_backfill
from jobs.derive import run_risk_job
from jobs.gold_price import main as run_gold_price
from jobs.ingest import main as run_ingest
from jobs.scheduler import run_forever


def _format_indicator(indicator: IndicatorConfig) -> str:
    return (
        f"{indicator.code}: name='{indicator.name}' unit={indicator.unit} "
        f"fred_series={indicator.fred_series_id} cron='{indicator.cron}'"
    )


def _resolve_indicators_from_cli(codes: Iterable[str] | None) -> tuple[IndicatorConfig, ...]:
    if not codes:
        return tuple()
    indicators = tuple(iter_indicators(codes))
    unknown = set(codes) - {i.code for i in indicators}
    if unknown:
        raise SystemExit(f"Unknown indicator codes: {', '.join(sorted(unknown))}")
    return indicators


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Gold risk signals job runner")
    parser.add_argument(
        "--log-level",
        help="Override LOG_LEVEL for this invocation (e.g. DEBUG, INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest_parser = subparsers.add_parser(
        "ingest", help="Fetch the latest FRED observation for tracked indicators"
    )
    ingest_parser.add_argument(
        "--indicators",
        help="Comma-separated list of indicator codes to ingest (defaults to all tracked)",
    )

    subparsers.add_parser("list-indicators", help="Show tracked indicator metadata")
    subparsers.add_parser("backfill", help="Backfill indicator history and compute signals")
    subparsers.add_parser("aggregate-risk", help="Compute today's gold risk snapshot")
    subparsers.add_parser("record-price", help="Record today's gold price into history")
    subparsers.add_parser(
        "run-scheduler", help="Run all periodic jobs plus a one-off startup backfill"
    )

    args = parser.parse_args(argv)

    if args.log_level:
        os.environ["LOG_LEVEL"] = args.log_level

    if args.command == "list-indicators":
        for indicator in TRACKED_INDICATORS:
            print(_format_indicator(indicator))
        return 0

    if args.command == "ingest":
        codes_arg = args.indicators.split(",") if args.indicators else None
        codes_arg = [item.strip() for item in codes_arg or [] if item.strip()]
        indicators = _resolve_indicators_from_cli(codes_arg)
        if indicators:
            return run_ingest(indicators)
        return run_ingest(None)

    if args.command == "backfill":
        return run_backfill()

    if args.command == "record-price":
        return run_gold_price()

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    if args.command == "aggregate-risk":
        snapshot = run_risk_job()
        if snapshot is not None:
            print(f"{snapshot.as_of}: {snapshot.risk_level.value} - {snapshot.reason}")
        return 0

    if args.command == "run-scheduler":
        try:
            asyncio.run(run_forever())
        except KeyboardInterrupt:
            pass
        return 0

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
