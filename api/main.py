"""FastAPI service exposing indicators, signals, gold risk and gold price."""

from __future__ import annotations

import logging
import os
import tempfile
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import duckdb
from dotenv import load_dotenv
from fastapi import BackgroundTasks, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from engine.signals import DXY_CODE, REAL_YIELD_CODE
from jobs.derive import utc_today
from jobs.scheduler import startup
from pipelines.errors import GoldApiUnavailableError
from pipelines.price_cache import get_price_cache
from storage.db import (
    connect,
    find_gold_price_history,
    find_history,
    find_indicator,
    find_latest_observation,
    find_latest_risk_snapshot,
    find_latest_signal,
    list_indicators,
)
from storage.exports import export_history_to_csv, export_history_to_parquet

DEFAULT_HISTORY_DAYS = 30
MAX_HISTORY_DAYS = 120
ALLOWED_FORMATS = {"json", "csv", "parquet"}
GOLD_HISTORY_UNIT = "USD/oz"
GOLD_HISTORY_SOURCE = "GoldPricez"
MIN_GOLD_HISTORY_POINTS = 7
SUMMARY_INDICATORS = (REAL_YIELD_CODE, DXY_CODE)
load_dotenv()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    conn = connect()
    conn.close()
    scheduler = startup()
    application.state.scheduler = scheduler
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.stop()


app = FastAPI(title="Gold Risk Signals API", version="0.1.0", lifespan=lifespan)


def _configure_cors() -> None:
    raw_origins = os.getenv("API_CORS_ORIGINS", "*")
    origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )


_configure_cors()


@app.exception_handler(GoldApiUnavailableError)
async def gold_api_unavailable_handler(
    _: Request, exc: GoldApiUnavailableError
) -> JSONResponse:
    status = exc.recommended_status
    logger.error(
        "[requestId=%s] [errorType=%s] Gold price unavailable, returning %s: %s",
        exc.request_id,
        exc.error_type.value,
        status,
        exc.message,
    )
    return JSONResponse(
        status_code=status,
        content={
            "error": "Service Unavailable" if status == 503 else "Bad Gateway",
            "message": exc.message,
            "errorType": exc.error_type.value,
            "requestId": exc.request_id,
            "providerStatus": exc.http_status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "supportsHistory": False,
        },
    )


@app.get("/health")
def health(request: Request) -> dict[str, Any]:
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "status": "ok",
        "gold_price_consecutive_failures": get_price_cache().consecutive_failures,
        "scheduled_jobs": scheduler.get_jobs_status() if scheduler is not None else [],
    }


def _cap_days(days: int) -> int:
    return min(max(days, 1), MAX_HISTORY_DAYS)


def _require_indicator(conn: duckdb.DuckDBPyConnection, code: str) -> None:
    if find_indicator(conn, code) is None:
        raise HTTPException(status_code=404, detail=f"Unknown indicator '{code}'")


@app.get("/api/indicators")
def get_indicators() -> list[dict[str, Any]]:
    conn = connect()
    try:
        return [indicator.model_dump(mode="json") for indicator in list_indicators(conn)]
    finally:
        conn.close()


@app.get("/api/indicators/{code}/latest")
def get_latest_value(code: str) -> dict[str, Any]:
    conn = connect()
    try:
        _require_indicator(conn, code)
        observation = find_latest_observation(conn, code)
    finally:
        conn.close()
    if observation is None:
        raise HTTPException(status_code=404, detail=f"No values stored for '{code}'")
    return observation.model_dump(mode="json")


@app.get("/api/indicators/{code}/history")
def get_indicator_history(
    code: str,
    background_tasks: BackgroundTasks,
    days: int = Query(DEFAULT_HISTORY_DAYS, description="Lookback window in days (1-120)"),
    format: str = Query("json", description="Response format: json, csv, or parquet"),
):
    fmt = format.lower()
    if fmt not in ALLOWED_FORMATS:
        raise HTTPException(status_code=400, detail=f"Unsupported format '{format}'.")

    since = utc_today() - timedelta(days=_cap_days(days))

    conn = connect()
    try:
        indicator = find_indicator(conn, code)
        if indicator is None:
            raise HTTPException(status_code=404, detail=f"Unknown indicator '{code}'")

        if fmt == "json":
            points = find_history(conn, code, since)
            return JSONResponse(
                content={
                    "indicator_code": code,
                    "unit": indicator.unit,
                    "points": [
                        {"date": p.observed_on.isoformat(), "value": str(p.value)}
                        for p in points
                    ],
                }
            )

        suffix = ".csv" if fmt == "csv" else ".parquet"
        media_type = "text/csv" if fmt == "csv" else "application/vnd.apache.parquet"
        filename = f"{code.lower()}_history{suffix}"
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
            dest = Path(tmp.name)

        if fmt == "csv":
            export_history_to_csv(conn, dest, code, since)
        else:
            export_history_to_parquet(conn, dest, code, since)

        def _cleanup(path: Path) -> None:
            try:
                path.unlink()
            except FileNotFoundError:
                pass

        background_tasks.add_task(_cleanup, dest)
        return FileResponse(dest, media_type=media_type, filename=filename, background=background_tasks)
    except duckdb.Error as exc:
        raise HTTPException(status_code=500, detail="Database query failed") from exc
    finally:
        conn.close()


@app.get("/api/signals/{code}/latest")
def get_latest_signal(code: str) -> dict[str, Any]:
    conn = connect()
    try:
        _require_indicator(conn, code)
        signal = find_latest_signal(conn, code)
    finally:
        conn.close()
    if signal is None:
        raise HTTPException(status_code=404, detail=f"No signal computed for '{code}'")
    return signal.model_dump(mode="json")


@app.get("/api/gold-risk/latest")
def get_latest_gold_risk() -> dict[str, Any]:
    conn = connect()
    try:
        snapshot = find_latest_risk_snapshot(conn)
    finally:
        conn.close()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No gold risk snapshot available")
    return snapshot.model_dump(mode="json")


@app.get("/api/summary/weekly")
def get_weekly_summary() -> dict[str, Any]:
    """Latest gold risk verdict plus the latest signal behind each tracked indicator."""

    conn = connect()
    try:
        snapshot = find_latest_risk_snapshot(conn)
        signals = [find_latest_signal(conn, code) for code in SUMMARY_INDICATORS]
    finally:
        conn.close()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No gold risk snapshot available")

    return {
        "week_ending": utc_today().isoformat(),
        "gold_risk": {
            "risk_level": snapshot.risk_level.value,
            "reason": snapshot.reason,
        },
        "indicators": [
            {
                "code": signal.indicator_code,
                "signal": signal.signal_type.value,
                "confidence": str(signal.confidence),
            }
            for signal in signals
            if signal is not None
        ],
    }


@app.get("/api/gold-price/latest")
async def get_latest_gold_price() -> dict[str, Any]:
    snapshot = await get_price_cache().get_latest_price()
    return snapshot.model_dump(mode="json")


@app.get("/api/gold/price/history")
def get_gold_price_history(
    days: int = Query(DEFAULT_HISTORY_DAYS, description="Lookback window in days (1-120)"),
) -> dict[str, Any]:
    since = utc_today() - timedelta(days=_cap_days(days))
    conn = connect()
    try:
        history = find_gold_price_history(conn, since)
    finally:
        conn.close()

    if not history:
        logger.info("No historical gold price data available")
        return {
            "unit": GOLD_HISTORY_UNIT,
            "source": GOLD_HISTORY_SOURCE,
            "history_supported": False,
            "historical_available": False,
            "message": "Historical data not available yet; history builds up from scheduled price snapshots.",
            "points": [],
        }

    if len(history) < MIN_GOLD_HISTORY_POINTS:
        logger.info(
            "Insufficient history data: %s points (min: %s)",
            len(history),
            MIN_GOLD_HISTORY_POINTS,
        )

    return {
        "unit": GOLD_HISTORY_UNIT,
        "source": GOLD_HISTORY_SOURCE,
        "history_supported": True,
        "historical_available": True,
        "message": None,
        "points": [
            {"date": point.price_on.isoformat(), "value": str(point.price)} for point in history
        ],
    }
