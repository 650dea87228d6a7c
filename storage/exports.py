"""Export helpers for indicator history persisted inside DuckDB."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Sequence

import duckdb

from storage.db import history_query


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _copy(
    conn: duckdb.DuckDBPyConnection,
    destination: str | Path,
    options: str,
    params: Sequence[Any],
) -> Path:
    dest_path = Path(destination)
    _ensure_parent(dest_path)
    sanitized_path = str(dest_path).replace("'", "''")
    conn.execute(f"COPY ({history_query()}) TO '{sanitized_path}' ({options})", list(params))
    return dest_path


def export_history_to_csv(
    conn: duckdb.DuckDBPyConnection,
    destination: str | Path,
    indicator_code: str,
    since: date,
    *,
    include_header: bool = True,
) -> Path:
    """Write an indicator's observations since ``since`` to CSV via DuckDB's COPY."""

    return _copy(
        conn,
        destination,
        f"FORMAT CSV, HEADER {'TRUE' if include_header else 'FALSE'}",
        [indicator_code, since],
    )


def export_history_to_parquet(
    conn: duckdb.DuckDBPyConnection,
    destination: str | Path,
    indicator_code: str,
    since: date,
) -> Path:
    """Write an indicator's observations since ``since`` to Parquet."""

    return _copy(conn, destination, "FORMAT PARQUET", [indicator_code, since])


__all__ = ["export_history_to_csv", "export_history_to_parquet"]
