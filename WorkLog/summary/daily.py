from __future__ import annotations

import logging
from datetime import date
from typing import Dict, List, Optional

import polars as pl

from WorkLog.aggregation.descriptions import union_description_lines
from WorkLog.aggregation.incremental import local_day
from WorkLog.config import Settings
from WorkLog.models import WIPEntry

log = logging.getLogger(__name__)

REPORT_COLUMNS = ["client_name", "project_name", "entries", "total_minutes", "total_hours", "amount", "description"]


def entries_to_frame(entries: List[WIPEntry], settings: Settings) -> pl.DataFrame:
    if not entries:
        return pl.DataFrame()
    return pl.from_dicts([
        {
            "id": e.id,
            "client_name": e.client_name,
            "project_name": e.project_name or "",
            "description": e.description,
            "time_in_minutes": e.time_in_minutes,
            "hourly_rate": float(e.hourly_rate),
            "local_day": local_day(e.date, settings),
        }
        for e in entries
    ])


def build_daily_report(entries: List[WIPEntry], settings: Settings, day: Optional[date] = None) -> pl.DataFrame:
    """
    Totals ledger time per client and project.

    Amounts are billed per entry (minutes / 60 * that entry's rate) and
    then summed, so mixed rates inside one project stay exact.
    """
    df = entries_to_frame(entries, settings)
    if df.is_empty():
        return pl.DataFrame(schema={c: pl.Utf8 for c in REPORT_COLUMNS})

    if day is not None:
        df = df.filter(pl.col("local_day") == day)
        if df.is_empty():
            log.info(f"No ledger entries for {day}.")
            return pl.DataFrame(schema={c: pl.Utf8 for c in REPORT_COLUMNS})

    report = (
        df.with_columns((pl.col("time_in_minutes") / 60 * pl.col("hourly_rate")).alias("amount"))
        .group_by(["client_name", "project_name"], maintain_order=True)
        .agg([
            pl.len().alias("entries"),
            pl.col("time_in_minutes").sum().alias("total_minutes"),
            pl.col("amount").sum().round(2).alias("amount"),
            pl.col("description"),
        ])
        .with_columns(
            (pl.col("total_minutes") / 60).round(2).alias("total_hours"),
            pl.col("description").map_elements(lambda ds: union_description_lines(list(ds)), return_dtype=pl.Utf8),
        )
        .sort(["client_name", "project_name"])
        .select(REPORT_COLUMNS)
    )
    log.info(f"Built report with {report.height} client/project rows from {df.height} entries.")
    return report


def report_to_nested(report: pl.DataFrame) -> Dict[str, Dict[str, Dict[str, object]]]:
    """Shapes a report as {client: {project: {total_time_hours, description}}}."""
    nested: Dict[str, Dict[str, Dict[str, object]]] = {}
    if report.is_empty():
        return nested
    for row in report.iter_rows(named=True):
        nested.setdefault(row["client_name"], {})[row["project_name"]] = {
            "total_time_hours": row["total_hours"],
            "description": row["description"],
        }
    return nested
