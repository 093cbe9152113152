# WorkLog/aggregation/incremental.py
"""
Online path: fold one freshly observed minute of work into the ledger.

Only entries from the same local calendar day are candidates, so each
new day opens a fresh entry per client/project. The scan stops at the
first entry that passes the merge decision (single-merge); the matched
entry is retired and replaced by the merged one.
"""

import logging
import time
from datetime import date, datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

from WorkLog.aggregation.decision import MergeDecider
from WorkLog.aggregation.descriptions import standardize_description, union_description_lines
from WorkLog.config import Settings, get_active_partner, get_default_hourly_rate
from WorkLog.models import UNKNOWN_CLIENT, LedgerUpdate, ScreenAnalysis, WIPEntry, utc_now

log = logging.getLogger(__name__)

DEFAULT_PROJECT = "General"


class EntryIdGenerator:
    """Numeric, strictly increasing ids so id order tracks creation order."""

    def __init__(self) -> None:
        self.last_id = 0

    def next_id(self) -> str:
        candidate = time.time_ns()
        self.last_id = candidate if candidate > self.last_id else self.last_id + 1
        return str(self.last_id)


def get_local_timezone(settings: Settings) -> ZoneInfo:
    try:
        return ZoneInfo(settings.local_tz)
    except Exception as e:
        log.warning(f"Failed to get timezone {settings.local_tz}: {e}, using UTC")
        return ZoneInfo("UTC")


def local_day(moment: datetime, settings: Settings) -> date:
    return moment.astimezone(get_local_timezone(settings)).date()


def build_observation_entry(
    analysis: ScreenAnalysis,
    settings: Settings,
    ids: EntryIdGenerator,
    now: Optional[datetime] = None,
) -> WIPEntry:
    """Creates the one-minute ledger entry for a screen observation."""
    now = now or utc_now()
    rate = analysis.hourly_rate if analysis.hourly_rate else get_default_hourly_rate(settings)
    return WIPEntry(
        id=ids.next_id(),
        description=standardize_description(analysis.activity_description),
        time_in_minutes=1,
        hourly_rate=rate,
        date=now,
        client_id="",
        client_name=analysis.client_name or UNKNOWN_CLIENT,
        client_address="",
        project_name=analysis.project_name or DEFAULT_PROJECT,
        partner=analysis.partner or get_active_partner(settings),
        created_at=now,
        updated_at=now,
    )


def _is_generic_project(name: str, settings: Settings) -> bool:
    return not name.strip() or name.strip().lower() in {p.lower() for p in settings.generic_project_names}


def absorb(new_entry: WIPEntry, existing: WIPEntry, settings: Settings) -> WIPEntry:
    """Folds `existing` into `new_entry`; returns the merged copy."""
    update = {
        "time_in_minutes": new_entry.time_in_minutes + existing.time_in_minutes,
        "description": union_description_lines([existing.description, new_entry.description]),
        "created_at": existing.created_at,
        "updated_at": utc_now(),
    }
    if existing.client_name != UNKNOWN_CLIENT and new_entry.client_name == UNKNOWN_CLIENT:
        update.update({
            "client_id": existing.client_id,
            "client_name": existing.client_name,
            "client_address": existing.client_address,
        })
    if existing.project_name and _is_generic_project(new_entry.project_name, settings):
        update["project_name"] = existing.project_name
    return new_entry.model_copy(update=update)


async def process_screen_activity(
    analysis: ScreenAnalysis,
    existing_entries: List[WIPEntry],
    decider: MergeDecider,
    settings: Settings,
    ids: EntryIdGenerator,
    now: Optional[datetime] = None,
) -> LedgerUpdate:
    """
    Builds the entry for one observation and merges it into the first
    matching same-day ledger entry, if any.
    """
    new_entry = build_observation_entry(analysis, settings, ids, now)
    today = local_day(new_entry.date, settings)
    candidates = [e for e in existing_entries if local_day(e.date, settings) == today]
    log.debug(f"Observation {new_entry.id}: {len(candidates)} same-day candidates of {len(existing_entries)} entries")

    for existing in candidates:
        if await decider.passes(existing, new_entry):
            merged = absorb(new_entry, existing, settings)
            log.info(
                f"Folded observation into {existing.id} -> {merged.id} "
                f"({merged.client_name} / {merged.project_name}, {merged.time_in_minutes} min)"
            )
            return LedgerUpdate(upserts=[merged], retired_ids=[existing.id])

    log.info(f"No match for observation; opening new entry {new_entry.id} ({new_entry.client_name} / {new_entry.project_name})")
    return LedgerUpdate(upserts=[new_entry])
