# Ledger storage for WorkLog

import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

import duckdb

from WorkLog.models import LedgerUpdate, WIPEntry, utc_now

log = logging.getLogger(__name__)

DB_PATH = Path(__file__).parent.parent / 'storage' / 'worklog.db'

SCHEMA_QUERIES = [
    '''
    CREATE TABLE IF NOT EXISTS wip_entries (
        id VARCHAR PRIMARY KEY,
        client_id VARCHAR,
        client_name VARCHAR,
        client_address VARCHAR,
        project_name VARCHAR,
        description TEXT,
        time_in_minutes INTEGER,
        hourly_rate DOUBLE,
        date TIMESTAMP,
        partner VARCHAR,
        category VARCHAR,
        extra VARCHAR,
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    );
    ''',
]

COLUMNS = [
    "id", "client_id", "client_name", "client_address", "project_name", "description",
    "time_in_minutes", "hourly_rate", "date", "partner", "category", "extra",
    "created_at", "updated_at",
]


def get_connection(db_path: Optional[Path] = None):
    path = db_path or DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path))


def init_database(db_path: Optional[Path] = None):
    with get_connection(db_path) as conn:
        for query in SCHEMA_QUERIES:
            conn.execute(query)


def _naive_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _to_row(entry: WIPEntry) -> list:
    extra = entry.model_extra or {}
    return [
        entry.id, entry.client_id, entry.client_name, entry.client_address, entry.project_name,
        entry.description, entry.time_in_minutes, entry.hourly_rate, _naive_utc(entry.date),
        entry.partner, entry.category, json.dumps(extra, default=str) if extra else None,
        _naive_utc(entry.created_at), _naive_utc(entry.updated_at),
    ]


def _from_row(row: tuple) -> WIPEntry:
    data = dict(zip(COLUMNS, row))
    extra = data.pop("extra")
    if extra:
        data.update(json.loads(extra) if isinstance(extra, str) else extra)
    return WIPEntry.model_validate(data)


class LedgerStore:
    """
    Reads and writes WIP entries.

    The aggregation engine never calls this directly; callers load the
    ledger, run the engine and apply the returned `LedgerUpdate` here.
    """

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path
        init_database(db_path)

    def _connect(self):
        return get_connection(self.db_path)

    def get_all_entries(self) -> List[WIPEntry]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {', '.join(COLUMNS)} FROM wip_entries ORDER BY updated_at DESC"
            ).fetchall()
        return [_from_row(row) for row in rows]

    def get_entries_for_day(self, day: date) -> List[WIPEntry]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {', '.join(COLUMNS)} FROM wip_entries WHERE CAST(date AS DATE) = ? ORDER BY date",
                [day],
            ).fetchall()
        return [_from_row(row) for row in rows]

    def upsert_entry(self, entry: WIPEntry, conn=None) -> WIPEntry:
        entry = entry.model_copy(update={"updated_at": utc_now()})
        placeholders = ", ".join("?" for _ in COLUMNS)
        query = f"INSERT OR REPLACE INTO wip_entries ({', '.join(COLUMNS)}) VALUES ({placeholders})"
        if conn is not None:
            conn.execute(query, _to_row(entry))
        else:
            with self._connect() as own_conn:
                own_conn.execute(query, _to_row(entry))
        return entry

    def delete_entries(self, ids: Iterable[str], conn=None) -> int:
        ids = list(ids)
        if not ids:
            return 0
        placeholders = ", ".join("?" for _ in ids)
        query = f"DELETE FROM wip_entries WHERE id IN ({placeholders})"
        if conn is not None:
            conn.execute(query, ids)
        else:
            with self._connect() as own_conn:
                own_conn.execute(query, ids)
        return len(ids)

    def apply_update(self, update: LedgerUpdate) -> None:
        """Writes upserts and retires ids in one transaction."""
        if update.is_empty:
            return
        with self._connect() as conn:
            conn.begin()
            try:
                retired = [i for i in update.retired_ids if i not in {e.id for e in update.upserts}]
                self.delete_entries(retired, conn=conn)
                for entry in update.upserts:
                    self.upsert_entry(entry, conn=conn)
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        log.info(f"Applied ledger update: {len(update.upserts)} upserted, {len(update.retired_ids)} retired.")
