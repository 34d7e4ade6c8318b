"""
SQLite record store for work entries, and duplicate detection against it.
"""

import sqlite3
import datetime as dt
from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional

from .logging import get_logger
from .models import NormalizedEntry, ServiceType, StoredEntry
from .utils import to_decimal

# Stored hours within this many hours of a candidate's count as the same shift
HOURS_TOLERANCE = Decimal("0.1")

NOTES_PREFIX = "OCR imported: "

UPDATABLE_FIELDS = {"date", "hours_worked", "earnings", "base_pay", "tips", "service_type", "notes"}

log = get_logger(__name__)


def _to_db(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, ServiceType):
        return value.value
    return value


def _row_to_entry(row: sqlite3.Row) -> StoredEntry:
    return StoredEntry(
        id=row["id"],
        user_id=row["user_id"],
        date=dt.date.fromisoformat(row["date"]),
        hours_worked=to_decimal(row["hours_worked"]),
        earnings=to_decimal(row["earnings"]),
        base_pay=to_decimal(row["base_pay"]),
        tips=to_decimal(row["tips"]),
        service_type=ServiceType(row["service_type"]),
        notes=row["notes"],
        created_at=row["created_at"],
    )


class WorkEntryStore:
    """
    Work entries per user.

    Check-then-insert is not transactional: two imports for the same user
    running at once can both pass the duplicate check. Callers that import
    concurrently must serialize writes per user.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path.as_posix())
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        """Create the work_entries table and its lookup index."""
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("""
            CREATE TABLE IF NOT EXISTS work_entries (
                id INTEGER PRIMARY KEY,
                user_id TEXT NOT NULL,
                date TEXT NOT NULL,
                hours_worked REAL NOT NULL,
                earnings REAL NOT NULL,
                base_pay REAL,
                tips REAL,
                service_type TEXT NOT NULL DEFAULT 'logistics',
                notes TEXT,
                created_at TEXT
            )
            """)
            cur.execute("""
            CREATE INDEX IF NOT EXISTS idx_work_entries_user_date
            ON work_entries(user_id, date)
            """)
            conn.commit()

    def create(self, user_id: str, entry: NormalizedEntry) -> StoredEntry:
        """Insert a validated entry for ``user_id``."""
        if not entry.is_valid:
            raise ValueError("Only valid entries may be stored")

        created_at = dt.datetime.now(dt.timezone.utc).isoformat()
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("""
            INSERT INTO work_entries
            (user_id, date, hours_worked, earnings, base_pay, tips, service_type, notes, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                user_id, _to_db(entry.date), _to_db(entry.hours_worked), _to_db(entry.earnings),
                _to_db(entry.base_pay), _to_db(entry.tips), _to_db(entry.service_type),
                NOTES_PREFIX + entry.original_text, created_at,
            ))
            entry_id = cur.lastrowid
            conn.commit()

        return self.get(user_id, entry_id)

    def get(self, user_id: str, entry_id: int) -> Optional[StoredEntry]:
        """Fetch one entry; entries of other users are invisible."""
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM work_entries WHERE id = ? AND user_id = ?",
                        (entry_id, user_id))
            row = cur.fetchone()
        return _row_to_entry(row) if row else None

    def update(self, user_id: str, entry_id: int, **fields) -> Optional[StoredEntry]:
        """Update selected columns of one entry. Returns None if the user does not own it."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        if not fields:
            return self.get(user_id, entry_id)

        columns = sorted(fields)
        assignments = ", ".join(f"{c} = ?" for c in columns)
        values = [_to_db(fields[c]) for c in columns]
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(f"UPDATE work_entries SET {assignments} WHERE id = ? AND user_id = ?",
                        (*values, entry_id, user_id))
            conn.commit()
            if cur.rowcount == 0:
                return None
        return self.get(user_id, entry_id)

    def delete(self, user_id: str, entry_id: int) -> bool:
        """Delete one entry. Returns whether anything was removed."""
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM work_entries WHERE id = ? AND user_id = ?",
                        (entry_id, user_id))
            conn.commit()
            return cur.rowcount > 0

    def find(self, user_id: str,
             start_date: Optional[dt.date] = None,
             end_date: Optional[dt.date] = None,
             min_earnings: Optional[Decimal] = None,
             max_earnings: Optional[Decimal] = None,
             search: Optional[str] = None) -> List[StoredEntry]:
        """
        Entries of one user, newest date first.

        Args:
            user_id: Owner of the entries
            start_date: Inclusive lower date bound
            end_date: Inclusive upper date bound
            min_earnings: Inclusive lower earnings bound
            max_earnings: Inclusive upper earnings bound
            search: Substring that must appear in the notes
        """
        clauses = ["user_id = ?"]
        params: List[Any] = [user_id]
        if start_date is not None:
            clauses.append("date >= ?")
            params.append(_to_db(start_date))
        if end_date is not None:
            clauses.append("date <= ?")
            params.append(_to_db(end_date))
        if min_earnings is not None:
            clauses.append("earnings >= ?")
            params.append(_to_db(min_earnings))
        if max_earnings is not None:
            clauses.append("earnings <= ?")
            params.append(_to_db(max_earnings))
        if search:
            clauses.append("notes LIKE ?")
            params.append(f"%{search}%")

        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(f"""
            SELECT * FROM work_entries
            WHERE {' AND '.join(clauses)}
            ORDER BY date DESC, id DESC
            """, params)
            rows = cur.fetchall()
        return [_row_to_entry(r) for r in rows]


def is_same_shift(stored: StoredEntry, entry: NormalizedEntry,
                  tolerance: Decimal = HOURS_TOLERANCE) -> bool:
    """Same date, same earnings, hours within ``tolerance``."""
    return (
        stored.date == entry.date
        and stored.earnings == entry.earnings
        and abs(stored.hours_worked - entry.hours_worked) <= tolerance
    )


def find_duplicate(store, user_id: str, entry: NormalizedEntry,
                   tolerance: Decimal = HOURS_TOLERANCE,
                   logger: Any = None) -> Optional[StoredEntry]:
    """
    Look for an already-stored entry that is the same shift as ``entry``.

    If the lookup itself fails the entry is treated as new (fail open): a
    real shift is never dropped, at the cost of occasionally storing a repeat.
    """
    logger = logger or log
    try:
        candidates = store.find(user_id, start_date=entry.date, end_date=entry.date)
        for stored in candidates:
            if is_same_shift(stored, entry, tolerance):
                return stored
    except Exception as e:
        logger.warning("duplicate_check_failed", date=entry.date.isoformat(),
                       earnings=str(entry.earnings), error=str(e))
    return None
