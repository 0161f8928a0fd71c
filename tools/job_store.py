"""
Job Store — SQLite-based persistence for employers, postings and run bookkeeping.

One JobStore wraps one connection; each employer run (and each worker
thread) opens its own. Postings are never deleted here: lifecycle is
expressed through is_active and the two expiry columns.
"""

import json
import os
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Optional

from config.settings import settings
from models.errors import StorageError
from models.job import Employer, Posting


# Columns written from a normalized record (everything except id/bookkeeping)
POSTING_FIELDS = (
    "employer_id",
    "source_url",
    "slug",
    "title",
    "description",
    "location",
    "city",
    "state",
    "zip_code",
    "is_remote",
    "job_type",
    "shift_type",
    "specialty",
    "experience_level",
    "salary_min",
    "salary_max",
    "salary_type",
    "salary_currency",
    "salary_min_hourly",
    "salary_max_hourly",
    "salary_min_annual",
    "salary_max_annual",
    "meta_description",
    "keywords",
    "source_job_id",
    "posted_date",
    "is_active",
    "expires_date",
    "calculated_expires_date",
    "scraped_at",
    "classified_at",
)

DATETIME_FIELDS = {
    "posted_date",
    "expires_date",
    "calculated_expires_date",
    "scraped_at",
    "classified_at",
    "created_at",
    "updated_at",
    "last_scraped",
}

SCHEMA = """
CREATE TABLE IF NOT EXISTS employers (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    slug TEXT UNIQUE NOT NULL,
    name TEXT NOT NULL,
    career_page_url TEXT NOT NULL DEFAULT '',
    last_scraped TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS postings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    employer_id INTEGER NOT NULL REFERENCES employers(id),
    source_url TEXT UNIQUE NOT NULL,
    slug TEXT UNIQUE NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    location TEXT NOT NULL DEFAULT '',
    city TEXT,
    state TEXT,
    zip_code TEXT,
    is_remote INTEGER NOT NULL DEFAULT 0,
    job_type TEXT,
    shift_type TEXT,
    specialty TEXT,
    experience_level TEXT,
    salary_min REAL,
    salary_max REAL,
    salary_type TEXT,
    salary_currency TEXT NOT NULL DEFAULT 'USD',
    salary_min_hourly REAL,
    salary_max_hourly REAL,
    salary_min_annual REAL,
    salary_max_annual REAL,
    meta_description TEXT NOT NULL DEFAULT '',
    keywords TEXT NOT NULL DEFAULT '[]',
    source_job_id TEXT,
    posted_date TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    expires_date TEXT,
    calculated_expires_date TEXT,
    scraped_at TEXT NOT NULL,
    classified_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_postings_employer_active ON postings(employer_id, is_active);

CREATE TABLE IF NOT EXISTS run_locks (
    employer_slug TEXT PRIMARY KEY,
    owner TEXT NOT NULL,
    acquired_at TEXT NOT NULL,
    expires_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS scrape_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    employer_slug TEXT NOT NULL,
    started_at TEXT NOT NULL,
    finished_at TEXT,
    status TEXT NOT NULL DEFAULT 'running',
    complete INTEGER,
    created INTEGER NOT NULL DEFAULT 0,
    updated INTEGER NOT NULL DEFAULT 0,
    reactivated INTEGER NOT NULL DEFAULT 0,
    deactivated INTEGER NOT NULL DEFAULT 0,
    skipped INTEGER NOT NULL DEFAULT 0,
    error TEXT
);
"""


def to_db_time(value: Optional[datetime]) -> Optional[str]:
    """Serialise a datetime as fixed-width UTC ISO text so string comparison orders correctly."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _to_db_value(field: str, value):
    if field in DATETIME_FIELDS:
        return to_db_time(value)
    if field == "keywords":
        return json.dumps(list(value or []))
    if field in ("is_remote", "is_active"):
        return 1 if value else 0
    return value


class JobStore:
    """Explicit storage handle, scoped to one run or one worker thread."""

    def __init__(self, db_path: str = None):
        self.db_path = db_path or settings.db_path
        try:
            if self.db_path != ":memory:":
                directory = os.path.dirname(os.path.abspath(self.db_path))
                os.makedirs(directory, exist_ok=True)
            self.conn = sqlite3.connect(self.db_path, timeout=30)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.execute("PRAGMA foreign_keys=ON")
            self.conn.executescript(SCHEMA)
            self.conn.commit()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open job store at {self.db_path}: {e}") from e

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    # ── Employers ────────────────────────────────────────────────

    def _employer_from_row(self, row: sqlite3.Row) -> Employer:
        return Employer(
            id=row["id"],
            slug=row["slug"],
            name=row["name"],
            career_page_url=row["career_page_url"] or "",
            last_scraped=from_db_time(row["last_scraped"]),
        )

    def get_employer(self, slug: str) -> Optional[Employer]:
        row = self.conn.execute("SELECT * FROM employers WHERE slug = ?", (slug,)).fetchone()
        return self._employer_from_row(row) if row else None

    def get_or_create_employer(self, slug: str, name: str, career_page_url: str = "") -> Employer:
        """Look up an employer by slug, creating it (or refreshing name/url) as needed."""
        now = to_db_time(datetime.now(timezone.utc))
        with self.conn:
            self.conn.execute(
                "INSERT INTO employers (slug, name, career_page_url, created_at) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(slug) DO UPDATE SET name = excluded.name, career_page_url = excluded.career_page_url",
                (slug, name, career_page_url, now),
            )
        return self.get_employer(slug)

    def touch_employer(self, employer_id: int, when: datetime) -> None:
        with self.conn:
            self.conn.execute(
                "UPDATE employers SET last_scraped = ? WHERE id = ?",
                (to_db_time(when), employer_id),
            )

    # ── Postings ─────────────────────────────────────────────────

    def _posting_from_row(self, row: sqlite3.Row) -> Posting:
        data = dict(row)
        for field in DATETIME_FIELDS:
            if field in data:
                data[field] = from_db_time(data[field])
        data["keywords"] = json.loads(data.get("keywords") or "[]")
        data["is_remote"] = bool(data["is_remote"])
        data["is_active"] = bool(data["is_active"])
        return Posting(**data)

    def get_posting(self, posting_id: int) -> Optional[Posting]:
        row = self.conn.execute("SELECT * FROM postings WHERE id = ?", (posting_id,)).fetchone()
        return self._posting_from_row(row) if row else None

    def find_by_source_url(self, source_url: str) -> Optional[Posting]:
        row = self.conn.execute("SELECT * FROM postings WHERE source_url = ?", (source_url,)).fetchone()
        return self._posting_from_row(row) if row else None

    def slug_taken(self, slug: str, exclude_id: int = None) -> bool:
        row = self.conn.execute(
            "SELECT id FROM postings WHERE slug = ? AND id IS NOT ?", (slug, exclude_id)
        ).fetchone()
        return row is not None

    def insert_posting(self, fields: dict, now: datetime) -> Posting:
        """
        Insert a new posting.

        Raises:
            sqlite3.IntegrityError: source_url or slug already exists.
        """
        columns = [f for f in POSTING_FIELDS if f in fields]
        values = [_to_db_value(f, fields[f]) for f in columns]
        columns += ["created_at", "updated_at"]
        values += [to_db_time(now), to_db_time(now)]
        placeholders = ", ".join("?" for _ in columns)
        with self.conn:
            cursor = self.conn.execute(
                f"INSERT INTO postings ({', '.join(columns)}) VALUES ({placeholders})",
                values,
            )
        return self.get_posting(cursor.lastrowid)

    def update_posting(self, posting_id: int, fields: dict, now: datetime) -> Posting:
        columns = [f for f in POSTING_FIELDS if f in fields and f != "source_url"]
        assignments = ", ".join(f"{c} = ?" for c in columns + ["updated_at"])
        values = [_to_db_value(c, fields[c]) for c in columns] + [to_db_time(now), posting_id]
        with self.conn:
            self.conn.execute(f"UPDATE postings SET {assignments} WHERE id = ?", values)
        return self.get_posting(posting_id)

    def active_postings(self, employer_id: int) -> list[Posting]:
        rows = self.conn.execute(
            "SELECT * FROM postings WHERE employer_id = ? AND is_active = 1 ORDER BY id",
            (employer_id,),
        ).fetchall()
        return [self._posting_from_row(r) for r in rows]

    def postings_for_employer(self, employer_id: int) -> list[Posting]:
        rows = self.conn.execute(
            "SELECT * FROM postings WHERE employer_id = ? ORDER BY id", (employer_id,)
        ).fetchall()
        return [self._posting_from_row(r) for r in rows]

    def expired_active_postings(self, now: datetime) -> list[Posting]:
        """Active postings whose governing expiry (explicit, else calculated) is at or before now."""
        rows = self.conn.execute(
            "SELECT * FROM postings WHERE is_active = 1 "
            "AND COALESCE(expires_date, calculated_expires_date) IS NOT NULL "
            "AND COALESCE(expires_date, calculated_expires_date) <= ? ORDER BY id",
            (to_db_time(now),),
        ).fetchall()
        return [self._posting_from_row(r) for r in rows]

    def deactivate(self, posting_ids: list[int], now: datetime) -> int:
        """Set is_active = 0 for the given postings in one transaction. Already-inactive rows are left alone."""
        if not posting_ids:
            return 0
        changed = 0
        with self.conn:
            for posting_id in posting_ids:
                cursor = self.conn.execute(
                    "UPDATE postings SET is_active = 0, updated_at = ? WHERE id = ? AND is_active = 1",
                    (to_db_time(now), posting_id),
                )
                changed += cursor.rowcount
        return changed

    def count_postings(self, active_only: bool = False) -> int:
        query = "SELECT COUNT(*) FROM postings"
        if active_only:
            query += " WHERE is_active = 1"
        return self.conn.execute(query).fetchone()[0]

    def stats(self) -> dict:
        """Per-employer posting counts for the CLI summary."""
        rows = self.conn.execute(
            "SELECT e.slug, COUNT(p.id) AS total, COALESCE(SUM(p.is_active), 0) AS active "
            "FROM employers e LEFT JOIN postings p ON p.employer_id = e.id "
            "GROUP BY e.id ORDER BY e.slug"
        ).fetchall()
        return {r["slug"]: {"total": r["total"], "active": r["active"]} for r in rows}

    # ── Run locks ────────────────────────────────────────────────

    def acquire_run_lock(self, employer_slug: str, owner: str, now: datetime, ttl_minutes: int = None) -> bool:
        """
        Claim the run lock for an employer. Locks older than the TTL are treated as abandoned.

        Returns:
            True if the lock was acquired, False if another live run holds it.
        """
        ttl_minutes = settings.run_lock_ttl_minutes if ttl_minutes is None else ttl_minutes
        expires_at = now + timedelta(minutes=ttl_minutes)
        try:
            with self.conn:
                self.conn.execute(
                    "DELETE FROM run_locks WHERE employer_slug = ? AND expires_at <= ?",
                    (employer_slug, to_db_time(now)),
                )
                self.conn.execute(
                    "INSERT INTO run_locks (employer_slug, owner, acquired_at, expires_at) VALUES (?, ?, ?, ?)",
                    (employer_slug, owner, to_db_time(now), to_db_time(expires_at)),
                )
        except sqlite3.IntegrityError:
            return False
        return True

    def release_run_lock(self, employer_slug: str, owner: str) -> None:
        with self.conn:
            self.conn.execute(
                "DELETE FROM run_locks WHERE employer_slug = ? AND owner = ?",
                (employer_slug, owner),
            )

    # ── Run audit ────────────────────────────────────────────────

    def start_run(self, employer_slug: str, started_at: datetime) -> int:
        with self.conn:
            cursor = self.conn.execute(
                "INSERT INTO scrape_runs (employer_slug, started_at) VALUES (?, ?)",
                (employer_slug, to_db_time(started_at)),
            )
        return cursor.lastrowid

    def finish_run(self, run_id: int, finished_at: datetime, status: str, counts: dict = None,
                   complete: bool = None, error: str = None) -> None:
        counts = counts or {}
        with self.conn:
            self.conn.execute(
                "UPDATE scrape_runs SET finished_at = ?, status = ?, complete = ?, created = ?, updated = ?, "
                "reactivated = ?, deactivated = ?, skipped = ?, error = ? WHERE id = ?",
                (
                    to_db_time(finished_at),
                    status,
                    None if complete is None else int(complete),
                    counts.get("created", 0),
                    counts.get("updated", 0),
                    counts.get("reactivated", 0),
                    counts.get("deactivated", 0),
                    counts.get("skipped", 0),
                    error,
                    run_id,
                ),
            )

    def recent_runs(self, employer_slug: str = None, limit: int = 10) -> list[dict]:
        if employer_slug:
            rows = self.conn.execute(
                "SELECT * FROM scrape_runs WHERE employer_slug = ? ORDER BY id DESC LIMIT ?",
                (employer_slug, limit),
            ).fetchall()
        else:
            rows = self.conn.execute("SELECT * FROM scrape_runs ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
