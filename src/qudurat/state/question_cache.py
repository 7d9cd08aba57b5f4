"""SQLite-backed cache of pre-generated questions.

Questions are reserved for a user before being served and marked used
once answered. ``cleanup`` drops expired rows and releases reservations
that were never completed.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class CachedQuestion:
    id: int
    test_type: str
    section: str
    difficulty: str
    question: dict
    reserved_by: Optional[str] = None


@dataclass
class CacheStats:
    total: int
    used: int

    @property
    def available(self) -> int:
        return self.total - self.used

    def to_dict(self) -> dict:
        return {"total": self.total, "used": self.used, "available": self.available}


@dataclass
class CleanupReport:
    expired_deleted: int
    stale_released: int
    stats: CacheStats
    refill_needed: bool
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "expiredDeleted": self.expired_deleted,
            "staleReleased": self.stale_released,
            "cacheStats": self.stats.to_dict(),
            "refillNeeded": self.refill_needed,
            "timestamp": self.timestamp,
        }


class QuestionCache:
    def __init__(
        self,
        db_path: Path,
        ttl_hours: int = 24,
        reservation_timeout_minutes: int = 10,
        low_water_mark: int = 50,
    ):
        self.db_path = db_path
        self.ttl = timedelta(hours=ttl_hours)
        self.reservation_timeout = timedelta(minutes=reservation_timeout_minutes)
        self.low_water_mark = low_water_mark
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS questions_cache (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    test_type TEXT NOT NULL,
                    section TEXT NOT NULL,
                    difficulty TEXT DEFAULT 'medium',
                    question TEXT NOT NULL,
                    is_used INTEGER DEFAULT 0,
                    reserved_by TEXT,
                    reserved_at TEXT,
                    created_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL
                )
            """)

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def add(
        self,
        question: dict,
        test_type: str,
        section: str,
        difficulty: str = "medium",
        ttl_hours: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        now = now or datetime.now()
        ttl = timedelta(hours=ttl_hours) if ttl_hours is not None else self.ttl
        with self._conn() as conn:
            cur = conn.execute(
                """INSERT INTO questions_cache
                   (test_type, section, difficulty, question, created_at, expires_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    test_type, section, difficulty,
                    json.dumps(question, ensure_ascii=False),
                    now.isoformat(), (now + ttl).isoformat(),
                ),
            )
            return cur.lastrowid

    def reserve(
        self,
        test_type: str,
        section: str,
        user_id: str,
        difficulty: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[CachedQuestion]:
        """Reserve the oldest free question, or None when the cache is dry."""
        now = now or datetime.now()
        sql = (
            "SELECT id, test_type, section, difficulty, question FROM questions_cache"
            " WHERE test_type = ? AND section = ? AND is_used = 0"
            " AND reserved_by IS NULL AND expires_at > ?"
        )
        args: list = [test_type, section, now.isoformat()]
        if difficulty:
            sql += " AND difficulty = ?"
            args.append(difficulty)
        sql += " ORDER BY created_at, id LIMIT 1"

        with self._conn() as conn:
            row = conn.execute(sql, args).fetchone()
            if not row:
                return None
            conn.execute(
                "UPDATE questions_cache SET reserved_by = ?, reserved_at = ? WHERE id = ?",
                (user_id, now.isoformat(), row[0]),
            )
        return CachedQuestion(
            id=row[0], test_type=row[1], section=row[2], difficulty=row[3],
            question=json.loads(row[4]), reserved_by=user_id,
        )

    def mark_used(self, cache_id: int) -> bool:
        """Mark a cached question as served; False when the id is unknown."""
        with self._conn() as conn:
            updated = conn.execute(
                "UPDATE questions_cache SET is_used = 1, reserved_by = NULL, reserved_at = NULL"
                " WHERE id = ?",
                (cache_id,),
            ).rowcount
        return updated > 0

    def stats(self) -> CacheStats:
        with self._conn() as conn:
            total, used = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(is_used), 0) FROM questions_cache"
            ).fetchone()
        return CacheStats(total=total, used=used)

    def cleanup(self, now: Optional[datetime] = None) -> CleanupReport:
        """Delete expired rows, release stale reservations, report stats."""
        now = now or datetime.now()
        logger.info("Starting cache cleanup")

        with self._conn() as conn:
            expired = conn.execute(
                "DELETE FROM questions_cache WHERE expires_at < ?",
                (now.isoformat(),),
            ).rowcount
            logger.info("Deleted %d expired questions", expired)

            stale = conn.execute(
                "UPDATE questions_cache SET reserved_by = NULL, reserved_at = NULL"
                " WHERE reserved_by IS NOT NULL AND reserved_at < ?",
                ((now - self.reservation_timeout).isoformat(),),
            ).rowcount
            logger.info("Released %d stale reservations", stale)

        stats = self.stats()
        refill_needed = stats.available < self.low_water_mark
        if refill_needed:
            logger.warning(
                "Question cache running low: %d available (threshold %d)",
                stats.available, self.low_water_mark,
            )

        return CleanupReport(
            expired_deleted=expired,
            stale_released=stale,
            stats=stats,
            refill_needed=refill_needed,
            timestamp=now.isoformat(),
        )
