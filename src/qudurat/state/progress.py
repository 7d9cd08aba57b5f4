"""SQLite-backed exercise history for Qudurat."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from qudurat.engine.grader import ExerciseResult


@dataclass
class ExerciseRecord:
    user_id: str
    exercise_id: str
    section: str
    score: int
    correct_count: int
    total: int
    completed_at: str


class ProgressStore:
    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or (Path.home() / ".qudurat" / "progress.db")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS exercise_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    exercise_id TEXT NOT NULL,
                    section TEXT DEFAULT '',
                    score INTEGER DEFAULT 0,
                    correct_count INTEGER DEFAULT 0,
                    total INTEGER DEFAULT 0,
                    completed_at TEXT NOT NULL
                )
            """)

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def save(self, user_id: str, result: ExerciseResult, section: str = "") -> None:
        now = datetime.now().isoformat()
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO exercise_history
                   (user_id, exercise_id, section, score, correct_count, total, completed_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (user_id, result.exercise_id, section, result.score,
                 result.correct_count, result.total, now),
            )

    def get_history(self, user_id: str, limit: int = 20) -> list[ExerciseRecord]:
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT user_id, exercise_id, section, score, correct_count, total, completed_at
                   FROM exercise_history WHERE user_id = ?
                   ORDER BY completed_at DESC, id DESC LIMIT ?""",
                (user_id, limit),
            ).fetchall()
        return [
            ExerciseRecord(
                user_id=r[0], exercise_id=r[1], section=r[2], score=r[3],
                correct_count=r[4], total=r[5], completed_at=r[6],
            )
            for r in rows
        ]

    def get_summary(self, user_id: str) -> dict:
        """Return a summary of a user's exercise history.

        Returns dict with keys: started, exercises, average_score,
        best_score, last_activity.
        """
        with self._conn() as conn:
            row = conn.execute(
                """SELECT COUNT(*), AVG(score), MAX(score), MAX(completed_at)
                   FROM exercise_history WHERE user_id = ?""",
                (user_id,),
            ).fetchone()
        if not row or row[0] == 0:
            return {"started": False}

        return {
            "started": True,
            "exercises": row[0],
            "average_score": round(row[1]),
            "best_score": row[2],
            "last_activity": row[3],
        }

    def reset_user(self, user_id: str) -> None:
        with self._conn() as conn:
            conn.execute(
                "DELETE FROM exercise_history WHERE user_id = ?",
                (user_id,),
            )
