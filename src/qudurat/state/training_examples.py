"""SQLite-backed store of curated training examples."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from qudurat.engine.few_shot import FewShotExample


class TrainingExampleStore:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ai_training_examples (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    test_type TEXT NOT NULL,
                    section TEXT NOT NULL,
                    subject TEXT,
                    difficulty TEXT,
                    question_text TEXT NOT NULL,
                    options TEXT NOT NULL,
                    correct_answer TEXT NOT NULL,
                    explanation TEXT DEFAULT '',
                    quality_score REAL,
                    created_at TEXT NOT NULL
                )
            """)

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def add(self, example: FewShotExample) -> int:
        with self._conn() as conn:
            cur = conn.execute(
                """INSERT INTO ai_training_examples
                   (test_type, section, subject, difficulty, question_text, options,
                    correct_answer, explanation, quality_score, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    example.test_type, example.section, example.subject,
                    example.difficulty, example.question_text,
                    json.dumps(example.options, ensure_ascii=False),
                    example.correct_answer, example.explanation,
                    example.quality_score, datetime.now().isoformat(),
                ),
            )
            return cur.lastrowid

    def query(
        self,
        section: str,
        test_type: str,
        min_quality: Optional[float] = None,
        limit: int = 30,
        order_by_quality: bool = True,
    ) -> list[FewShotExample]:
        """Examples for a section, highest quality first (unscored last).

        Without ``order_by_quality`` rows come back in insertion order.
        """
        sql = (
            "SELECT question_text, options, correct_answer, explanation, quality_score,"
            " subject, difficulty, section, test_type"
            " FROM ai_training_examples WHERE section = ? AND test_type = ?"
        )
        args: list = [section, test_type]
        if min_quality is not None:
            sql += " AND quality_score >= ?"
            args.append(min_quality)
        if order_by_quality:
            sql += " ORDER BY quality_score IS NULL, quality_score DESC, id LIMIT ?"
        else:
            sql += " ORDER BY id LIMIT ?"
        args.append(limit)

        with self._conn() as conn:
            rows = conn.execute(sql, args).fetchall()
        return [
            FewShotExample(
                question_text=r[0], options=json.loads(r[1]), correct_answer=r[2],
                explanation=r[3], quality_score=r[4], subject=r[5],
                difficulty=r[6], section=r[7], test_type=r[8],
            )
            for r in rows
        ]

    def count(self) -> int:
        with self._conn() as conn:
            return conn.execute("SELECT COUNT(*) FROM ai_training_examples").fetchone()[0]
