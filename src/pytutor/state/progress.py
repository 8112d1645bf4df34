"""SQLite-backed learner records for PyTutor."""

from __future__ import annotations

import json
import sqlite3
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger

from pytutor.engine.adaptive import PerformanceSnapshot, snapshot_from_history

_SCHEMA = """
CREATE TABLE IF NOT EXISTS profiles (
    user_id TEXT PRIMARY KEY,
    display_name TEXT,
    skill_level INTEGER DEFAULT 1,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS lesson_progress (
    user_id TEXT NOT NULL,
    lesson_id TEXT NOT NULL,
    completed INTEGER DEFAULT 0,
    completed_at TEXT,
    PRIMARY KEY (user_id, lesson_id)
);
CREATE TABLE IF NOT EXISTS practice_submissions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    problem_id TEXT NOT NULL,
    code TEXT NOT NULL,
    passed INTEGER DEFAULT 0,
    result TEXT,
    submitted_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS conversations (
    user_id TEXT PRIMARY KEY,
    messages TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS user_badges (
    user_id TEXT NOT NULL,
    badge_id TEXT NOT NULL,
    earned_at TEXT NOT NULL,
    PRIMARY KEY (user_id, badge_id)
);
"""


@dataclass
class Profile:
    user_id: str
    display_name: Optional[str]
    skill_level: int
    updated_at: str


@dataclass
class Submission:
    user_id: str
    problem_id: str
    code: str
    passed: bool
    submitted_at: str
    result: Optional[dict] = None


class ProgressStore:
    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or (Path.home() / ".pytutor" / "progress.db")
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        with closing(self._conn()) as conn:
            conn.executescript(_SCHEMA)

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _write(self, sql: str, params: tuple) -> None:
        with closing(self._conn()) as conn, conn:
            conn.execute(sql, params)

    # --- Profiles ---

    def get_profile(self, user_id: str) -> Optional[Profile]:
        with closing(self._conn()) as conn:
            row = conn.execute(
                "SELECT user_id, display_name, skill_level, updated_at FROM profiles WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        if not row:
            return None
        return Profile(user_id=row[0], display_name=row[1], skill_level=row[2], updated_at=row[3])

    def save_profile(self, user_id: str, display_name: Optional[str] = None, skill_level: int = 1) -> None:
        self._write(
            """INSERT OR REPLACE INTO profiles (user_id, display_name, skill_level, updated_at)
               VALUES (?, ?, ?, ?)""",
            (user_id, display_name, skill_level, datetime.now().isoformat()),
        )

    # --- Lessons ---

    def mark_lesson_complete(self, user_id: str, lesson_id: str) -> None:
        self._write(
            """INSERT OR REPLACE INTO lesson_progress (user_id, lesson_id, completed, completed_at)
               VALUES (?, ?, 1, ?)""",
            (user_id, lesson_id, datetime.now().isoformat()),
        )

    def completed_lesson_ids(self, user_id: str) -> list[str]:
        with closing(self._conn()) as conn:
            rows = conn.execute(
                "SELECT lesson_id FROM lesson_progress WHERE user_id = ? AND completed = 1 ORDER BY lesson_id",
                (user_id,),
            ).fetchall()
        return [r[0] for r in rows]

    def completed_lesson_count(self, user_id: str) -> int:
        with closing(self._conn()) as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM lesson_progress WHERE user_id = ? AND completed = 1",
                (user_id,),
            ).fetchone()
        return row[0]

    # --- Submissions ---

    def save_submission(
        self,
        user_id: str,
        problem_id: str,
        code: str,
        passed: bool,
        result: Optional[dict] = None,
    ) -> None:
        self._write(
            """INSERT INTO practice_submissions (user_id, problem_id, code, passed, result, submitted_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                user_id, problem_id, code, int(passed),
                json.dumps(result) if result is not None else None,
                datetime.now().isoformat(),
            ),
        )

    def recent_outcomes(self, user_id: str, limit: Optional[int] = 10) -> list[bool]:
        """Pass flags of the latest submissions, most recent first."""
        sql = "SELECT passed FROM practice_submissions WHERE user_id = ? ORDER BY submitted_at DESC, id DESC"
        params: tuple = (user_id,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (user_id, limit)
        with closing(self._conn()) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [bool(r[0]) for r in rows]

    def get_submissions(self, user_id: str, problem_id: Optional[str] = None) -> list[Submission]:
        sql = "SELECT user_id, problem_id, code, passed, submitted_at, result FROM practice_submissions WHERE user_id = ?"
        params: tuple = (user_id,)
        if problem_id is not None:
            sql += " AND problem_id = ?"
            params = (user_id, problem_id)
        sql += " ORDER BY submitted_at DESC, id DESC"
        with closing(self._conn()) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [
            Submission(
                user_id=r[0], problem_id=r[1], code=r[2], passed=bool(r[3]),
                submitted_at=r[4], result=json.loads(r[5]) if r[5] else None,
            )
            for r in rows
        ]

    def passed_submission_count(self, user_id: str) -> int:
        with closing(self._conn()) as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM practice_submissions WHERE user_id = ? AND passed = 1",
                (user_id,),
            ).fetchone()
        return row[0]

    # --- Conversations ---

    def save_conversation(self, user_id: str, messages: list[dict]) -> None:
        self._write(
            "INSERT OR REPLACE INTO conversations (user_id, messages, updated_at) VALUES (?, ?, ?)",
            (user_id, json.dumps(messages), datetime.now().isoformat()),
        )

    def get_conversation(self, user_id: str) -> list[dict]:
        with closing(self._conn()) as conn:
            row = conn.execute(
                "SELECT messages FROM conversations WHERE user_id = ?", (user_id,),
            ).fetchone()
        return json.loads(row[0]) if row else []

    # --- Badges ---

    def award_badge(self, user_id: str, badge_id: str) -> bool:
        """Record a badge; returns False if the user already had it."""
        with closing(self._conn()) as conn, conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO user_badges (user_id, badge_id, earned_at) VALUES (?, ?, ?)",
                (user_id, badge_id, datetime.now().isoformat()),
            )
            return cur.rowcount == 1

    def earned_badge_ids(self, user_id: str) -> list[str]:
        with closing(self._conn()) as conn:
            rows = conn.execute(
                "SELECT badge_id FROM user_badges WHERE user_id = ? ORDER BY earned_at, badge_id",
                (user_id,),
            ).fetchall()
        return [r[0] for r in rows]

    def reset_user(self, user_id: str) -> None:
        with closing(self._conn()) as conn, conn:
            for table in ("profiles", "lesson_progress", "practice_submissions", "conversations", "user_badges"):
                conn.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))


def load_snapshot(store: ProgressStore, user_id: str, window: int = 10) -> PerformanceSnapshot:
    """Assemble the learner's snapshot; storage failures yield a new-learner snapshot."""
    try:
        profile = store.get_profile(user_id)
        completed = store.completed_lesson_count(user_id)
        outcomes = store.recent_outcomes(user_id, limit=window)
    except sqlite3.Error as e:
        logger.warning("Could not load history for {}: {}", user_id, e)
        return PerformanceSnapshot.new_learner()

    return snapshot_from_history(
        completed_lessons=completed,
        outcomes=outcomes,
        skill_level_hint=profile.skill_level if profile else 1,
        window=window,
    )
