"""
assessment/history.py — Local journal of finished assessments (SQLite).

Only terminal results are written. Attempts in progress never touch disk.
"""
import aiosqlite
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict

from .models import AssessmentConfig, Results

logger = logging.getLogger(__name__)


class ResultHistory:
    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)

    async def init_db(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS assessment_results (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    attempt_id TEXT NOT NULL,
                    skill_id TEXT NOT NULL,
                    skill_name TEXT,
                    score INTEGER NOT NULL,
                    passed BOOLEAN NOT NULL,
                    correct_count INTEGER NOT NULL,
                    total_questions INTEGER NOT NULL,
                    passing_score INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            await db.commit()
            logger.info("✅ Result history initialized")

    async def save_result(
        self,
        user_id: str,
        attempt_id: str,
        config: AssessmentConfig,
        results: Results,
    ):
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                INSERT INTO assessment_results (
                    user_id, attempt_id, skill_id, skill_name,
                    score, passed, correct_count, total_questions,
                    passing_score, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                user_id, attempt_id, config.skill_id, config.skill_name,
                results.score, int(results.passed), results.correct_count,
                results.total_questions, config.passing_score,
                datetime.now().isoformat()
            ))
            await db.commit()
            logger.info(f"✅ Result saved for {user_id} ({config.skill_name}: {results.score}%)")

    async def get_user_stats(self, user_id: str) -> Dict:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("""
                SELECT COUNT(*) as total_tests, AVG(score) as avg_score,
                       MAX(score) as best_score, SUM(passed) as passed_count
                FROM assessment_results WHERE user_id = ?
            """, (user_id,))
            row = await cursor.fetchone()
            if not row or row['total_tests'] == 0:
                return {"total_tests": 0, "avg_score": 0, "best_score": 0,
                        "passed_count": 0, "recent_tests": []}
            cursor = await db.execute("""
                SELECT skill_name, score, passed, created_at
                FROM assessment_results WHERE user_id = ?
                ORDER BY created_at DESC, id DESC LIMIT 5
            """, (user_id,))
            recent = await cursor.fetchall()
            return {
                "total_tests": row['total_tests'],
                "avg_score": round(row['avg_score'], 1),
                "best_score": row['best_score'],
                "passed_count": row['passed_count'],
                "recent_tests": [dict(r) for r in recent]
            }
