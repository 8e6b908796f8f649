# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Cassandra access for quiz attempts."""

from uuid import UUID

from src.core.database.repository import CassandraRepository

from .models import QuizAttempt


class QuizAttemptRepository(CassandraRepository):
    """Append-only attempt log per (user, lesson)."""

    def _prepare_statements(self) -> None:
        self._insert_attempt = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_attempts
            (user_id, lesson_id, attempt_number, attempt_id, course_id, answers,
             score_earned, score_total, percentage, passing_score, passed,
             time_taken_seconds, started_at, completed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._latest_number = self.session.prepare(f"""
            SELECT attempt_number FROM {self.keyspace}.quiz_attempts
            WHERE user_id = ? AND lesson_id = ?
            LIMIT 1
        """)

        self._list_attempts = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_attempts
            WHERE user_id = ? AND lesson_id = ?
        """)

    async def latest_number(self, user_id: UUID, lesson_id: str) -> int:
        """Highest attempt number so far (0 when none)."""
        result = await self._execute(
            self._latest_number, [user_id, lesson_id], idempotent=True
        )
        row = result.one()
        return row.attempt_number if row else 0

    async def insert(self, attempt: QuizAttempt) -> bool:
        """Insert unless the attempt number is taken.

        Returns:
            False when another submission already holds the number
        """
        result = await self._execute(
            self._insert_attempt,
            [
                attempt.user_id,
                attempt.lesson_id,
                attempt.attempt_number,
                attempt.attempt_id,
                attempt.course_id,
                attempt.answers_json(),
                attempt.score_earned,
                attempt.score_total,
                attempt.percentage,
                attempt.passing_score,
                attempt.passed,
                attempt.time_taken_seconds,
                attempt.started_at,
                attempt.completed_at,
            ],
        )
        return self._was_applied(result)

    async def list_for_lesson(self, user_id: UUID, lesson_id: str) -> list[QuizAttempt]:
        """Attempts newest first."""
        rows = await self._execute(self._list_attempts, [user_id, lesson_id], idempotent=True)
        return [QuizAttempt.from_row(row) for row in rows]
