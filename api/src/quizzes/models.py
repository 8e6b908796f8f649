"""Database models for quiz attempts.

Cassandra table definitions for:
- Quiz attempts: immutable, numbered per (user, lesson)

The attempt number is a clustering key written with ``IF NOT EXISTS``, so
two concurrent submissions can never share a number.
"""

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from .scoring import QuestionResult, ScoreResult


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

QUIZ_ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempts (
    user_id UUID,
    lesson_id TEXT,
    attempt_number INT,
    attempt_id UUID,
    course_id UUID,
    answers TEXT,
    score_earned INT,
    score_total INT,
    percentage INT,
    passing_score INT,
    passed BOOLEAN,
    time_taken_seconds INT,
    started_at TIMESTAMP,
    completed_at TIMESTAMP,
    PRIMARY KEY ((user_id, lesson_id), attempt_number)
) WITH CLUSTERING ORDER BY (attempt_number DESC)
"""

QUIZZES_TABLES_CQL = [
    QUIZ_ATTEMPTS_TABLE_CQL,
]


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass(frozen=True)
class QuizAttempt:
    """One scored submission. Never updated after insertion."""

    user_id: UUID
    course_id: UUID
    lesson_id: str
    attempt_number: int
    answers: tuple[QuestionResult, ...]
    score_earned: int
    score_total: int
    percentage: int
    passing_score: int
    passed: bool
    started_at: datetime
    completed_at: datetime
    attempt_id: UUID = field(default_factory=uuid4)

    @property
    def time_taken_seconds(self) -> int:
        return max(0, int((self.completed_at - self.started_at).total_seconds()))

    @classmethod
    def from_score(
        cls,
        user_id: UUID,
        course_id: UUID,
        lesson_id: str,
        attempt_number: int,
        score: ScoreResult,
        started_at: datetime | None = None,
        attempt_id: UUID | None = None,
    ) -> "QuizAttempt":
        completed_at = datetime.now(UTC)
        started = ensure_utc_aware(started_at) or completed_at
        return cls(
            user_id=user_id,
            course_id=course_id,
            lesson_id=lesson_id,
            attempt_number=attempt_number,
            answers=score.results,
            score_earned=score.score_earned,
            score_total=score.score_total,
            percentage=score.percentage,
            passing_score=score.passing_score,
            passed=score.passed,
            started_at=min(started, completed_at),
            completed_at=completed_at,
            attempt_id=attempt_id or uuid4(),
        )

    def with_number(self, attempt_number: int) -> "QuizAttempt":
        """Same submission renumbered after a lost numbering race."""
        return QuizAttempt(
            user_id=self.user_id,
            course_id=self.course_id,
            lesson_id=self.lesson_id,
            attempt_number=attempt_number,
            answers=self.answers,
            score_earned=self.score_earned,
            score_total=self.score_total,
            percentage=self.percentage,
            passing_score=self.passing_score,
            passed=self.passed,
            started_at=self.started_at,
            completed_at=self.completed_at,
            attempt_id=self.attempt_id,
        )

    def answers_json(self) -> str:
        return json.dumps(
            [
                {
                    "question_id": r.question_id,
                    "answer": list(r.answer) if isinstance(r.answer, tuple) else r.answer,
                    "is_correct": r.is_correct,
                    "points_earned": r.points_earned,
                    "points_possible": r.points_possible,
                }
                for r in self.answers
            ]
        )

    @classmethod
    def from_row(cls, row: Any) -> "QuizAttempt":
        """Create QuizAttempt from Cassandra row."""
        answers = tuple(
            QuestionResult(
                question_id=item["question_id"],
                answer=tuple(item["answer"])
                if isinstance(item["answer"], list)
                else item["answer"],
                is_correct=item["is_correct"],
                points_earned=item["points_earned"],
                points_possible=item["points_possible"],
            )
            for item in json.loads(row.answers or "[]")
        )
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            lesson_id=row.lesson_id,
            attempt_number=row.attempt_number,
            answers=answers,
            score_earned=row.score_earned or 0,
            score_total=row.score_total or 0,
            percentage=row.percentage or 0,
            passing_score=row.passing_score or 0,
            passed=bool(row.passed),
            started_at=ensure_utc_aware(row.started_at),
            completed_at=ensure_utc_aware(row.completed_at),
            attempt_id=row.attempt_id,
        )
