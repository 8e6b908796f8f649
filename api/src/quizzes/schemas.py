"""Pydantic schemas for quiz submissions."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .models import QuizAttempt
from .scoring import QuizAnswer


class SubmitQuizRequest(BaseModel):
    answers: list[QuizAnswer] = Field(default_factory=list)
    started_at: datetime | None = Field(
        None, description="When the student opened the quiz"
    )


class QuestionResultResponse(BaseModel):
    question_id: str
    answer: str | list[str] | None = None
    is_correct: bool
    points_earned: int
    points_possible: int


class QuizAttemptResponse(BaseModel):
    """Recorded attempt with per-question results."""

    attempt_id: UUID
    course_id: UUID
    lesson_id: str
    attempt_number: int
    score_earned: int
    score_total: int
    percentage: int
    passing_score: int
    passed: bool
    time_taken_seconds: int
    started_at: datetime
    completed_at: datetime
    answers: list[QuestionResultResponse]

    @classmethod
    def from_entity(cls, attempt: QuizAttempt) -> "QuizAttemptResponse":
        return cls(
            attempt_id=attempt.attempt_id,
            course_id=attempt.course_id,
            lesson_id=attempt.lesson_id,
            attempt_number=attempt.attempt_number,
            score_earned=attempt.score_earned,
            score_total=attempt.score_total,
            percentage=attempt.percentage,
            passing_score=attempt.passing_score,
            passed=attempt.passed,
            time_taken_seconds=attempt.time_taken_seconds,
            started_at=attempt.started_at,
            completed_at=attempt.completed_at,
            answers=[
                QuestionResultResponse(
                    question_id=r.question_id,
                    answer=list(r.answer) if isinstance(r.answer, tuple) else r.answer,
                    is_correct=r.is_correct,
                    points_earned=r.points_earned,
                    points_possible=r.points_possible,
                )
                for r in attempt.answers
            ],
        )


class QuizAttemptListResponse(BaseModel):
    items: list[QuizAttemptResponse]
    total: int
    best_percentage: int | None = None
