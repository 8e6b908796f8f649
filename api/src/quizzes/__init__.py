"""Quiz scoring and numbered attempts."""

from src.quizzes.models import QUIZZES_TABLES_CQL, QuizAttempt
from src.quizzes.scoring import QuizAnswer, ScoreResult, score_submission


__all__ = [
    "QUIZZES_TABLES_CQL",
    "QuizAnswer",
    "QuizAttempt",
    "ScoreResult",
    "score_submission",
]
