"""Quiz submission scoring.

A submission is validated as a whole before any question is scored, so a
corrupt submission never yields a partial result.

Grading rules:
- single-choice / true-false: the selected option is flagged correct
- multiple-choice: the selected set equals the correct set exactly
  (all or nothing, no partial credit)
- short-text: trimmed, case-insensitive match with the reference answer
- unanswered questions earn 0 points
"""

from collections.abc import Sequence
from dataclasses import dataclass

from pydantic import BaseModel, Field

from src.core.errors import MalformedSubmissionError
from src.courses.curriculum import Question, QuestionType, QuizDefinition
from src.progress.calculator import percentage_of


class QuizAnswer(BaseModel):
    """Answer to one question.

    ``answer`` is an option id for single-choice and true-false, a list of
    option ids for multiple-choice, and free text for short-text.
    """

    question_id: str = Field(min_length=1)
    answer: str | list[str]


@dataclass(frozen=True)
class QuestionResult:
    question_id: str
    answer: str | tuple[str, ...] | None
    is_correct: bool
    points_earned: int
    points_possible: int


@dataclass(frozen=True)
class ScoreResult:
    results: tuple[QuestionResult, ...]
    score_earned: int
    score_total: int
    percentage: int
    passing_score: int

    @property
    def passed(self) -> bool:
        return self.percentage >= self.passing_score


def _normalize_text(value: str) -> str:
    return value.strip().casefold()


def validate_submission(
    quiz: QuizDefinition, answers: Sequence[QuizAnswer]
) -> dict[str, QuizAnswer]:
    """Check ids and answer shapes; return answers keyed by question id.

    Raises:
        MalformedSubmissionError: Unknown or duplicate question ids, or an
            answer whose shape does not fit the question type
    """
    by_id: dict[str, QuizAnswer] = {}
    for answer in answers:
        question = quiz.get_question(answer.question_id)
        if question is None:
            msg = f"Unknown question '{answer.question_id}'"
            raise MalformedSubmissionError(msg)
        if answer.question_id in by_id:
            msg = f"Question '{answer.question_id}' answered more than once"
            raise MalformedSubmissionError(msg)
        _check_shape(question, answer)
        by_id[answer.question_id] = answer
    return by_id


def _check_shape(question: Question, answer: QuizAnswer) -> None:
    option_ids = {option.id for option in question.options}

    if question.type == QuestionType.MULTIPLE_CHOICE:
        if not isinstance(answer.answer, list):
            msg = f"Question '{question.id}' expects a list of option ids"
            raise MalformedSubmissionError(msg)
        if len(set(answer.answer)) != len(answer.answer):
            msg = f"Question '{question.id}' selects an option twice"
            raise MalformedSubmissionError(msg)
        unknown = set(answer.answer) - option_ids
    elif isinstance(answer.answer, list):
        msg = f"Question '{question.id}' expects a single answer"
        raise MalformedSubmissionError(msg)
    elif question.type == QuestionType.SHORT_TEXT:
        return
    else:
        unknown = {answer.answer} - option_ids

    if unknown:
        msg = f"Question '{question.id}' has no option {sorted(unknown)[0]!r}"
        raise MalformedSubmissionError(msg)


def is_correct(question: Question, answer: str | list[str]) -> bool:
    if question.type == QuestionType.MULTIPLE_CHOICE:
        return frozenset(answer) == question.correct_option_ids
    if question.type == QuestionType.SHORT_TEXT:
        return _normalize_text(answer) == _normalize_text(question.correct_answer or "")
    return answer in question.correct_option_ids


def score_submission(quiz: QuizDefinition, answers: Sequence[QuizAnswer]) -> ScoreResult:
    """Score ``answers`` against ``quiz``.

    Pure and deterministic: the same submission always yields the same
    totals, percentage and pass flag.
    """
    by_id = validate_submission(quiz, answers)

    results = []
    for question in quiz.questions:
        answer = by_id.get(question.id)
        if answer is None:
            results.append(
                QuestionResult(
                    question_id=question.id,
                    answer=None,
                    is_correct=False,
                    points_earned=0,
                    points_possible=question.points,
                )
            )
            continue

        correct = is_correct(question, answer.answer)
        given = tuple(answer.answer) if isinstance(answer.answer, list) else answer.answer
        results.append(
            QuestionResult(
                question_id=question.id,
                answer=given,
                is_correct=correct,
                points_earned=question.points if correct else 0,
                points_possible=question.points,
            )
        )

    earned = sum(r.points_earned for r in results)
    total = sum(r.points_possible for r in results)
    return ScoreResult(
        results=tuple(results),
        score_earned=earned,
        score_total=total,
        percentage=percentage_of(earned, total),
        passing_score=quiz.passing_score,
    )
