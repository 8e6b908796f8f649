"""Curriculum tree: modules -> lessons -> optional quizzes.

Lessons are a tagged union over ``kind`` so a quiz lesson cannot exist
without its quiz definition. The tree is produced by the course editor
and stored as JSON next to the course row.

Lesson ids are globally unique strings: completion tracking stores flat
sets of lesson ids without module or course qualification.
"""

import re
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


if TYPE_CHECKING:
    from src.courses.models import Course


# Lessons per module assumed for courses published without a curriculum tree
LEGACY_LESSONS_PER_MODULE = 3

_DURATION_PATTERN = re.compile(r"^\d+(:\d{1,2}){0,2}$")


class LessonKind(str, Enum):
    """Lesson content kind."""

    VIDEO = "video"
    READING = "reading"
    QUIZ = "quiz"


class QuestionType(str, Enum):
    """Quiz question type."""

    SINGLE_CHOICE = "single-choice"
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    SHORT_TEXT = "short-text"


# Names used by older editor builds
_QUESTION_TYPE_ALIASES = {
    "single": QuestionType.SINGLE_CHOICE.value,
    "multiple": QuestionType.MULTIPLE_CHOICE.value,
    "text": QuestionType.SHORT_TEXT.value,
}

CHOICE_TYPES = frozenset(
    {QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE}
)


def parse_duration(value: int | str | None) -> int:
    """Normalize a lesson duration to seconds.

    Accepts seconds as an int or the editor's "MM:SS" / "HH:MM:SS" strings.

    >>> parse_duration("15:00")
    900
    >>> parse_duration("1:02:03")
    3723
    """
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not _DURATION_PATTERN.match(text):
        msg = f"Invalid duration: {value!r}"
        raise ValueError(msg)
    seconds = 0
    for part in text.split(":"):
        seconds = seconds * 60 + int(part)
    return seconds


# ==============================================================================
# Quiz Definition
# ==============================================================================


class AnswerOption(BaseModel):
    """Choice offered by a question."""

    id: str = Field(min_length=1)
    text: str
    is_correct: bool = Field(
        default=False, validation_alias=AliasChoices("is_correct", "isCorrect")
    )


class Question(BaseModel):
    """Quiz question.

    Choice questions are graded from their options' correctness flags,
    short-text questions against ``correct_answer``.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    type: QuestionType = QuestionType.SINGLE_CHOICE
    text: str
    points: int = Field(default=1, ge=0)
    options: list[AnswerOption] = Field(default_factory=list)
    correct_answer: str | None = Field(
        default=None, validation_alias=AliasChoices("correct_answer", "correctAnswer")
    )
    explanation: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: object) -> object:
        if isinstance(value, str):
            return _QUESTION_TYPE_ALIASES.get(value, value)
        return value

    @model_validator(mode="after")
    def check_correctness_definition(self) -> "Question":
        correct = sum(1 for option in self.options if option.is_correct)
        option_ids = [option.id for option in self.options]
        if len(set(option_ids)) != len(option_ids):
            msg = f"Question {self.id}: duplicate option ids"
            raise ValueError(msg)

        if self.type in (QuestionType.SINGLE_CHOICE, QuestionType.TRUE_FALSE):
            if correct != 1:
                msg = f"Question {self.id}: exactly one option must be correct"
                raise ValueError(msg)
        elif self.type == QuestionType.MULTIPLE_CHOICE:
            if correct < 1:
                msg = f"Question {self.id}: at least one option must be correct"
                raise ValueError(msg)
        elif not (self.correct_answer and self.correct_answer.strip()):
            msg = f"Question {self.id}: short-text questions need a reference answer"
            raise ValueError(msg)
        return self

    @property
    def correct_option_ids(self) -> frozenset[str]:
        return frozenset(option.id for option in self.options if option.is_correct)


class QuizDefinition(BaseModel):
    """Questions plus pass threshold embedded in a quiz lesson."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    questions: list[Question] = Field(min_length=1)
    passing_score: int = Field(
        default=70,
        ge=0,
        le=100,
        validation_alias=AliasChoices("passing_score", "passingScore"),
    )
    time_limit: int | None = Field(
        default=None,
        gt=0,
        description="Minutes",
        validation_alias=AliasChoices("time_limit", "timeLimit"),
    )

    @model_validator(mode="after")
    def check_unique_question_ids(self) -> "QuizDefinition":
        ids = [q.id for q in self.questions]
        if len(set(ids)) != len(ids):
            msg = "Duplicate question ids in quiz"
            raise ValueError(msg)
        return self

    def get_question(self, question_id: str) -> Question | None:
        return next((q for q in self.questions if q.id == question_id), None)

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)


# ==============================================================================
# Lessons and Modules
# ==============================================================================


class _LessonBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: str | None = None
    duration_seconds: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("duration_seconds", "duration"),
    )

    @field_validator("duration_seconds", mode="before")
    @classmethod
    def normalize_duration(cls, value: int | str | None) -> int:
        return parse_duration(value)


class VideoLesson(_LessonBase):
    kind: Literal["video"] = "video"
    video_url: str | None = Field(
        default=None, validation_alias=AliasChoices("video_url", "videoUrl")
    )


class ReadingLesson(_LessonBase):
    kind: Literal["reading"] = "reading"
    content: str | None = None


class QuizLesson(_LessonBase):
    kind: Literal["quiz"] = "quiz"
    quiz: QuizDefinition = Field(validation_alias=AliasChoices("quiz", "quizData"))


Lesson = Annotated[VideoLesson | ReadingLesson | QuizLesson, Field(discriminator="kind")]


class Module(BaseModel):
    """Ordered group of lessons; its id survives lesson edits."""

    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    description: str | None = None
    lessons: list[Lesson] = Field(default_factory=list)

    @field_validator("lessons", mode="before")
    @classmethod
    def accept_legacy_kind_key(cls, value: object) -> object:
        # Older editor payloads tag lessons with "type" instead of "kind"
        if not isinstance(value, list):
            return value
        return [
            {**item, "kind": item["type"]}
            if isinstance(item, dict) and "kind" not in item and "type" in item
            else item
            for item in value
        ]


class Curriculum(BaseModel):
    """Ordered modules of a course."""

    modules: list[Module] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_ids(self) -> "Curriculum":
        module_ids = [m.id for m in self.modules]
        if len(set(module_ids)) != len(module_ids):
            msg = "Duplicate module ids in curriculum"
            raise ValueError(msg)
        lesson_ids = [lesson.id for m in self.modules for lesson in m.lessons]
        if len(set(lesson_ids)) != len(lesson_ids):
            msg = "Duplicate lesson ids in curriculum"
            raise ValueError(msg)
        return self

    def iter_lessons(self):
        """Yield (module, lesson) pairs in curriculum order."""
        for module in self.modules:
            for lesson in module.lessons:
                yield module, lesson


# ==============================================================================
# Denominator and lookup
# ==============================================================================


def total_lesson_count(
    course: "Course",
    lessons_per_module: int = LEGACY_LESSONS_PER_MODULE,
) -> int:
    """Number of lessons progress is measured against.

    Uses the curriculum tree when present, otherwise falls back to
    ``module_count * lessons_per_module`` for legacy catalog entries.
    """
    if course.curriculum is not None:
        return sum(len(module.lessons) for module in course.curriculum.modules)
    return max(0, course.module_count) * lessons_per_module


def lesson_ids(course: "Course") -> frozenset[str]:
    """Lesson ids of the curriculum tree (empty for legacy courses)."""
    if course.curriculum is None:
        return frozenset()
    return frozenset(lesson.id for _, lesson in course.curriculum.iter_lessons())


def find_lesson(
    course: "Course", lesson_id: str
) -> tuple[Module, VideoLesson | ReadingLesson | QuizLesson] | None:
    """Return (module, lesson) for ``lesson_id`` or None when not in the course."""
    if course.curriculum is None:
        return None
    for module, lesson in course.curriculum.iter_lessons():
        if lesson.id == lesson_id:
            return module, lesson
    return None


def total_duration_seconds(course: "Course") -> int:
    if course.curriculum is None:
        return 0
    return sum(lesson.duration_seconds for _, lesson in course.curriculum.iter_lessons())


def quiz_lessons(course: "Course") -> list[QuizLesson]:
    if course.curriculum is None:
        return []
    return [
        lesson
        for _, lesson in course.curriculum.iter_lessons()
        if isinstance(lesson, QuizLesson)
    ]
