"""Quiz submission API endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from src.auth.dependencies import CurrentUser

from .dependencies import QuizServiceDep
from .schemas import QuizAttemptListResponse, QuizAttemptResponse, SubmitQuizRequest


router = APIRouter(prefix="/v1/quizzes", tags=["quizzes"])


@router.post(
    "/{course_id}/{lesson_id}/attempts",
    response_model=QuizAttemptResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit quiz attempt",
)
async def submit_attempt(
    course_id: UUID,
    lesson_id: str,
    data: SubmitQuizRequest,
    user: CurrentUser,
    service: QuizServiceDep,
) -> QuizAttemptResponse:
    """Score a submission; a passing attempt completes the lesson."""
    attempt = await service.submit(
        user.id, course_id, lesson_id, data.answers, started_at=data.started_at
    )
    return QuizAttemptResponse.from_entity(attempt)


@router.get(
    "/{course_id}/{lesson_id}/attempts",
    response_model=QuizAttemptListResponse,
    summary="List my attempts",
)
async def list_attempts(
    course_id: UUID,
    lesson_id: str,
    user: CurrentUser,
    service: QuizServiceDep,
) -> QuizAttemptListResponse:
    attempts = [
        a for a in await service.list_attempts(user.id, lesson_id) if a.course_id == course_id
    ]
    best = max((a.percentage for a in attempts), default=None)
    return QuizAttemptListResponse(
        items=[QuizAttemptResponse.from_entity(a) for a in attempts],
        total=len(attempts),
        best_percentage=best,
    )
