"""Assistant context endpoint."""

from fastapi import APIRouter

from src.auth.dependencies import CurrentUser

from .dependencies import AssistantServiceDep
from .schemas import AssistantSnapshot


router = APIRouter(prefix="/v1/assistant", tags=["assistant"])


@router.get(
    "/context",
    response_model=AssistantSnapshot,
    summary="Progress snapshot for the chat assistant",
)
async def get_context(
    user: CurrentUser,
    service: AssistantServiceDep,
) -> AssistantSnapshot:
    return await service.build_snapshot(user.id)
