"""FastAPI dependencies for the assistant context."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import AssistantContextService


async def get_assistant_service(request: Request) -> AssistantContextService:
    service = getattr(request.app.state, "assistant_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Assistant context not available",
        )
    return service


AssistantServiceDep = Annotated[AssistantContextService, Depends(get_assistant_service)]
