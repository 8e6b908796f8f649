"""Pydantic schemas for the authenticated identity."""

from uuid import UUID

from pydantic import BaseModel, Field

from src.auth.permissions import UserRole


class AuthenticatedUser(BaseModel):
    """Identity handed over by the identity provider (already verified)."""

    id: UUID = Field(description="User UUID")
    name: str = Field(default="", description="Display name")
    email: str | None = Field(default=None, description="Email address")
    role: UserRole = Field(default=UserRole.STUDENT, description="User role")
