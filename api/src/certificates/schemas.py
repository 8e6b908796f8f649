"""Pydantic schemas for certificates."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from .models import Certificate


class RevokeCertificateRequest(BaseModel):
    reason: str = Field(..., min_length=3, max_length=500)


class CertificateResponse(BaseModel):
    """Certificate as seen by its owner."""

    certificate_number: str
    course_id: UUID
    student_name: str
    course_title: str
    instructor_name: str
    completion_date: date
    issued_at: datetime
    verification_url: str
    final_score: int | None = None
    grade: str
    total_hours: Decimal
    is_valid: bool
    revoked_at: datetime | None = None
    revoked_reason: str | None = None

    @classmethod
    def from_entity(cls, certificate: Certificate) -> "CertificateResponse":
        return cls(
            certificate_number=certificate.certificate_number,
            course_id=certificate.course_id,
            student_name=certificate.student_name,
            course_title=certificate.course_title,
            instructor_name=certificate.instructor_name,
            completion_date=certificate.completion_date,
            issued_at=certificate.issued_at,
            verification_url=certificate.verification_url,
            final_score=certificate.final_score,
            grade=certificate.grade,
            total_hours=certificate.total_hours,
            is_valid=certificate.is_valid,
            revoked_at=certificate.revoked_at,
            revoked_reason=certificate.revoked_reason,
        )


class CertificateListResponse(BaseModel):
    items: list[CertificateResponse]
    total: int


class CertificateVerificationResponse(BaseModel):
    """Public verification result (snapshotted fields only)."""

    valid: bool
    reason: str | None = None
    certificate_number: str | None = None
    student_name: str | None = None
    course_title: str | None = None
    instructor_name: str | None = None
    completion_date: date | None = None
    issued_at: datetime | None = None
    grade: str | None = None
    final_score: int | None = None
    total_hours: Decimal | None = None
    revoked_at: datetime | None = None
    revoked_reason: str | None = None
