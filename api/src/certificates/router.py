"""Certificate API endpoints.

Provides routes for:
- Issuing a certificate for a completed course
- Listing my certificates
- Revocation (admin)
- Public verification by number (no authentication)
"""

from uuid import UUID

from fastapi import APIRouter, status

from src.auth.dependencies import AdminUser, CurrentUser

from .dependencies import CertificateServiceDep
from .schemas import (
    CertificateListResponse,
    CertificateResponse,
    CertificateVerificationResponse,
    RevokeCertificateRequest,
)


router = APIRouter(prefix="/v1/certificates", tags=["certificates"])
verify_router = APIRouter(prefix="/v1/verify", tags=["certificates"])


@router.get(
    "/me",
    response_model=CertificateListResponse,
    summary="List my certificates",
)
async def list_my_certificates(
    user: CurrentUser,
    service: CertificateServiceDep,
) -> CertificateListResponse:
    certificates = await service.list_user_certificates(user.id)
    items = [CertificateResponse.from_entity(c) for c in certificates]
    return CertificateListResponse(items=items, total=len(items))


@router.post(
    "/{course_id}",
    response_model=CertificateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue certificate",
)
async def issue_certificate(
    course_id: UUID,
    user: CurrentUser,
    service: CertificateServiceDep,
) -> CertificateResponse:
    """Issue the certificate once the enrollment is completed."""
    certificate = await service.issue(user, course_id)
    return CertificateResponse.from_entity(certificate)


@router.post(
    "/{certificate_number}/revoke",
    response_model=CertificateResponse,
    summary="Revoke certificate (admin)",
)
async def revoke_certificate(
    certificate_number: str,
    data: RevokeCertificateRequest,
    admin: AdminUser,
    service: CertificateServiceDep,
) -> CertificateResponse:
    certificate = await service.revoke(certificate_number, data.reason)
    return CertificateResponse.from_entity(certificate)


@verify_router.get(
    "/{certificate_number}",
    response_model=CertificateVerificationResponse,
    summary="Verify certificate",
)
async def verify_certificate(
    certificate_number: str,
    service: CertificateServiceDep,
) -> CertificateVerificationResponse:
    """Public endpoint: the certificate number is the credential."""
    return CertificateVerificationResponse(**await service.verify(certificate_number))
