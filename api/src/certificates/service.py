"""Certificate issuance service layer.

Business logic for:
- Issuing one certificate per completed (user, course)
- Public verification by certificate number
- Administrative revocation (records are never deleted)
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog
from fastapi import status

from src.config.settings import get_settings
from src.core.errors import DomainError, TransientStorageError
from src.courses.curriculum import quiz_lessons, total_duration_seconds
from src.notifications.models import (
    NotificationMetadata,
    NotificationPriority,
    NotificationType,
)
from src.progress.calculator import round_half_up

from .models import Certificate, generate_certificate_number, verification_url


if TYPE_CHECKING:
    from src.auth.schemas import AuthenticatedUser
    from src.config.settings import Settings
    from src.courses.models import Course
    from src.notifications.service import NotificationService
    from src.progress.service import ProgressService
    from src.quizzes.service import QuizService

    from .repository import CertificateRepository

logger = structlog.get_logger(__name__)

# Fresh numbers tried before giving up on a colliding index
NUMBER_ALLOCATION_ATTEMPTS = 5


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CertificateError(DomainError):
    """Base certificate error."""

    def __init__(self, message: str, code: str = "certificate_error"):
        super().__init__(message, code)


class CourseNotCompletedError(CertificateError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Course must be completed before certification"):
        super().__init__(message, "course_not_completed")


class AlreadyIssuedError(CertificateError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "A certificate was already issued for this course"):
        super().__init__(message, "already_issued")


class CertificateNotFoundError(CertificateError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Certificate not found"):
        super().__init__(message, "certificate_not_found")


class CertificateRevokedError(CertificateError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Certificate is already revoked"):
        super().__init__(message, "certificate_revoked")


# ==============================================================================
# Certificate Service
# ==============================================================================


class CertificateService:
    """Service for certificate issuance and verification."""

    def __init__(
        self,
        repository: "CertificateRepository",
        progress_service: "ProgressService",
        quiz_service: "QuizService | None" = None,
        notification_service: "NotificationService | None" = None,
        settings: "Settings | None" = None,
    ):
        self.repository = repository
        self.progress_service = progress_service
        self.quiz_service = quiz_service
        self.notification_service = notification_service
        self.settings = settings or get_settings()

    # ==========================================================================
    # Issuance
    # ==========================================================================

    async def issue(self, user: "AuthenticatedUser", course_id: UUID) -> Certificate:
        """Issue the certificate for a completed course.

        Raises:
            CourseNotCompletedError: Enrollment missing or not completed
            AlreadyIssuedError: The (user, course) slot is already claimed.
                An earlier claim left without a number index is indexed first.
        """
        enrollment = await self.progress_service.get_enrollment(user.id, course_id)
        if enrollment is None or not enrollment.is_completed:
            raise CourseNotCompletedError

        course = await self.progress_service.course_service.require_course(course_id)
        final_score = await self._final_score(user.id, course)
        completed_at = enrollment.completed_at or datetime.now(UTC)

        number = generate_certificate_number()
        certificate = Certificate(
            user_id=user.id,
            course_id=course_id,
            certificate_number=number,
            student_name=user.name or user.email or "Student",
            course_title=course.title,
            instructor_name=course.instructor_name,
            completion_date=completed_at.date(),
            verification_url=verification_url(self.settings.public_base_url, number),
            final_score=final_score,
            total_hours=self._total_hours(course),
        )

        if not await self.repository.claim(certificate):
            existing = await self.repository.get(user.id, course_id)
            if existing is not None:
                await self._ensure_indexed(existing)
            logger.info(
                "certificate_already_issued",
                user_id=str(user.id),
                course_id=str(course_id),
            )
            raise AlreadyIssuedError

        await self._allocate_number(certificate)

        logger.info(
            "certificate_issued",
            user_id=str(user.id),
            course_id=str(course_id),
            certificate_number=certificate.certificate_number,
            grade=certificate.grade,
        )

        await self._notify_issued(certificate)
        return certificate

    async def _ensure_indexed(self, certificate: Certificate) -> None:
        """Finish the number index of a claim whose issuance was interrupted.

        A claim is written before its number is indexed, so a failure in
        between leaves a certificate that cannot be verified. Later requests
        for the same (user, course) complete it.
        """
        indexed = await self.repository.get_by_number(certificate.certificate_number)
        if indexed is not None and indexed.certificate_id == certificate.certificate_id:
            return

        logger.warning(
            "certificate_index_repaired",
            user_id=str(certificate.user_id),
            course_id=str(certificate.course_id),
            certificate_number=certificate.certificate_number,
        )
        await self._allocate_number(certificate)

    async def _allocate_number(self, certificate: Certificate) -> None:
        """Index the number, regenerating it on a (rare) collision."""
        for _ in range(NUMBER_ALLOCATION_ATTEMPTS):
            if await self.repository.index_number(certificate):
                return
            logger.warning(
                "certificate_number_collision",
                certificate_number=certificate.certificate_number,
            )
            certificate.certificate_number = generate_certificate_number()
            certificate.verification_url = verification_url(
                self.settings.public_base_url, certificate.certificate_number
            )
            await self.repository.renumber(certificate)

        msg = "Could not allocate a unique certificate number"
        raise TransientStorageError(msg)

    async def _final_score(self, user_id: UUID, course: "Course") -> int | None:
        """Mean of best attempt percentages over the course quizzes.

        Quizzes without any attempt count as 0.
        """
        quizzes = quiz_lessons(course)
        if not quizzes or self.quiz_service is None:
            return None

        total = 0
        for lesson in quizzes:
            best = await self.quiz_service.best_attempt(user_id, lesson.id)
            total += best.percentage if best else 0
        return round_half_up(Decimal(total) / Decimal(len(quizzes)))

    @staticmethod
    def _total_hours(course: "Course") -> Decimal:
        hours = Decimal(total_duration_seconds(course)) / Decimal(3600)
        return hours.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)

    async def _notify_issued(self, certificate: Certificate) -> None:
        if self.notification_service is None:
            return
        try:
            await self.notification_service.notify(
                certificate.user_id,
                title="Certificate issued",
                message=(
                    f"Your certificate for {certificate.course_title} is ready "
                    f"({certificate.certificate_number})."
                ),
                notification_type=NotificationType.CERTIFICATE,
                link=certificate.verification_url,
                priority=NotificationPriority.HIGH,
                metadata=NotificationMetadata(
                    course_id=certificate.course_id,
                    certificate_number=certificate.certificate_number,
                ),
            )
        except TransientStorageError:
            logger.warning("notification_failed", user_id=str(certificate.user_id))

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_certificate(self, user_id: UUID, course_id: UUID) -> Certificate | None:
        return await self.repository.get(user_id, course_id)

    async def list_user_certificates(self, user_id: UUID) -> list[Certificate]:
        certificates = await self.repository.list_for_user(user_id)
        return sorted(certificates, key=lambda c: c.issued_at, reverse=True)

    async def verify(self, certificate_number: str) -> dict[str, Any]:
        """Public verification. Never exposes internal identifiers."""
        certificate = await self.repository.get_by_number(certificate_number.strip())
        if certificate is None:
            return {"valid": False, "reason": "Certificate not found"}

        if not certificate.is_valid:
            return {
                "valid": False,
                "reason": "Certificate has been revoked",
                "certificate_number": certificate.certificate_number,
                "revoked_at": certificate.revoked_at,
                "revoked_reason": certificate.revoked_reason,
            }

        return {"valid": True, **certificate.public_fields()}

    # ==========================================================================
    # Revocation
    # ==========================================================================

    async def revoke(self, certificate_number: str, reason: str) -> Certificate:
        certificate = await self.repository.get_by_number(certificate_number)
        if certificate is None:
            raise CertificateNotFoundError
        if not certificate.is_valid:
            raise CertificateRevokedError

        now = datetime.now(UTC)
        if not await self.repository.revoke(certificate, now, reason):
            raise CertificateRevokedError

        certificate.is_valid = False
        certificate.revoked_at = now
        certificate.revoked_reason = reason

        logger.info(
            "certificate_revoked",
            certificate_number=certificate_number,
            user_id=str(certificate.user_id),
            reason=reason,
        )
        return certificate
