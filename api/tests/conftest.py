"""Shared fixtures: services over in-memory repositories and an HTTP client."""

import os
import tempfile
from decimal import Decimal


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="lekol-alez-logs-"))
os.environ.setdefault("LOG_FORMAT", "json")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from factories import make_user
from fakes import (
    FakeCertificateRepository,
    FakeCourseRepository,
    FakeEnrollmentRepository,
    FakeNotificationRepository,
    FakeQuizAttemptRepository,
)
from src.assistant.service import AssistantContextService
from src.auth.permissions import UserRole
from src.auth.schemas import AuthenticatedUser
from src.certificates.service import CertificateService
from src.config.settings import Settings
from src.courses.curriculum import Curriculum
from src.courses.models import ContentStatus, Course
from src.courses.service import CourseService
from src.notifications.service import NotificationService
from src.progress.service import ProgressService
from src.quizzes.service import QuizService


# ==============================================================================
# Users
# ==============================================================================


@pytest.fixture
def student() -> AuthenticatedUser:
    return make_user(UserRole.STUDENT, "Marie Joseph")


@pytest.fixture
def other_student() -> AuthenticatedUser:
    return make_user(UserRole.STUDENT, "Jean Baptiste")


@pytest.fixture
def instructor() -> AuthenticatedUser:
    return make_user(UserRole.INSTRUCTOR, "Rose Celestin")


@pytest.fixture
def admin() -> AuthenticatedUser:
    return make_user(UserRole.ADMIN, "Admin")


# ==============================================================================
# Repositories and services
# ==============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="testing",
        progress_cas_retries=3,
        quiz_attempt_retries=3,
        public_base_url="https://lekol.test",
    )


@pytest.fixture
def course_repo() -> FakeCourseRepository:
    return FakeCourseRepository()


@pytest.fixture
def enrollment_repo() -> FakeEnrollmentRepository:
    return FakeEnrollmentRepository()


@pytest.fixture
def quiz_repo() -> FakeQuizAttemptRepository:
    return FakeQuizAttemptRepository()


@pytest.fixture
def certificate_repo() -> FakeCertificateRepository:
    return FakeCertificateRepository()


@pytest.fixture
def notification_repo() -> FakeNotificationRepository:
    return FakeNotificationRepository()


@pytest.fixture
def notification_service(notification_repo) -> NotificationService:
    return NotificationService(notification_repo)


@pytest.fixture
def course_service(course_repo, settings) -> CourseService:
    return CourseService(course_repo, settings)


@pytest.fixture
def progress_service(
    enrollment_repo, course_service, notification_service, settings
) -> ProgressService:
    return ProgressService(
        enrollment_repo,
        course_service,
        notification_service=notification_service,
        settings=settings,
    )


@pytest.fixture
def quiz_service(quiz_repo, progress_service, notification_service, settings) -> QuizService:
    return QuizService(
        quiz_repo,
        progress_service,
        notification_service=notification_service,
        settings=settings,
    )


@pytest.fixture
def certificate_service(
    certificate_repo, progress_service, quiz_service, notification_service, settings
) -> CertificateService:
    return CertificateService(
        certificate_repo,
        progress_service,
        quiz_service=quiz_service,
        notification_service=notification_service,
        settings=settings,
    )


@pytest.fixture
def assistant_service(course_service, progress_service) -> AssistantContextService:
    return AssistantContextService(course_service, progress_service)


@pytest.fixture
def make_course(course_repo, instructor):
    """Seed a course directly in the fake catalog."""

    def _make(
        curriculum: Curriculum | None = None,
        module_count: int = 0,
        price: Decimal = Decimal(0),
        currency: str = "USD",
        status: ContentStatus = ContentStatus.PUBLISHED,
        title: str = "Intro to Web Development",
        owner: AuthenticatedUser | None = None,
        **kwargs,
    ) -> Course:
        owner = owner or instructor
        return course_repo.add(
            Course(
                title=title,
                curriculum=curriculum,
                module_count=module_count,
                price=price,
                currency=currency,
                status=status.value,
                instructor_id=owner.id,
                instructor_name=owner.name,
                **kwargs,
            )
        )

    return _make


# ==============================================================================
# HTTP
# ==============================================================================


@pytest.fixture
def app(
    course_service,
    progress_service,
    quiz_service,
    certificate_service,
    notification_service,
    assistant_service,
):
    from src.main import create_app

    application = create_app()
    application.state.course_service = course_service
    application.state.progress_service = progress_service
    application.state.quiz_service = quiz_service
    application.state.certificate_service = certificate_service
    application.state.notification_service = notification_service
    application.state.assistant_service = assistant_service
    return application


@pytest.fixture
def client(app) -> TestClient:
    """Client without lifespan: services come from the fixtures above."""
    return TestClient(app)
