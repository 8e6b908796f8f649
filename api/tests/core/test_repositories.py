"""Tests for the Cassandra repositories against a mocked session."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from cassandra import OperationTimedOut, WriteTimeout
from cassandra.cluster import Session

from src.certificates.models import Certificate
from src.certificates.repository import CertificateRepository
from src.core.errors import TransientStorageError
from src.notifications.models import NotificationType, create_notification
from src.notifications.repository import NotificationRepository
from src.progress.models import Enrollment, LessonProgress
from src.progress.repository import EnrollmentRepository


def _lwt_result(applied: bool, row=None) -> Mock:
    result = Mock()
    result.was_applied = applied
    result.one = Mock(return_value=row)
    return result


@pytest.fixture
def mock_session():
    """Mock Cassandra session; prepared statements keep their CQL."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda cql: Mock(query_string=cql))
    # cassandra-asyncio-driver
    session.aexecute = AsyncMock(return_value=_lwt_result(True))
    return session


def _make(repository_class, session):
    repository = repository_class(session=session, keyspace="test_keyspace")
    repository.retry_backoff = 0
    return repository


def _executed_cql(session) -> list[str]:
    return [call.args[0].query_string for call in session.aexecute.await_args_list]


def _certificate(**overrides) -> Certificate:
    values = {
        "user_id": uuid4(),
        "course_id": uuid4(),
        "certificate_number": "CERT-0A1B2C3D-LQ9Z8K2M",
        "student_name": "Marie Joseph",
        "course_title": "Intro to Web Development",
        "instructor_name": "Rose Celestin",
        "completion_date": datetime(2026, 3, 1, tzinfo=UTC).date(),
        "verification_url": "https://lekol.test/verify/CERT-0A1B2C3D-LQ9Z8K2M",
        "total_hours": Decimal("1.5"),
    }
    values.update(overrides)
    return Certificate(**values)


class TestExecuteRetries:
    """Transient driver failures on the shared execute path."""

    @pytest.mark.asyncio
    async def test_idempotent_query_is_retried(self, mock_session):
        repository = _make(EnrollmentRepository, mock_session)
        row = Mock(course_id=uuid4(), user_id=uuid4())
        mock_session.aexecute.side_effect = [OperationTimedOut(), _lwt_result(True, None)]

        assert await repository.get(row.user_id, row.course_id) is None
        assert mock_session.aexecute.await_count == 2

    @pytest.mark.asyncio
    async def test_idempotent_query_gives_up(self, mock_session):
        repository = _make(EnrollmentRepository, mock_session)
        mock_session.aexecute.side_effect = OperationTimedOut()

        with pytest.raises(TransientStorageError):
            await repository.get(uuid4(), uuid4())

        assert mock_session.aexecute.await_count == repository.retry_attempts

    @pytest.mark.asyncio
    async def test_conditional_write_is_not_retried(self, mock_session):
        repository = _make(EnrollmentRepository, mock_session)
        mock_session.aexecute.side_effect = WriteTimeout("timeout")

        with pytest.raises(TransientStorageError):
            await repository.compare_and_set(Enrollment(uuid4(), uuid4(), version=1), 0)

        assert mock_session.aexecute.await_count == 1


class TestEnrollmentRepository:
    @pytest.mark.asyncio
    async def test_create_writes_lookup_row(self, mock_session):
        repository = _make(EnrollmentRepository, mock_session)

        created = await repository.create(Enrollment(uuid4(), uuid4()))

        assert created
        insert, lookup = _executed_cql(mock_session)
        assert "IF NOT EXISTS" in insert
        assert "enrollments_by_user" in lookup

    @pytest.mark.asyncio
    async def test_duplicate_create_rewrites_lookup_row(self, mock_session):
        repository = _make(EnrollmentRepository, mock_session)
        original = datetime(2026, 1, 5, 9, 30)
        mock_session.aexecute.return_value = _lwt_result(False, Mock(enrolled_at=original))
        enrollment = Enrollment(uuid4(), uuid4())

        assert not await repository.create(enrollment)

        insert, lookup = _executed_cql(mock_session)
        assert "IF NOT EXISTS" in insert
        assert "enrollments_by_user" in lookup
        assert mock_session.aexecute.await_args.args[1] == [
            enrollment.user_id,
            enrollment.course_id,
            original,
        ]

    @pytest.mark.asyncio
    async def test_list_for_course_reads_one_partition(self, mock_session):
        repository = _make(EnrollmentRepository, mock_session)
        course_id = uuid4()
        mock_session.aexecute.return_value = []

        assert await repository.list_for_course(course_id) == []

        call = mock_session.aexecute.await_args
        assert "WHERE course_id = ?" in call.args[0].query_string
        assert call.args[1] == [course_id]

    @pytest.mark.asyncio
    async def test_save_lesson_progress_upserts_row(self, mock_session):
        repository = _make(EnrollmentRepository, mock_session)
        progress = LessonProgress(
            uuid4(), uuid4(), "m1-l2", module_id="m1", last_position_seconds=95, notes="Grid"
        )

        await repository.save_lesson_progress(progress)

        call = mock_session.aexecute.await_args
        assert "INSERT INTO test_keyspace.lesson_progress" in call.args[0].query_string
        assert "IF NOT EXISTS" not in call.args[0].query_string
        assert call.args[1][:5] == [
            progress.user_id,
            progress.course_id,
            "m1-l2",
            "m1",
            95,
        ]
        assert call.args[1][7] == "Grid"

    @pytest.mark.asyncio
    async def test_missing_lesson_progress(self, mock_session):
        repository = _make(EnrollmentRepository, mock_session)
        mock_session.aexecute.return_value = _lwt_result(True, None)

        assert await repository.get_lesson_progress(uuid4(), uuid4(), "m1-l1") is None

    @pytest.mark.asyncio
    async def test_compare_and_set_passes_expected_version(self, mock_session):
        repository = _make(EnrollmentRepository, mock_session)
        enrollment = Enrollment(uuid4(), uuid4(), version=5, progress=40)
        mock_session.aexecute.return_value = _lwt_result(False)

        assert not await repository.compare_and_set(enrollment, 4)

        call = mock_session.aexecute.await_args
        assert "IF version = ?" in call.args[0].query_string
        assert call.args[1][-1] == 4
        assert call.args[1][6] == 5


class TestCertificateRepository:
    @pytest.mark.asyncio
    async def test_index_number_collision(self, mock_session):
        repository = _make(CertificateRepository, mock_session)
        mock_session.aexecute.return_value = _lwt_result(False, Mock(certificate_id=uuid4()))

        assert not await repository.index_number(_certificate())

    @pytest.mark.asyncio
    async def test_index_number_replay_of_own_insert(self, mock_session):
        repository = _make(CertificateRepository, mock_session)
        certificate = _certificate()
        mock_session.aexecute.return_value = _lwt_result(
            False, Mock(certificate_id=certificate.certificate_id)
        )

        assert await repository.index_number(certificate)

    @pytest.mark.asyncio
    async def test_revoke_already_revoked(self, mock_session):
        repository = _make(CertificateRepository, mock_session)
        mock_session.aexecute.return_value = _lwt_result(False)

        revoked = await repository.revoke(_certificate(), datetime.now(UTC), "Duplicate")

        assert not revoked
        assert mock_session.aexecute.await_count == 1
        assert "IF is_valid = true" in _executed_cql(mock_session)[0]


class TestNotificationRepository:
    @pytest.mark.asyncio
    async def test_insert_without_expiry_has_no_ttl(self, mock_session):
        repository = _make(NotificationRepository, mock_session)
        notification = create_notification(uuid4(), NotificationType.SYSTEM, "Hi", "There")

        await repository.insert(notification)

        assert mock_session.aexecute.await_args.args[1][-1] == 0

    @pytest.mark.asyncio
    async def test_insert_with_expiry_uses_remaining_ttl(self, mock_session):
        repository = _make(NotificationRepository, mock_session)
        notification = create_notification(
            uuid4(),
            NotificationType.REMINDER,
            "Keep going",
            "You are halfway there",
            expires_at=datetime.now(UTC) + timedelta(hours=1),
        )

        await repository.insert(notification)

        ttl = mock_session.aexecute.await_args.args[1][-1]
        assert 3500 < ttl <= 3600

    @pytest.mark.asyncio
    async def test_mark_read_of_missing_row(self, mock_session):
        repository = _make(NotificationRepository, mock_session)
        mock_session.aexecute.return_value = _lwt_result(False)
        notification = create_notification(uuid4(), NotificationType.SYSTEM, "Hi", "There")

        assert not await repository.mark_read(notification, datetime.now(UTC))
        assert "IF EXISTS" in _executed_cql(mock_session)[0]
