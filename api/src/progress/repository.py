# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Cassandra access for enrollments and per-lesson playback progress."""

from datetime import datetime
from uuid import UUID

from src.core.database.repository import CassandraRepository

from .models import Enrollment, LessonProgress


class EnrollmentRepository(CassandraRepository):
    """Enrollment rows, guarded by lightweight transactions."""

    def _prepare_statements(self) -> None:
        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (course_id, user_id, status, enrolled_at, completed_at, progress,
             lessons_completed, lessons_total, completed_lessons, version,
             last_accessed_at, last_lesson_id, payment_amount, payment_currency,
             transaction_id, payment_method, paid_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._insert_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_user
            (user_id, course_id, enrolled_at)
            VALUES (?, ?, ?)
        """)

        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE course_id = ? AND user_id = ?
        """)

        self._list_for_course = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE course_id = ?
        """)

        self._list_user_course_ids = self.session.prepare(f"""
            SELECT course_id FROM {self.keyspace}.enrollments_by_user
            WHERE user_id = ?
        """)

        self._compare_and_set = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET status = ?, completed_at = ?, progress = ?, lessons_completed = ?,
                lessons_total = ?, completed_lessons = ?, version = ?
            WHERE course_id = ? AND user_id = ?
            IF version = ?
        """)

        self._upsert_lesson_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lesson_progress
            (user_id, course_id, lesson_id, module_id, last_position_seconds,
             duration_seconds, watch_time_seconds, notes, started_at, last_accessed_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_lesson_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_progress
            WHERE user_id = ? AND course_id = ? AND lesson_id = ?
        """)

        self._list_lesson_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_progress
            WHERE user_id = ? AND course_id = ?
        """)

        # Access stamps only touch columns the conditional update never writes
        self._touch = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET last_accessed_at = ?, last_lesson_id = ?
            WHERE course_id = ? AND user_id = ?
        """)

    async def create(self, enrollment: Enrollment) -> bool:
        """Insert a new enrollment.

        Returns:
            False when the (course, user) pair already has a row. The
            by-user lookup row is written in both cases.
        """
        result = await self._execute(
            self._insert_enrollment,
            [
                enrollment.course_id,
                enrollment.user_id,
                enrollment.status,
                enrollment.enrolled_at,
                enrollment.completed_at,
                enrollment.progress,
                enrollment.lessons_completed,
                enrollment.lessons_total,
                enrollment.completed_lessons,
                enrollment.version,
                enrollment.last_accessed_at,
                enrollment.last_lesson_id,
                enrollment.payment_amount,
                enrollment.payment_currency,
                enrollment.transaction_id,
                enrollment.payment_method,
                enrollment.paid_at,
            ],
        )
        applied = self._was_applied(result)
        enrolled_at = enrollment.enrolled_at
        if not applied:
            # Rewriting the lookup on a duplicate repairs a create that stopped
            # between the two inserts
            existing = result.one()
            if existing is not None and existing.enrolled_at is not None:
                enrolled_at = existing.enrolled_at

        await self._execute(
            self._insert_by_user,
            [enrollment.user_id, enrollment.course_id, enrolled_at],
            idempotent=True,
        )
        return applied

    async def get(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        result = await self._execute(
            self._get_enrollment, [course_id, user_id], idempotent=True
        )
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def list_for_user(self, user_id: UUID) -> list[Enrollment]:
        rows = await self._execute(self._list_user_course_ids, [user_id], idempotent=True)
        enrollments = []
        for row in rows:
            enrollment = await self.get(user_id, row.course_id)
            if enrollment is not None:
                enrollments.append(enrollment)
        return enrollments

    async def list_for_course(self, course_id: UUID) -> list[Enrollment]:
        """Every enrollment of a course (a single partition)."""
        rows = await self._execute(self._list_for_course, [course_id], idempotent=True)
        return [Enrollment.from_row(row) for row in rows]

    async def compare_and_set(self, enrollment: Enrollment, expected_version: int) -> bool:
        """Write the mutable state if the stored version still matches."""
        result = await self._execute(
            self._compare_and_set,
            [
                enrollment.status,
                enrollment.completed_at,
                enrollment.progress,
                enrollment.lessons_completed,
                enrollment.lessons_total,
                enrollment.completed_lessons,
                enrollment.version,
                enrollment.course_id,
                enrollment.user_id,
                expected_version,
            ],
        )
        return self._was_applied(result)

    async def touch(
        self, user_id: UUID, course_id: UUID, lesson_id: str, accessed_at: datetime
    ) -> None:
        await self._execute(
            self._touch,
            [accessed_at, lesson_id, course_id, user_id],
            idempotent=True,
        )

    # --------------------------------------------------------------------------
    # Lesson progress
    # --------------------------------------------------------------------------

    async def get_lesson_progress(
        self, user_id: UUID, course_id: UUID, lesson_id: str
    ) -> LessonProgress | None:
        result = await self._execute(
            self._get_lesson_progress, [user_id, course_id, lesson_id], idempotent=True
        )
        row = result.one()
        return LessonProgress.from_row(row) if row else None

    async def list_lesson_progress(
        self, user_id: UUID, course_id: UUID
    ) -> list[LessonProgress]:
        rows = await self._execute(
            self._list_lesson_progress, [user_id, course_id], idempotent=True
        )
        return [LessonProgress.from_row(row) for row in rows]

    async def save_lesson_progress(self, progress: LessonProgress) -> None:
        """Upsert the whole row (last writer wins)."""
        await self._execute(
            self._upsert_lesson_progress,
            [
                progress.user_id,
                progress.course_id,
                progress.lesson_id,
                progress.module_id,
                progress.last_position_seconds,
                progress.duration_seconds,
                progress.watch_time_seconds,
                progress.notes,
                progress.started_at,
                progress.last_accessed_at,
            ],
            idempotent=True,
        )
