# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Cassandra access for courses and lesson id ownership."""

from datetime import UTC, datetime
from uuid import UUID

from src.core.database.repository import CassandraRepository

from .models import Course


class CourseRepository(CassandraRepository):
    """Courses table plus the global lesson id registry."""

    def _prepare_statements(self) -> None:
        self._upsert_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.courses
            (id, title, slug, description, category, level, language, price,
             currency, tags, instructor_id, instructor_name, status, module_count,
             curriculum, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_course = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.courses WHERE id = ?
        """)

        self._list_courses = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.courses
        """)

        self._claim_lesson = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lesson_owners (lesson_id, course_id, claimed_at)
            VALUES (?, ?, ?)
            IF NOT EXISTS
        """)

        self._release_lesson = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.lesson_owners
            WHERE lesson_id = ?
            IF course_id = ?
        """)

    async def save(self, course: Course) -> None:
        """Insert or overwrite a course row (idempotent upsert)."""
        await self._execute(
            self._upsert_course,
            [
                course.id,
                course.title,
                course.slug,
                course.description,
                course.category,
                course.level,
                course.language,
                course.price,
                course.currency,
                course.tags,
                course.instructor_id,
                course.instructor_name,
                course.status,
                course.module_count,
                course.curriculum_json(),
                course.created_at,
                course.updated_at,
            ],
            idempotent=True,
        )

    async def get(self, course_id: UUID) -> Course | None:
        result = await self._execute(self._get_course, [course_id], idempotent=True)
        row = result.one()
        return Course.from_row(row) if row else None

    async def list_all(self) -> list[Course]:
        rows = await self._execute(self._list_courses, idempotent=True)
        return [Course.from_row(row) for row in rows]

    async def claim_lesson(self, lesson_id: str, course_id: UUID) -> UUID:
        """Claim ``lesson_id`` for ``course_id``.

        Returns the owning course id, which differs from ``course_id`` when
        another course already holds the lesson id.
        """
        result = await self._execute(
            self._claim_lesson,
            [lesson_id, course_id, datetime.now(UTC)],
        )
        if self._was_applied(result):
            return course_id
        return result.one().course_id

    async def release_lesson(self, lesson_id: str, course_id: UUID) -> None:
        """Release a lesson id, only if ``course_id`` still owns it."""
        await self._execute(self._release_lesson, [lesson_id, course_id])
