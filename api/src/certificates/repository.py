# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Cassandra access for certificates."""

from datetime import datetime
from uuid import UUID

from src.core.database.repository import CassandraRepository

from .models import Certificate


_COLUMNS = (
    "certificate_id, certificate_number, user_id, course_id, student_name, "
    "course_title, instructor_name, completion_date, issued_at, verification_url, "
    "final_score, grade, total_hours, is_valid, revoked_at, revoked_reason"
)
_PLACEHOLDERS = ", ".join("?" * 16)


class CertificateRepository(CassandraRepository):
    """Certificate claims and the public number index."""

    def _prepare_statements(self) -> None:
        self._claim = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates ({_COLUMNS})
            VALUES ({_PLACEHOLDERS})
            IF NOT EXISTS
        """)

        self._index_number = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_number ({_COLUMNS})
            VALUES ({_PLACEHOLDERS})
            IF NOT EXISTS
        """)

        self._renumber = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates
            SET certificate_number = ?, verification_url = ?
            WHERE user_id = ? AND course_id = ?
        """)

        self._get = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates
            WHERE user_id = ? AND course_id = ?
        """)

        self._list_for_user = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates
            WHERE user_id = ?
        """)

        self._get_by_number = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates_by_number
            WHERE certificate_number = ?
        """)

        self._revoke_by_number = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates_by_number
            SET is_valid = false, revoked_at = ?, revoked_reason = ?
            WHERE certificate_number = ?
            IF is_valid = true
        """)

        self._revoke = self.session.prepare(f"""
            UPDATE {self.keyspace}.certificates
            SET is_valid = false, revoked_at = ?, revoked_reason = ?
            WHERE user_id = ? AND course_id = ?
        """)

    async def claim(self, certificate: Certificate) -> bool:
        """Claim the (user, course) slot. False when already issued."""
        result = await self._execute(self._claim, certificate.row_values())
        return self._was_applied(result)

    async def index_number(self, certificate: Certificate) -> bool:
        """Register the certificate number.

        Returns:
            False when the number belongs to a different certificate
        """
        # A replay of our own insert reports the existing row, which is ours
        result = await self._execute(
            self._index_number, certificate.row_values(), idempotent=True
        )
        if self._was_applied(result):
            return True
        existing = result.one()
        return existing.certificate_id == certificate.certificate_id

    async def renumber(self, certificate: Certificate) -> None:
        await self._execute(
            self._renumber,
            [
                certificate.certificate_number,
                certificate.verification_url,
                certificate.user_id,
                certificate.course_id,
            ],
            idempotent=True,
        )

    async def get(self, user_id: UUID, course_id: UUID) -> Certificate | None:
        result = await self._execute(self._get, [user_id, course_id], idempotent=True)
        row = result.one()
        return Certificate.from_row(row) if row else None

    async def list_for_user(self, user_id: UUID) -> list[Certificate]:
        rows = await self._execute(self._list_for_user, [user_id], idempotent=True)
        return [Certificate.from_row(row) for row in rows]

    async def get_by_number(self, certificate_number: str) -> Certificate | None:
        result = await self._execute(
            self._get_by_number, [certificate_number], idempotent=True
        )
        row = result.one()
        return Certificate.from_row(row) if row else None

    async def revoke(
        self, certificate: Certificate, revoked_at: datetime, reason: str
    ) -> bool:
        """Revoke in both tables. False when it was already revoked."""
        result = await self._execute(
            self._revoke_by_number,
            [revoked_at, reason, certificate.certificate_number],
        )
        if not self._was_applied(result):
            return False

        await self._execute(
            self._revoke,
            [revoked_at, reason, certificate.user_id, certificate.course_id],
            idempotent=True,
        )
        return True
