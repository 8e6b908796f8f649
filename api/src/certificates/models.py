"""Database models for certificates.

Cassandra table definitions for:
- Certificates: one row per (user, course), claimed with IF NOT EXISTS
- Certificates by number: public lookup used by verification

Student, course and instructor names are snapshotted at issuance so later
profile or catalog edits never change an issued certificate.
"""

import time
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class CertificateGrade(str, Enum):
    PASS = "Pass"
    MERIT = "Merit"
    DISTINCTION = "Distinction"


DISTINCTION_THRESHOLD = 90
MERIT_THRESHOLD = 75

_BASE36_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

_CERTIFICATE_COLUMNS = """
    certificate_id UUID,
    certificate_number TEXT,
    user_id UUID,
    course_id UUID,
    student_name TEXT,
    course_title TEXT,
    instructor_name TEXT,
    completion_date DATE,
    issued_at TIMESTAMP,
    verification_url TEXT,
    final_score INT,
    grade TEXT,
    total_hours DECIMAL,
    is_valid BOOLEAN,
    revoked_at TIMESTAMP,
    revoked_reason TEXT,
"""

CERTIFICATES_TABLE_CQL = (
    "CREATE TABLE IF NOT EXISTS {keyspace}.certificates ("
    + _CERTIFICATE_COLUMNS
    + "    PRIMARY KEY ((user_id), course_id)\n)"
)

CERTIFICATES_BY_NUMBER_TABLE_CQL = (
    "CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_number ("
    + _CERTIFICATE_COLUMNS
    + "    PRIMARY KEY (certificate_number)\n)"
)

CERTIFICATES_TABLES_CQL = [
    CERTIFICATES_TABLE_CQL,
    CERTIFICATES_BY_NUMBER_TABLE_CQL,
]


# ==============================================================================
# Helper Functions
# ==============================================================================


def to_base36(value: int) -> str:
    if value < 0:
        msg = "base36 encoding needs a non-negative integer"
        raise ValueError(msg)
    digits = []
    while True:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
        if value == 0:
            return "".join(reversed(digits))


def generate_certificate_number(now_ms: int | None = None) -> str:
    """Random part plus millisecond timestamp, e.g. ``CERT-1A2B3C4D-LQ9Z8K2M``."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"CERT-{uuid4().hex[:8].upper()}-{to_base36(now_ms)}"


def verification_url(public_base_url: str, certificate_number: str) -> str:
    return f"{public_base_url.rstrip('/')}/verify/{certificate_number}"


def grade_for(final_score: int | None) -> CertificateGrade:
    if final_score is None:
        return CertificateGrade.PASS
    if final_score >= DISTINCTION_THRESHOLD:
        return CertificateGrade.DISTINCTION
    if final_score >= MERIT_THRESHOLD:
        return CertificateGrade.MERIT
    return CertificateGrade.PASS


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def _to_date(value: Any) -> date | None:
    # cassandra.util.Date wraps DATE columns
    if value is None or isinstance(value, date):
        return value
    return value.date()


# ==============================================================================
# Entity Classes
# ==============================================================================


class Certificate:
    """Course completion certificate.

    Attributes:
        certificate_id: Internal identifier (never exposed by verification)
        certificate_number: Public, globally unique number
        user_id: Student UUID
        course_id: Course UUID
        student_name: Snapshotted student display name
        course_title: Snapshotted course title
        instructor_name: Snapshotted instructor name
        completion_date: Date the enrollment reached 100%
        issued_at: Issuance timestamp
        verification_url: Public verification link
        final_score: Mean best quiz percentage (None without quizzes)
        grade: Pass, Merit or Distinction
        total_hours: Sum of lesson durations in hours
        is_valid: False once revoked
        revoked_at: Revocation timestamp
        revoked_reason: Revocation reason
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        certificate_number: str,
        student_name: str,
        course_title: str,
        instructor_name: str,
        completion_date: date,
        verification_url: str,
        certificate_id: UUID | None = None,
        issued_at: datetime | None = None,
        final_score: int | None = None,
        grade: str | None = None,
        total_hours: Decimal = Decimal(0),
        is_valid: bool = True,
        revoked_at: datetime | None = None,
        revoked_reason: str | None = None,
    ):
        self.certificate_id = certificate_id or uuid4()
        self.certificate_number = certificate_number
        self.user_id = user_id
        self.course_id = course_id
        self.student_name = student_name
        self.course_title = course_title
        self.instructor_name = instructor_name
        self.completion_date = completion_date
        self.issued_at = ensure_utc_aware(issued_at) or datetime.now(UTC)
        self.verification_url = verification_url
        self.final_score = final_score
        self.grade = grade or grade_for(final_score).value
        self.total_hours = total_hours
        self.is_valid = is_valid
        self.revoked_at = ensure_utc_aware(revoked_at)
        self.revoked_reason = revoked_reason

    @classmethod
    def from_row(cls, row: Any) -> "Certificate":
        """Create Certificate from a row of either certificate table."""
        return cls(
            certificate_id=row.certificate_id,
            certificate_number=row.certificate_number,
            user_id=row.user_id,
            course_id=row.course_id,
            student_name=row.student_name or "",
            course_title=row.course_title or "",
            instructor_name=row.instructor_name or "",
            completion_date=_to_date(row.completion_date),
            issued_at=row.issued_at,
            verification_url=row.verification_url or "",
            final_score=row.final_score,
            grade=row.grade,
            total_hours=row.total_hours if row.total_hours is not None else Decimal(0),
            is_valid=row.is_valid if row.is_valid is not None else True,
            revoked_at=row.revoked_at,
            revoked_reason=row.revoked_reason,
        )

    def row_values(self) -> list[Any]:
        """Column values in ``_CERTIFICATE_COLUMNS`` order."""
        return [
            self.certificate_id,
            self.certificate_number,
            self.user_id,
            self.course_id,
            self.student_name,
            self.course_title,
            self.instructor_name,
            self.completion_date,
            self.issued_at,
            self.verification_url,
            self.final_score,
            self.grade,
            self.total_hours,
            self.is_valid,
            self.revoked_at,
            self.revoked_reason,
        ]

    def public_fields(self) -> dict[str, Any]:
        """Snapshotted fields safe to show to anyone holding the number."""
        return {
            "certificate_number": self.certificate_number,
            "student_name": self.student_name,
            "course_title": self.course_title,
            "instructor_name": self.instructor_name,
            "completion_date": self.completion_date,
            "issued_at": self.issued_at,
            "grade": self.grade,
            "final_score": self.final_score,
            "total_hours": self.total_hours,
        }

    def __repr__(self) -> str:
        state = "valid" if self.is_valid else "revoked"
        return f"<Certificate {self.certificate_number} ({state})>"
