"""Database access for Lekol Alez.

Connection lifecycle lives in ``async_cassandra``; repositories subclass
``CassandraRepository``.
"""

from src.core.database.repository import TRANSIENT_ERRORS, CassandraRepository


__all__ = ["TRANSIENT_ERRORS", "CassandraRepository"]
