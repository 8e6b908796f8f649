"""Base class for Cassandra-backed repositories.

Repositories own their prepared statements and run every query through
``_execute``, which turns driver-level availability failures into
``TransientStorageError`` and retries the ones that are safe to repeat.
"""

import asyncio
from typing import TYPE_CHECKING, Any

import structlog
from cassandra import OperationTimedOut, ReadTimeout, Unavailable, WriteTimeout
from cassandra.cluster import NoHostAvailable

from src.config.settings import get_settings
from src.core.errors import TransientStorageError


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)

TRANSIENT_ERRORS = (
    OperationTimedOut,
    ReadTimeout,
    WriteTimeout,
    Unavailable,
    NoHostAvailable,
)


class CassandraRepository:
    """Prepared-statement holder with bounded retry on transient failures."""

    def __init__(self, session: "Session", keyspace: str):
        settings = get_settings()
        self.session = session
        self.keyspace = keyspace
        self.retry_attempts = max(1, settings.cassandra_retry_attempts)
        self.retry_backoff = settings.cassandra_retry_backoff_seconds
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements (implemented by subclasses)."""

    async def _execute(
        self,
        statement: Any,
        params: list[Any] | None = None,
        *,
        idempotent: bool = False,
    ) -> Any:
        """Execute a statement.

        Reads and naturally idempotent writes are retried up to
        ``retry_attempts`` times with exponential backoff. Anything else
        fails on the first transient error.
        """
        attempts = self.retry_attempts if idempotent else 1
        for attempt in range(1, attempts + 1):
            try:
                return await self.session.aexecute(statement, params)
            except TRANSIENT_ERRORS as e:
                logger.warning(
                    "cassandra_transient_error",
                    error_type=type(e).__name__,
                    attempt=attempt,
                    max_attempts=attempts,
                    idempotent=idempotent,
                )
                if attempt == attempts:
                    raise TransientStorageError from e
                await asyncio.sleep(self.retry_backoff * 2 ** (attempt - 1))
        raise TransientStorageError

    @staticmethod
    def _was_applied(result: Any) -> bool:
        """Return the outcome of a lightweight transaction."""
        return bool(result.was_applied)
