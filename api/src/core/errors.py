"""Base error types shared by the feature packages.

Every recoverable, user-facing condition is a ``DomainError`` carrying a
stable ``code`` (the error kind clients switch on) and a human message.
The application maps them to a JSON envelope in ``src.main``.
"""

from fastapi import status


class DomainError(Exception):
    """Base class for recoverable business errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, code: str = "domain_error"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class TransientStorageError(DomainError):
    """Storage backend unavailable or timed out; safe to retry later."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str = "Storage temporarily unavailable"):
        super().__init__(message, "transient_storage_error")


class MalformedSubmissionError(DomainError):
    """Client sent identifiers or answers that do not match the curriculum."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str = "Malformed submission"):
        super().__init__(message, "malformed_submission")
