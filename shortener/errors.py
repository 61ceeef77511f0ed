from typing import Dict, Optional


class StoreError(Exception):
    """Base class for failures raised by the link and visit stores."""


class NotFoundError(StoreError):
    def __init__(self, message: str = "record not found"):
        super().__init__(message)


class EditConflictError(StoreError):
    """
    The conditional write matched no row: either the record is gone or its
    version moved on. Callers re-read to tell the two apart.
    """

    def __init__(self, message: str = "edit conflict"):
        super().__init__(message)


class ValidationError(StoreError):
    def __init__(self, errors: Optional[Dict[str, str]] = None, message: str = "validation failed"):
        super().__init__(message)
        self.errors = dict(errors or {})


class TokenConflictError(ValidationError):
    def __init__(self, token: str):
        super().__init__({"token": "a link with this token already exists"}, message="token already in use")
        self.token = token


class InternalError(StoreError):
    """Opaque failure. The underlying cause is chained, never exposed."""

    def __init__(self, message: str = "internal error"):
        super().__init__(message)


class TokenExhaustedError(InternalError):
    def __init__(self, attempts: int):
        super().__init__(f"could not generate a unique token after {attempts} attempts")
        self.attempts = attempts
