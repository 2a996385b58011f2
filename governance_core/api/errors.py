"""
Mapping from core errors to HTTP responses.
"""

from fastapi import HTTPException

from governance_core.errors import (
    DuplicateError,
    GovernanceError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)

STATUS_BY_ERROR: list[tuple[type[GovernanceError], int]] = [
    (NotFoundError, 404),
    (InvalidStateError, 409),
    (DuplicateError, 409),
    (ValidationError, 422),
    (PersistenceError, 503),
]


def to_http_exception(error: GovernanceError) -> HTTPException:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))
