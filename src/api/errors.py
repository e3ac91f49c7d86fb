"""
Translation of identity errors into HTTP responses.

Domain errors keep their stable ``code`` and message. Internal errors are
reduced to a generic 500 so no driver text or traceback reaches the client.
"""

from typing import Optional

from fastapi import status

from src.kernel.identity.errors import (
    AccountAlreadyExists,
    AccountNotFound,
    DeadlineExceeded,
    HashingError,
    IdentityError,
    InvalidPassword,
    InvalidToken,
)
from src.schemas.common import ErrorResponse


class InvalidCredentials(IdentityError):
    """
    What untrusted callers see for any failed login.

    Unknown email and wrong password look the same from outside; the
    underlying code is still logged by the credential service.
    """

    code = "invalid_credentials"
    message = "Invalid email or password"


STATUS_BY_ERROR: dict[type[IdentityError], int] = {
    AccountAlreadyExists: status.HTTP_409_CONFLICT,
    AccountNotFound: status.HTTP_404_NOT_FOUND,
    InvalidPassword: status.HTTP_400_BAD_REQUEST,
    InvalidCredentials: status.HTTP_401_UNAUTHORIZED,
    InvalidToken: status.HTTP_401_UNAUTHORIZED,
    HashingError: status.HTTP_400_BAD_REQUEST,
    DeadlineExceeded: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(exc: IdentityError, request_id: Optional[str] = None) -> tuple[int, ErrorResponse]:
    """Status code and body for an identity error."""
    if not exc.expected:
        return status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorResponse(
            detail="Internal server error",
            code="internal_error",
            request_id=request_id,
        )

    status_code = next(
        (code for cls, code in STATUS_BY_ERROR.items() if isinstance(exc, cls)),
        status.HTTP_400_BAD_REQUEST,
    )
    return status_code, ErrorResponse(detail=exc.message, code=exc.code, request_id=request_id)
