"""
Error taxonomy for the identity core.

Every error carries a stable machine-readable ``code`` and a human message.
``expected`` errors are normal outcomes of a request (wrong password, unknown
account, stale token) and are logged at INFO; anything else is an internal
failure and is logged with full detail but never shown to callers.
"""

from typing import Optional


class IdentityError(Exception):
    """Base class for all identity errors."""

    code: str = "identity_error"
    message: str = "identity error"
    expected: bool = True

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def __str__(self) -> str:
        return self.message


class AccountAlreadyExists(IdentityError):
    code = "account_already_exists"
    message = "account already exists"


class AccountNotFound(IdentityError):
    code = "account_not_found"
    message = "account not found"


class InvalidPassword(IdentityError):
    code = "invalid_password"
    message = "invalid password"


class InvalidToken(IdentityError):
    """Token failed signature, timing or claims checks."""

    code = "invalid_token"
    message = "invalid token"


class HashingError(IdentityError):
    """The password hashing primitive rejected its input."""

    code = "hashing_error"
    message = "password could not be processed"


class DeadlineExceeded(IdentityError):
    code = "deadline_exceeded"
    message = "operation deadline exceeded"


class InternalError(IdentityError):
    """Unexpected failure (storage I/O, encoding). Details stay server-side."""

    code = "internal_error"
    message = "internal error"
    expected = False


# Token verification failures. The codec raises these; the credential
# service collapses all of them into InvalidToken.

class TokenError(Exception):
    """Base for token codec failures."""


class MalformedToken(TokenError):
    pass


class InvalidSignature(TokenError):
    pass


class TokenExpired(TokenError):
    pass


class TokenNotYetValid(TokenError):
    pass


class DuplicateAccount(Exception):
    """Raised by an account store when a uniqueness constraint is violated."""
