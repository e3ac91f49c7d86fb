"""
Identity Core - Password hashing, signed tokens and credential handling.
"""

from src.kernel.identity.clock import Clock, FrozenClock, SystemClock
from src.kernel.identity.errors import (
    AccountAlreadyExists,
    AccountNotFound,
    DeadlineExceeded,
    HashingError,
    IdentityError,
    InternalError,
    InvalidPassword,
    InvalidToken,
)
from src.kernel.identity.password import PasswordHasher
from src.kernel.identity.tokens import TokenClaims, TokenCodec, TokenPair
from src.kernel.identity.store import AccountFilter, AccountStore, SqlAccountStore
from src.kernel.identity.credential_service import (
    CredentialService,
    LoginResult,
    TokenSettings,
)

__all__ = [
    # Time
    "Clock",
    "FrozenClock",
    "SystemClock",
    # Errors
    "AccountAlreadyExists",
    "AccountNotFound",
    "DeadlineExceeded",
    "HashingError",
    "IdentityError",
    "InternalError",
    "InvalidPassword",
    "InvalidToken",
    # Primitives
    "PasswordHasher",
    "TokenClaims",
    "TokenCodec",
    "TokenPair",
    # Persistence
    "AccountFilter",
    "AccountStore",
    "SqlAccountStore",
    # Service
    "CredentialService",
    "LoginResult",
    "TokenSettings",
]
