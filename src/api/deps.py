"""
FastAPI dependencies for database sessions, the credential service and
bearer authentication.
"""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import get_settings
from src.database import get_db
from src.kernel.identity import (
    AccountNotFound,
    CredentialService,
    InvalidToken,
    PasswordHasher,
    SqlAccountStore,
)
from src.kernel.models.account import Account


# Security scheme
security = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]
BearerCredentials = Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)]


@lru_cache
def get_password_hasher() -> PasswordHasher:
    """Process-wide hasher with the configured work factor."""
    return PasswordHasher(rounds=get_settings().bcrypt_rounds)


def get_credential_service(db: DbSession) -> CredentialService:
    """Credential service bound to the request's database session."""
    settings = get_settings()
    return CredentialService(
        store=SqlAccountStore(db),
        token_settings=settings.token_settings(),
        hasher=get_password_hasher(),
        timeout=settings.operation_timeout_seconds,
    )


Identity = Annotated[CredentialService, Depends(get_credential_service)]


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_bearer_token(credentials: BearerCredentials) -> str:
    """Raw token from the Authorization header or 401."""
    if not credentials:
        raise _unauthorized("Not authenticated")
    return credentials.credentials


BearerToken = Annotated[str, Depends(get_bearer_token)]


async def get_current_account(token: BearerToken, identity: Identity) -> Account:
    """Account behind the bearer access token or 401."""
    try:
        return await identity.verify(token)
    except (InvalidToken, AccountNotFound):
        raise _unauthorized("Invalid or expired token")


CurrentAccount = Annotated[Account, Depends(get_current_account)]
