"""
Account endpoints: registration, login, token refresh and profile.
"""

import uuid

from fastapi import APIRouter, status

from src.api.deps import BearerToken, CurrentAccount, Identity
from src.api.errors import InvalidCredentials
from src.kernel.identity import AccountNotFound, InvalidPassword
from src.schemas.auth import (
    AccountResponse,
    AccountUpdate,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    TokenResponse,
)
from src.schemas.common import SuccessResponse

router = APIRouter()


@router.post("/register", response_model=SuccessResponse, status_code=status.HTTP_201_CREATED)
async def register(data: RegisterRequest, identity: Identity):
    """Register a new account. Log in afterwards to obtain tokens."""
    await identity.register(
        name=data.name,
        surname=data.surname,
        email=data.email,
        password=data.password,
        phone=data.phone,
    )
    return SuccessResponse(message="Account registered")


@router.post("/login", response_model=LoginResponse)
async def login(data: LoginRequest, identity: Identity):
    """Authenticate with email and password and return a token pair."""
    try:
        result = await identity.login(email=data.email, password=data.password)
    except (AccountNotFound, InvalidPassword) as e:
        raise InvalidCredentials() from e

    return LoginResponse(
        **result.tokens.model_dump(),
        account_id=result.account_id,
    )


@router.post("/refresh-token", response_model=TokenResponse)
async def refresh_token(token: BearerToken, identity: Identity):
    """
    Exchange the refresh token in the Authorization header for a new pair.

    The presented refresh token remains valid until it expires.
    """
    tokens = await identity.refresh(token)
    return TokenResponse(**tokens.model_dump())


@router.get("/me", response_model=AccountResponse)
async def get_me(account: CurrentAccount):
    """Get the authenticated account."""
    return AccountResponse.model_validate(account)


@router.put("/me", response_model=AccountResponse)
async def update_me(data: AccountUpdate, account: CurrentAccount, identity: Identity):
    """Update the authenticated account's profile."""
    updated = await identity.update_user(
        account.id,
        name=data.name,
        surname=data.surname,
        phone=data.phone,
        email=data.email,
    )
    return AccountResponse.model_validate(updated)


@router.post("/me/change-password", response_model=SuccessResponse)
async def change_password(data: ChangePasswordRequest, account: CurrentAccount, identity: Identity):
    """Change the authenticated account's password."""
    await identity.change_password(
        account.id,
        current_password=data.current_password,
        new_password=data.new_password,
    )
    return SuccessResponse(message="Password changed")


@router.delete("/me", response_model=SuccessResponse)
async def delete_me(account: CurrentAccount, identity: Identity):
    """Delete the authenticated account. Its tokens stop working."""
    await identity.delete_user(account.id)
    return SuccessResponse(message="Account deleted")


@router.get("/{account_id}", response_model=AccountResponse)
async def get_account(account_id: uuid.UUID, _: CurrentAccount, identity: Identity):
    """Get an account by ID. Requires authentication."""
    account = await identity.get_user(account_id=account_id)
    return AccountResponse.model_validate(account)
