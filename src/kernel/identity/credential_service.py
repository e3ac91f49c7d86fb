"""
Credential service: registration, login and the token lifecycle.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import AsyncIterator, Optional

from pydantic import SecretStr

from src.kernel.identity.clock import Clock, SystemClock
from src.kernel.identity.errors import (
    AccountAlreadyExists,
    AccountNotFound,
    DeadlineExceeded,
    DuplicateAccount,
    IdentityError,
    InternalError,
    InvalidPassword,
    InvalidToken,
    TokenError,
)
from src.kernel.identity.password import PasswordHasher
from src.kernel.identity.store import AccountFilter, AccountStore
from src.kernel.identity.tokens import TokenClaims, TokenCodec, TokenPair
from src.kernel.models.account import Account, normalize_email
from src.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TokenSettings:
    """Signing secret, issuer and lifetimes for issued tokens."""

    secret_key: SecretStr
    issuer: str
    access_token_lifetime: timedelta
    refresh_token_lifetime: timedelta


@dataclass(frozen=True)
class LoginResult:
    tokens: TokenPair
    account_id: uuid.UUID


class CredentialService:
    """
    Orchestrates account registration, authentication and token handling.

    Holds no mutable state of its own: accounts live in the store, tokens are
    self-contained. Every public coroutine runs under a deadline; task
    cancellation propagates unchanged as ``asyncio.CancelledError``.

    Refresh tokens are not revoked when a new pair is issued. A refresh token
    stays usable until its own ``exp``.
    """

    def __init__(
        self,
        store: AccountStore,
        token_settings: TokenSettings,
        hasher: Optional[PasswordHasher] = None,
        codec: Optional[TokenCodec] = None,
        clock: Optional[Clock] = None,
        timeout: Optional[float] = None,
    ):
        self.store = store
        self.token_settings = token_settings
        self.hasher = hasher or PasswordHasher()
        self.clock = clock or SystemClock()
        self.codec = codec or TokenCodec(clock=self.clock)
        self.timeout = timeout

    @asynccontextmanager
    async def _operation(self, name: str, timeout: Optional[float]) -> AsyncIterator[None]:
        """
        Apply the deadline and the logging/wrapping policy for one operation.

        Expected errors pass through and are logged at INFO. Anything
        unexpected is logged with its traceback and replaced by InternalError.
        """
        limit = self.timeout if timeout is None else timeout
        try:
            async with asyncio.timeout(limit):
                yield
        except IdentityError as e:
            if e.expected:
                logger.info("%s rejected: %s", name, e.code)
            raise
        except TimeoutError as e:
            logger.info("%s exceeded its deadline", name, extra={"timeout_s": limit})
            raise DeadlineExceeded() from e
        except Exception as e:
            logger.exception("%s failed", name)
            raise InternalError() from e

    def _verify_or_burn(self, hashed_password: Optional[str], password: str) -> bool:
        # Unknown accounts still pay for one bcrypt comparison
        if hashed_password is None:
            return self.hasher.burn(password)
        return self.hasher.verify(hashed_password, password)

    async def register(
        self,
        name: str,
        surname: str,
        email: str,
        password: str,
        phone: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Register a new account.

        Raises:
            AccountAlreadyExists: If the email is already registered
            HashingError: If the password cannot be hashed
        """
        email = normalize_email(email)
        async with self._operation("register", timeout):
            existing = await self.store.find(AccountFilter(email=email))
            if existing is not None:
                raise AccountAlreadyExists()

            password_hash = await asyncio.to_thread(self.hasher.hash, password)

            try:
                account = await self.store.create(
                    Account(
                        name=name.strip(),
                        surname=surname.strip(),
                        email=email,
                        phone=phone,
                        password_hash=password_hash,
                    )
                )
            except DuplicateAccount as e:
                # Lost a race with a concurrent registration
                raise AccountAlreadyExists() from e

        logger.info("Registered account", extra={"account_id": str(account.id)})

    async def login(
        self,
        email: str,
        password: str,
        timeout: Optional[float] = None,
    ) -> LoginResult:
        """
        Check credentials and issue a token pair.

        Raises:
            AccountNotFound: No account has this email
            InvalidPassword: The password does not match
        """
        async with self._operation("login", timeout):
            account = await self.store.find(AccountFilter(email=email))
            matches = await asyncio.to_thread(
                self._verify_or_burn,
                account.password_hash if account is not None else None,
                password,
            )
            if account is None:
                raise AccountNotFound()
            if not matches:
                raise InvalidPassword()

            tokens = self.issue_token_pair(account)

        logger.info("Account logged in", extra={"account_id": str(account.id)})
        return LoginResult(tokens=tokens, account_id=account.id)

    async def _resolve_token(self, token: str) -> Account:
        try:
            claims = self.codec.verify(token, self.token_settings.secret_key.get_secret_value())
        except TokenError as e:
            logger.info("Token rejected", extra={"reason": type(e).__name__})
            raise InvalidToken() from e

        try:
            account_id = uuid.UUID(claims.sub)
        except ValueError as e:
            raise InvalidToken() from e

        account = await self.store.find(AccountFilter(id=account_id))
        if account is None:
            raise AccountNotFound()
        return account

    async def verify(self, token: str, timeout: Optional[float] = None) -> Account:
        """
        Verify a token and return the account it was issued for.

        Raises:
            InvalidToken: Bad signature, expired, not yet valid or malformed
            AccountNotFound: The account was deleted after the token was issued
        """
        async with self._operation("verify", timeout):
            return await self._resolve_token(token)

    async def refresh(self, refresh_token: str, timeout: Optional[float] = None) -> TokenPair:
        """
        Exchange a valid refresh token for a brand-new token pair.

        The presented refresh token is not invalidated.
        """
        async with self._operation("refresh", timeout):
            account = await self._resolve_token(refresh_token)
            tokens = self.issue_token_pair(account)

        logger.info("Refreshed tokens", extra={"account_id": str(account.id)})
        return tokens

    def issue_token_pair(self, account: Account) -> TokenPair:
        """
        Sign an access token and a refresh token for the account.

        Both share the subject; each gets its own issue time and lifetime.
        """
        secret = self.token_settings.secret_key.get_secret_value()
        issuer = self.token_settings.issuer
        subject = str(account.id)

        now = self.clock.now()
        access_claims = TokenClaims.issue(
            issuer, subject, now, self.token_settings.access_token_lifetime
        )
        access_token = self.codec.sign(access_claims, secret)

        refresh_claims = TokenClaims.issue(
            issuer, subject, self.clock.now(), self.token_settings.refresh_token_lifetime
        )
        refresh_token = self.codec.sign(refresh_claims, secret)

        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=int((access_claims.exp - access_claims.iat).total_seconds()),
        )

    async def get_user(
        self,
        account_id: Optional[uuid.UUID] = None,
        email: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Account:
        """Get an account by ID and/or email."""
        async with self._operation("get_user", timeout):
            account = await self.store.find(AccountFilter(id=account_id, email=email))
            if account is None:
                raise AccountNotFound()
        return account

    async def update_user(
        self,
        account_id: uuid.UUID,
        name: Optional[str] = None,
        surname: Optional[str] = None,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Account:
        """
        Update profile fields. Fields left as None are unchanged.

        Raises:
            AccountNotFound: No such account
            AccountAlreadyExists: The new email belongs to another account
        """
        changes = {}
        if name is not None:
            changes["name"] = name.strip()
        if surname is not None:
            changes["surname"] = surname.strip()
        if phone is not None:
            changes["phone"] = phone
        if email is not None:
            changes["email"] = normalize_email(email)

        async with self._operation("update_user", timeout):
            if "email" in changes:
                other = await self.store.find(AccountFilter(email=changes["email"]))
                if other is not None and other.id != account_id:
                    raise AccountAlreadyExists("email already in use")

            try:
                account = await self.store.update(account_id, changes)
            except DuplicateAccount as e:
                raise AccountAlreadyExists("email already in use") from e
            if account is None:
                raise AccountNotFound()

        logger.info(
            "Updated account",
            extra={"account_id": str(account_id), "fields": sorted(changes)},
        )
        return account

    async def change_password(
        self,
        account_id: uuid.UUID,
        current_password: str,
        new_password: str,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Replace the password after re-checking the current one.

        Tokens issued before the change stay valid until they expire.
        """
        async with self._operation("change_password", timeout):
            account = await self.store.find(AccountFilter(id=account_id))
            if account is None:
                raise AccountNotFound()

            matches = await asyncio.to_thread(
                self.hasher.verify, account.password_hash, current_password
            )
            if not matches:
                raise InvalidPassword()

            password_hash = await asyncio.to_thread(self.hasher.hash, new_password)
            await self.store.update(account_id, {"password_hash": password_hash})

        logger.info("Changed password", extra={"account_id": str(account_id)})

    async def delete_user(self, account_id: uuid.UUID, timeout: Optional[float] = None) -> None:
        """Delete an account. Its outstanding tokens stop verifying."""
        async with self._operation("delete_user", timeout):
            account = await self.store.find(AccountFilter(id=account_id))
            if account is None:
                raise AccountNotFound()
            await self.store.delete(account_id)

        logger.info("Deleted account", extra={"account_id": str(account_id)})
