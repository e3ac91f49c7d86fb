"""
Account persistence used by the credential service.

The service only knows the ``AccountStore`` protocol; ``SqlAccountStore`` is
the SQLAlchemy implementation used by the application.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.kernel.identity.errors import DuplicateAccount
from src.kernel.models.account import Account, normalize_email


@dataclass(frozen=True)
class AccountFilter:
    """Lookup criteria. Set fields are combined with AND."""

    id: Optional[uuid.UUID] = None
    email: Optional[str] = None


class AccountStore(Protocol):
    async def find(self, filter: AccountFilter) -> Optional[Account]: ...

    async def create(self, account: Account) -> Account: ...

    async def update(self, account_id: uuid.UUID, changes: dict[str, Any]) -> Optional[Account]: ...

    async def delete(self, account_id: uuid.UUID) -> None: ...


class SqlAccountStore:
    """
    AccountStore backed by an async SQLAlchemy session.

    The store flushes but never commits; the unit of work belongs to the
    caller (one session per request).
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find(self, filter: AccountFilter) -> Optional[Account]:
        """Get the account matching the filter, or None."""
        if filter.id is None and filter.email is None:
            raise ValueError("AccountFilter needs an id or an email")

        query = select(Account)
        if filter.id is not None:
            query = query.where(Account.id == filter.id)
        if filter.email is not None:
            query = query.where(Account.email == normalize_email(filter.email))

        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def create(self, account: Account) -> Account:
        """
        Insert a new account.

        Raises:
            DuplicateAccount: If the email is already taken
        """
        self.session.add(account)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateAccount(str(e.orig)) from e

        # Load server-side audit defaults
        await self.session.refresh(account)
        return account

    async def update(self, account_id: uuid.UUID, changes: dict[str, Any]) -> Optional[Account]:
        """
        Apply field changes to an account.

        Returns:
            The updated account, or None if it does not exist

        Raises:
            DuplicateAccount: If the new email belongs to another account
        """
        account = await self.find(AccountFilter(id=account_id))
        if account is None:
            return None

        for field, value in changes.items():
            setattr(account, field, value)

        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateAccount(str(e.orig)) from e

        await self.session.refresh(account)
        return account

    async def delete(self, account_id: uuid.UUID) -> None:
        await self.session.execute(delete(Account).where(Account.id == account_id))
        await self.session.flush()
