# social_publisher/infrastructure/accounts_repo.py
from typing import Optional, List
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlmodel import select
from social_publisher.models.account import Account
from social_publisher.models.types import utc_now
import uuid


class AccountsRepository:
    """
    Repository for Account entity.
    All methods are async and expect an AsyncSession to be injected from the outside.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, account: Account) -> Account:
        """
        Persist a new Account and return refreshed instance.
        """
        self.session.add(account)
        await self.session.commit()
        await self.session.refresh(account)
        return account

    async def save(self, account: Account) -> Account:
        account.updated_at = utc_now()
        self.session.add(account)
        await self.session.commit()
        await self.session.refresh(account)
        return account

    async def get_by_id(self, id: uuid.UUID) -> Optional[Account]:
        q = select(Account).where(Account.id == id)
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_by_owner_and_platform(self, owner_id: uuid.UUID, platform: str) -> Optional[Account]:
        """Return the record for (owner, platform) regardless of is_active."""
        q = select(Account).where(
            Account.owner_id == owner_id,
            Account.platform == platform
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def get_active(self, owner_id: uuid.UUID, platform: str) -> Optional[Account]:
        q = select(Account).where(
            Account.owner_id == owner_id,
            Account.platform == platform,
            Account.is_active == True  # noqa: E712
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_active_by_owner(self, owner_id: uuid.UUID) -> List[Account]:
        q = select(Account).where(Account.owner_id == owner_id, Account.is_active == True)  # noqa: E712
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def deactivate(self, account: Account) -> Account:
        """
        Accounts are never deleted; disconnecting only flips is_active.
        """
        account.is_active = False
        return await self.save(account)
