# social_publisher/services/account_service.py
from datetime import datetime, timedelta
from typing import List, Optional
import uuid

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.infrastructure.accounts_repo import AccountsRepository
from social_publisher.infrastructure.security import TokenCipher
from social_publisher.models.account import Account, Platform
from social_publisher.models.types import utc_now
from social_publisher.platforms.base import PageCredential, PlatformCredential
from social_publisher.platforms.facebook import FacebookAdapter
from social_publisher.schemas.account_schema import OAuthGrant

logger = structlog.get_logger(__name__)


class AccountNotFoundError(Exception):
    pass


class CredentialError(ValueError):
    pass


def encode_pages(pages: List[PageCredential], cipher: TokenCipher) -> List[dict]:
    return [
        {
            "id": p.id,
            "name": p.name,
            "access_token_enc": cipher.encrypt(p.access_token),
            "instagram_account_id": p.instagram_account_id,
        }
        for p in pages
    ]


def account_credential(account: Account, cipher: TokenCipher) -> PlatformCredential:
    """Decrypt an Account into the credential an adapter works with."""
    token = cipher.decrypt(account.access_token_enc)
    if not token:
        raise CredentialError(f"Stored {account.platform} token could not be decrypted; reconnect the account")
    pages = [
        PageCredential(
            id=str(p["id"]),
            name=p.get("name", ""),
            access_token=cipher.decrypt(p.get("access_token_enc")),
            instagram_account_id=p.get("instagram_account_id"),
        )
        for p in (account.pages or [])
    ]
    return PlatformCredential(
        platform=account.platform,
        platform_user_id=account.platform_user_id,
        access_token=token,
        pages=pages,
    )


class AccountService:
    def __init__(
        self,
        session: AsyncSession,
        cipher: TokenCipher,
        facebook: Optional[FacebookAdapter] = None,
    ):
        self.repo = AccountsRepository(session)
        self.cipher = cipher
        self.facebook = facebook

    async def connect(self, owner_id: uuid.UUID, platform: str, grant: OAuthGrant) -> Account:
        """
        Store the result of an OAuth exchange. Reconnecting the same platform
        updates the existing record in place and reactivates it.
        """
        platform = Platform(platform).value
        expires_at = utc_now() + timedelta(seconds=int(grant.expires_in)) if grant.expires_in else None

        pages: Optional[List[PageCredential]] = None
        if grant.pages is not None:
            pages = [
                PageCredential(id=p.id, name=p.name, access_token=p.access_token, instagram_account_id=p.instagram_account_id)
                for p in grant.pages
            ]
        elif platform == Platform.facebook.value and self.facebook is not None:
            pages = await self.facebook.list_pages(grant.access_token)

        account = await self._upsert(
            owner_id,
            platform,
            platform_user_id=grant.platform_user_id,
            platform_username=grant.platform_username,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=expires_at,
            pages=pages,
        )
        if platform == Platform.facebook.value and pages:
            await self._sync_instagram_account(owner_id, pages)
        return account

    async def _upsert(
        self,
        owner_id: uuid.UUID,
        platform: str,
        platform_user_id: str,
        platform_username: str,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        pages: Optional[List[PageCredential]] = None,
    ) -> Account:
        existing = await self.repo.get_by_owner_and_platform(owner_id, platform)
        if existing:
            existing.access_token_enc = self.cipher.encrypt(access_token)
            # providers only send these on some exchanges; keep what we have otherwise
            if refresh_token:
                existing.refresh_token_enc = self.cipher.encrypt(refresh_token)
            if expires_at:
                existing.token_expires_at = expires_at
            if pages is not None:
                existing.pages = encode_pages(pages, self.cipher)
            existing.platform_user_id = platform_user_id
            existing.platform_username = platform_username
            existing.is_active = True
            existing.last_sync = utc_now()
            account = await self.repo.save(existing)
            logger.info("account_reconnected", account_id=str(account.id), platform=platform, owner_id=str(owner_id))
            return account

        account = Account(
            owner_id=owner_id,
            platform=platform,
            platform_user_id=platform_user_id,
            platform_username=platform_username,
            access_token_enc=self.cipher.encrypt(access_token),
            refresh_token_enc=self.cipher.encrypt(refresh_token),
            token_expires_at=expires_at,
            pages=encode_pages(pages or [], self.cipher),
            is_active=True,
        )
        account = await self.repo.create(account)
        logger.info("account_connected", account_id=str(account.id), platform=platform, owner_id=str(owner_id))
        return account

    async def _sync_instagram_account(self, owner_id: uuid.UUID, pages: List[PageCredential]) -> Optional[Account]:
        """
        Instagram business accounts are reached through Facebook Pages, so a
        Facebook connect also (re)connects Instagram when a page links one.
        """
        linked = [p for p in pages if p.instagram_account_id and p.access_token]
        if not linked:
            return None
        primary = linked[0]
        return await self._upsert(
            owner_id,
            Platform.instagram.value,
            platform_user_id=primary.instagram_account_id,
            platform_username=primary.instagram_account_id,
            access_token=primary.access_token,
            pages=linked,
        )

    async def list_accounts(self, owner_id: uuid.UUID) -> List[Account]:
        return await self.repo.list_active_by_owner(owner_id)

    async def disconnect(self, owner_id: uuid.UUID, account_id: uuid.UUID) -> Account:
        account = await self.repo.get_by_id(account_id)
        if not account or account.owner_id != owner_id:
            raise AccountNotFoundError("account not found")
        account = await self.repo.deactivate(account)
        logger.info("account_disconnected", account_id=str(account.id), platform=account.platform)
        return account

    async def facebook_pages(self, owner_id: uuid.UUID) -> dict:
        account = await self.repo.get_active(owner_id, Platform.facebook.value)
        if not account:
            raise AccountNotFoundError("Facebook account not found. Connect your Facebook account first.")
        pages = account.pages or []
        return {
            "pages": [
                {"id": p["id"], "name": p.get("name", ""), "has_instagram": bool(p.get("instagram_account_id"))}
                for p in pages
            ],
            "instagram_accounts": [
                {"id": p["instagram_account_id"], "page_id": p["id"], "page_name": p.get("name", "")}
                for p in pages
                if p.get("instagram_account_id")
            ],
        }
