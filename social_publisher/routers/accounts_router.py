# social_publisher/routers/accounts_router.py
import uuid
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel.ext.asyncio.session import AsyncSession

from social_publisher.dependencies.auth import get_current_user_id
from social_publisher.dependencies.db import get_adapters, get_cipher, get_session_dep
from social_publisher.infrastructure.security import TokenCipher
from social_publisher.models.account import Account, Platform
from social_publisher.platforms.base import PlatformAdapter, PlatformApiError
from social_publisher.schemas.account_schema import AccountRead, FacebookPagesRead, OAuthGrant
from social_publisher.services.account_service import AccountNotFoundError, AccountService

router = APIRouter(prefix="/accounts", tags=["accounts"])


def get_account_service(
    session: AsyncSession = Depends(get_session_dep),
    adapters: Dict[str, PlatformAdapter] = Depends(get_adapters),
    cipher: TokenCipher = Depends(get_cipher),
) -> AccountService:
    return AccountService(session, cipher, facebook=adapters.get("facebook"))


def _to_read(account: Account) -> dict:
    # never echo tokens back, not even encrypted ones
    return {
        "id": account.id,
        "platform": account.platform,
        "platform_user_id": account.platform_user_id,
        "platform_username": account.platform_username,
        "is_active": account.is_active,
        "token_expires_at": account.token_expires_at,
        "followers": account.followers,
        "last_sync": account.last_sync,
        "pages": [
            {"id": p["id"], "name": p.get("name", ""), "has_instagram": bool(p.get("instagram_account_id"))}
            for p in account.pages or []
        ],
    }


@router.get("/", response_model=List[AccountRead])
async def list_accounts(svc: AccountService = Depends(get_account_service), owner_id: uuid.UUID = Depends(get_current_user_id)):
    return [_to_read(a) for a in await svc.list_accounts(owner_id)]


@router.get("/facebook/pages", response_model=FacebookPagesRead)
async def facebook_pages(svc: AccountService = Depends(get_account_service), owner_id: uuid.UUID = Depends(get_current_user_id)):
    try:
        return await svc.facebook_pages(owner_id)
    except AccountNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post("/{platform}/connect", response_model=AccountRead)
async def connect_account(
    platform: Platform,
    grant: OAuthGrant,
    svc: AccountService = Depends(get_account_service),
    owner_id: uuid.UUID = Depends(get_current_user_id),
):
    try:
        account = await svc.connect(owner_id, platform.value, grant)
    except PlatformApiError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return _to_read(account)


@router.delete("/{account_id}")
async def disconnect_account(account_id: uuid.UUID, svc: AccountService = Depends(get_account_service), owner_id: uuid.UUID = Depends(get_current_user_id)):
    try:
        await svc.disconnect(owner_id, account_id)
    except AccountNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {"ok": True}
