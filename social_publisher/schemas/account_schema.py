# social_publisher/schemas/account_schema.py
from pydantic import BaseModel
from typing import List, Optional
import uuid
from datetime import datetime


class PageGrant(BaseModel):
    id: str
    name: str = ""
    access_token: Optional[str] = None
    instagram_account_id: Optional[str] = None


class OAuthGrant(BaseModel):
    """What the OAuth flow hands over once the user has authorised us."""
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    platform_user_id: str
    platform_username: str
    pages: Optional[List[PageGrant]] = None


class PageRead(BaseModel):
    id: str
    name: str
    has_instagram: bool = False


class AccountRead(BaseModel):
    id: uuid.UUID
    platform: str
    platform_user_id: str
    platform_username: str
    is_active: bool
    token_expires_at: Optional[datetime]
    followers: int
    last_sync: datetime
    pages: List[PageRead] = []


class InstagramAccountRead(BaseModel):
    id: str
    page_id: str
    page_name: str


class FacebookPagesRead(BaseModel):
    pages: List[PageRead]
    instagram_accounts: List[InstagramAccountRead]
