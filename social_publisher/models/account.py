# social_publisher/models/account.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional, List
from datetime import datetime
from enum import Enum
import uuid
from sqlalchemy import String, JSON, UniqueConstraint

from social_publisher.models.types import UTCDateTime, utc_now


class Platform(str, Enum):
    facebook = "facebook"
    instagram = "instagram"
    linkedin = "linkedin"
    linkedin_company = "linkedin-company"


class Account(SQLModel, table=True):
    """
    Stored OAuth credential for one (owner, platform) pair.
    Tokens are Fernet-encrypted; `pages` holds dicts of
    {id, name, access_token_enc, instagram_account_id}.
    """
    __table_args__ = (UniqueConstraint("owner_id", "platform", name="uq_account_owner_platform"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    owner_id: uuid.UUID = Field(index=True)
    platform: str = Field(sa_column=Column(String, index=True, nullable=False))
    platform_user_id: str
    platform_username: str
    access_token_enc: str
    refresh_token_enc: Optional[str] = None
    token_expires_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime, nullable=True))
    is_active: bool = Field(default=True)
    pages: List[dict] = Field(sa_column=Column(JSON), default_factory=list)
    followers: int = Field(default=0)
    last_sync: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))
