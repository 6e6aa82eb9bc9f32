# social_publisher/models/post.py
from sqlmodel import SQLModel, Field, Column
from typing import Optional, List
from enum import Enum
import uuid
from datetime import datetime
from sqlalchemy import String, JSON, Index

from social_publisher.models.types import UTCDateTime, utc_now


class PostStatus(str, Enum):
    draft = "draft"
    scheduled = "scheduled"
    publishing = "publishing"  # claimed by a scheduler tick
    published = "published"
    failed = "failed"


class OutcomeStatus(str, Enum):
    success = "success"
    failed = "failed"


def empty_analytics() -> dict:
    return {"likes": 0, "comments": 0, "reach": 0, "shares": 0}


class Post(SQLModel, table=True):
    __table_args__ = (
        Index("ix_post_status_scheduled_date", "status", "scheduled_date"),
        Index("ix_post_owner_status", "owner_id", "status"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    owner_id: uuid.UUID = Field(index=True)
    caption: str
    media: List[str] = Field(sa_column=Column(JSON), default_factory=list)  # storage paths or absolute urls
    platforms: List[str] = Field(sa_column=Column(JSON), default_factory=list)
    selected_pages: dict = Field(sa_column=Column(JSON), default_factory=dict)
    scheduled_date: datetime = Field(sa_column=Column(UTCDateTime, nullable=False))
    status: str = Field(default=PostStatus.scheduled.value, sa_column=Column(String, nullable=False))
    published_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime, nullable=True))
    # one entry per attempted platform:
    # {platform, platform_post_id, page_id, published_at, status, error}
    published_platforms: List[dict] = Field(sa_column=Column(JSON), default_factory=list)
    analytics: dict = Field(sa_column=Column(JSON), default_factory=empty_analytics)
    created_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))
    updated_at: datetime = Field(default_factory=utc_now, sa_column=Column(UTCDateTime, nullable=False))
