# social_publisher/schemas/post_schema.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Literal, Optional
import uuid
from datetime import datetime

from social_publisher.models.types import as_utc

TargetPlatform = Literal["facebook", "instagram", "linkedin"]


def dedupe(platforms: List[str]) -> List[str]:
    return list(dict.fromkeys(platforms))


class PostCreate(BaseModel):
    caption: str = Field(min_length=1, max_length=2200)
    media: List[str] = []  # paths in object storage or absolute urls
    platforms: List[TargetPlatform] = Field(min_length=1)
    selected_pages: Dict[str, str] = {}
    scheduled_date: datetime

    @field_validator("scheduled_date")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @field_validator("platforms")
    @classmethod
    def _dedupe(cls, v: List[str]) -> List[str]:
        return dedupe(v)


class PostUpdate(BaseModel):
    caption: Optional[str] = Field(default=None, min_length=1, max_length=2200)
    media: Optional[List[str]] = None
    platforms: Optional[List[TargetPlatform]] = Field(default=None, min_length=1)
    selected_pages: Optional[Dict[str, str]] = None
    scheduled_date: Optional[datetime] = None

    @field_validator("scheduled_date")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else None

    @field_validator("platforms")
    @classmethod
    def _dedupe(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return dedupe(v) if v is not None else None


class PublishedPlatformRead(BaseModel):
    platform: str
    platform_post_id: Optional[str] = None
    page_id: Optional[str] = None
    published_at: Optional[datetime] = None
    status: str
    error: Optional[str] = None


class PostRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: uuid.UUID
    caption: str
    media: List[str]
    platforms: List[str]
    selected_pages: Dict[str, str]
    scheduled_date: datetime
    status: str
    published_at: Optional[datetime]
    published_platforms: List[PublishedPlatformRead]
    analytics: Dict[str, int]
    created_at: datetime


class PostPage(BaseModel):
    posts: List[PostRead]
    page: int
    limit: int
    total: int
    pages: int


class PublishResultRead(BaseModel):
    success: bool
    results: List[dict]
    errors: List[dict]
    post: PostRead
