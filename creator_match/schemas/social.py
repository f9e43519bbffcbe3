# creator_match/schemas/social.py
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

VIDEO_MEDIA_TYPES = {"VIDEO", "REELS"}


class ConnectionStatus(str, Enum):
    connected = "connected"
    disconnected = "disconnected"
    expired = "expired"


class SocialAccountLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    platform: str = "instagram"
    external_id: Optional[str] = None
    username: Optional[str] = None
    access_token: Optional[str] = Field(default=None, repr=False)
    token_issued_at: Optional[int] = None  # epoch ms
    token_expires_at: Optional[int] = None  # epoch ms
    status: ConnectionStatus = ConnectionStatus.disconnected

    def is_expired(self, now_ms: int) -> bool:
        return self.token_expires_at is not None and now_ms >= self.token_expires_at


class AccountProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    username: Optional[str] = None
    followers_count: int = 0
    media_count: int = 0


class MediaItem(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    caption: Optional[str] = None
    media_type: Optional[str] = None  # IMAGE, VIDEO, CAROUSEL_ALBUM
    media_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    permalink: Optional[str] = None
    timestamp: Optional[str] = None
    like_count: int = 0
    comments_count: int = 0
    view_count: Optional[int] = None

    @field_validator("like_count", "comments_count", mode="before")
    @classmethod
    def _missing_count_is_zero(cls, value):
        return 0 if value is None else value

    @property
    def is_video(self) -> bool:
        return (self.media_type or "").upper() in VIDEO_MEDIA_TYPES

    @property
    def thumbnail(self) -> Optional[str]:
        return self.thumbnail_url or self.media_url

    def to_public(self) -> dict:
        return {
            "id": self.id,
            "caption": self.caption,
            "media_type": self.media_type,
            "thumbnail": self.thumbnail,
            "permalink": self.permalink,
            "timestamp": self.timestamp,
            "like_count": self.like_count,
            "comments_count": self.comments_count,
        }


class MetricsSnapshot(BaseModel):
    """Serialised with camelCase keys, the shape stored under `metrics`."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    followers: int = 0
    engagement_rate: float = 0.0
    avg_likes: int = 0
    avg_comments: int = 0
    avg_views: int = 0
    last_updated: Optional[str] = None

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


class PostMetrics(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    likes: int
    comments: int
    views: int
    type: Optional[str] = None
    thumbnail: Optional[str] = None
    fetched_at: str
