# creator_match/models/creator_account.py
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, String
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CreatorSocialAccount(SQLModel, table=True):
    """One row per marketplace user: the merge-written social snapshot document."""

    __tablename__ = "creator_social_account"

    user_id: str = Field(sa_column=Column(String, primary_key=True))
    platform: str = Field(default="instagram")
    social_handles: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    connected: bool = Field(default=False)
    connection_status: str = Field(default="disconnected")
    external_id: Optional[str] = Field(default=None, index=True)
    username: Optional[str] = None
    access_token_enc: Optional[str] = None
    token_issued_at: Optional[int] = None  # epoch ms
    token_expires_at: Optional[int] = None  # epoch ms
    metrics: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
