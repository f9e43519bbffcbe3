# creator_match/infrastructure/account_store.py
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Protocol

import structlog
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from creator_match.errors import PersistenceError
from creator_match.infrastructure.crypto import TokenCipher
from creator_match.infrastructure.database import SessionFactory
from creator_match.models.creator_account import CreatorSocialAccount
from creator_match.schemas.social import ConnectionStatus, MetricsSnapshot, SocialAccountLink

logger = structlog.get_logger(__name__)


class SocialAccountStore(Protocol):
    """Persistence collaborator for the per-user social snapshot document."""

    async def get_link(self, user_id: str) -> Optional[SocialAccountLink]: ...

    async def get_metrics(self, user_id: str) -> Optional[MetricsSnapshot]: ...

    async def get_metrics_many(self, user_ids: Iterable[str]) -> Dict[str, MetricsSnapshot]: ...

    async def save_connection(self, link: SocialAccountLink, metrics: Optional[MetricsSnapshot] = None) -> None: ...

    async def save_metrics(self, user_id: str, metrics: MetricsSnapshot) -> None: ...


def _load_metrics(row: CreatorSocialAccount) -> Optional[MetricsSnapshot]:
    if not row.metrics:
        return None
    try:
        return MetricsSnapshot.model_validate(row.metrics)
    except SchemaValidationError:
        logger.warning("stored_metrics_invalid", user_id=row.user_id)
        return None


class SqlSocialAccountStore:
    """
    SQLModel implementation. Writes merge into the existing row:
    social handles merge key-wise, metrics are replaced whole.
    """

    def __init__(self, sessions: SessionFactory, cipher: TokenCipher):
        self.sessions = sessions
        self.cipher = cipher

    def _to_link(self, row: CreatorSocialAccount) -> SocialAccountLink:
        return SocialAccountLink(
            user_id=row.user_id,
            platform=row.platform,
            external_id=row.external_id,
            username=row.username,
            access_token=self.cipher.decrypt(row.access_token_enc),
            token_issued_at=row.token_issued_at,
            token_expires_at=row.token_expires_at,
            status=ConnectionStatus(row.connection_status),
        )

    async def get_link(self, user_id: str) -> Optional[SocialAccountLink]:
        async with self.sessions() as session:
            row = await session.get(CreatorSocialAccount, user_id)
            return self._to_link(row) if row else None

    async def get_metrics(self, user_id: str) -> Optional[MetricsSnapshot]:
        async with self.sessions() as session:
            row = await session.get(CreatorSocialAccount, user_id)
            return _load_metrics(row) if row else None

    async def get_metrics_many(self, user_ids: Iterable[str]) -> Dict[str, MetricsSnapshot]:
        ids = list(user_ids)
        if not ids:
            return {}
        q = select(CreatorSocialAccount).where(CreatorSocialAccount.user_id.in_(ids))
        async with self.sessions() as session:
            res = await session.execute(q)
            rows = res.scalars().all()
        found = {}
        for row in rows:
            snapshot = _load_metrics(row)
            if snapshot is not None:
                found[row.user_id] = snapshot
        return found

    async def save_connection(self, link: SocialAccountLink, metrics: Optional[MetricsSnapshot] = None) -> None:
        try:
            async with self.sessions() as session:
                row = await session.get(CreatorSocialAccount, link.user_id)
                if row is None:
                    row = CreatorSocialAccount(user_id=link.user_id, platform=link.platform)
                handles = dict(row.social_handles or {})
                if link.username:
                    handles[link.platform] = link.username
                row.social_handles = handles
                row.connected = link.status == ConnectionStatus.connected
                row.connection_status = link.status.value
                row.external_id = link.external_id
                row.username = link.username
                row.access_token_enc = self.cipher.encrypt(link.access_token)
                row.token_issued_at = link.token_issued_at
                row.token_expires_at = link.token_expires_at
                if metrics is not None:
                    row.metrics = metrics.to_document()
                row.updated_at = datetime.now(timezone.utc)
                session.add(row)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.exception("account_save_failed", user_id=link.user_id)
            raise PersistenceError("failed to persist social account") from exc
        logger.info("account_saved", user_id=link.user_id, with_metrics=metrics is not None)

    async def save_metrics(self, user_id: str, metrics: MetricsSnapshot) -> None:
        try:
            async with self.sessions() as session:
                row = await session.get(CreatorSocialAccount, user_id)
                if row is None:
                    row = CreatorSocialAccount(user_id=user_id)
                row.metrics = metrics.to_document()
                row.updated_at = datetime.now(timezone.utc)
                session.add(row)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.exception("metrics_save_failed", user_id=user_id)
            raise PersistenceError("failed to persist metrics snapshot") from exc
        logger.info("metrics_saved", user_id=user_id)
