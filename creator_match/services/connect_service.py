# creator_match/services/connect_service.py
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

import structlog

from creator_match.errors import (
    NotFoundError,
    PersistenceError,
    ProviderError,
    TokenExpiredError,
    ValidationError,
)
from creator_match.infrastructure.account_store import SocialAccountStore
from creator_match.schemas.social import (
    AccountProfile,
    ConnectionStatus,
    MediaItem,
    MetricsSnapshot,
    PostMetrics,
    SocialAccountLink,
)
from creator_match.services.media_fetcher import EXTENDED_MEDIA_FIELDS, MediaFetcher
from creator_match.services.metrics_aggregator import (
    MetricsAggregator,
    build_snapshot,
    compute_engagement_summary,
)
from creator_match.services.post_locator import extract_shortcode, locate_by_shortcode
from creator_match.services.token_exchange import (
    ConnectFlow,
    ConnectState,
    TokenExchangeService,
    compute_expiry,
)

logger = structlog.get_logger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ConnectResult:
    link: SocialAccountLink
    profile: AccountProfile
    snapshot: Optional[MetricsSnapshot]


@dataclass(frozen=True)
class MetricsWindows:
    metrics_media_window: int = 10
    max_view_items: int = 10
    post_search_window: int = 50
    media_list_limit: int = 25


class ConnectService:
    """
    Runs the account-level flows: connect, metrics refresh, media listing and
    single-post metrics. Token exchange and profile lookup are mandatory;
    metrics are enrichment and never fail a connect.
    """

    def __init__(
        self,
        tokens: TokenExchangeService,
        media: MediaFetcher,
        aggregator: MetricsAggregator,
        store: SocialAccountStore,
        windows: MetricsWindows = MetricsWindows(),
        clock: Callable[[], int] = _now_ms,
    ):
        self.tokens = tokens
        self.media = media
        self.aggregator = aggregator
        self.store = store
        self.windows = windows
        self.clock = clock

    def _utc_now(self) -> datetime:
        return datetime.fromtimestamp(self.clock() / 1000, tz=timezone.utc)

    async def connect(self, code: Optional[str], user_id: Optional[str]) -> ConnectResult:
        if not code or not code.strip():
            raise ValidationError("Missing authorization code")
        if not user_id or not user_id.strip():
            raise ValidationError("Missing userId")

        flow = ConnectFlow(user_id)
        log = logger.bind(user_id=user_id)
        log.info("instagram_connect_started")

        try:
            short = await self.tokens.exchange_authorization_code(code)
        except ProviderError:
            flow.advance(ConnectState.CODE_REJECTED)
            raise
        flow.advance(ConnectState.SHORT_LIVED_TOKEN_OBTAINED)

        try:
            long_lived = await self.tokens.exchange_for_long_lived_token(short.access_token)
        except ProviderError:
            flow.advance(ConnectState.LONG_LIVED_EXCHANGE_FAILED)
            raise
        flow.advance(ConnectState.LONG_LIVED_TOKEN_OBTAINED)

        issued_at = self.clock()
        try:
            profile = await self.media.fetch_profile(long_lived.access_token)
        except ProviderError:
            flow.advance(ConnectState.PROFILE_FETCH_FAILED)
            raise

        snapshot = await self._compute_snapshot_safely(long_lived.access_token, profile, log)

        link = SocialAccountLink(
            user_id=user_id,
            external_id=profile.id,
            username=profile.username,
            access_token=long_lived.access_token,
            token_issued_at=issued_at,
            token_expires_at=compute_expiry(issued_at, long_lived.expires_in),
            status=ConnectionStatus.connected,
        )
        try:
            await self.store.save_connection(link, snapshot)
        except PersistenceError:
            flow.advance(ConnectState.PERSIST_FAILED)
            raise
        flow.advance(ConnectState.PERSISTED)

        log.info("instagram_connect_completed", external_id=link.external_id, with_metrics=snapshot is not None)
        return ConnectResult(link=link, profile=profile, snapshot=snapshot)

    async def compute_snapshot(self, access_token: str, profile: AccountProfile) -> MetricsSnapshot:
        items = await self.media.fetch_recent_media(
            access_token, EXTENDED_MEDIA_FIELDS, self.windows.metrics_media_window
        )
        summary = compute_engagement_summary(items, profile.followers_count)
        views = await self.aggregator.compute_average_views(items, access_token, self.windows.max_view_items)
        return build_snapshot(profile, summary, views, computed_at=self._utc_now())

    async def _compute_snapshot_safely(self, access_token: str, profile: AccountProfile, log) -> Optional[MetricsSnapshot]:
        try:
            return await self.compute_snapshot(access_token, profile)
        except ProviderError as exc:
            log.warning("metrics_enrichment_failed", error=exc.message, status=exc.status)
            return None

    async def _active_link(self, user_id: Optional[str]) -> SocialAccountLink:
        if not user_id or not user_id.strip():
            raise ValidationError("Missing userId")
        link = await self.store.get_link(user_id)
        if link is None or link.status == ConnectionStatus.disconnected or not link.access_token:
            raise NotFoundError("Instagram account not connected")
        if link.status == ConnectionStatus.expired or link.is_expired(self.clock()):
            if link.status != ConnectionStatus.expired:
                await self.store.save_connection(link.model_copy(update={"status": ConnectionStatus.expired}))
                logger.info("instagram_token_expired", user_id=link.user_id)
            # no automatic refresh: the creator has to reconnect
            raise TokenExpiredError("Instagram token expired, reconnect required", status=401, error_type="token_expired")
        return link

    async def refresh_metrics(self, user_id: Optional[str]) -> MetricsSnapshot:
        link = await self._active_link(user_id)
        profile = await self.media.fetch_profile(link.access_token)
        snapshot = await self.compute_snapshot(link.access_token, profile)
        await self.store.save_metrics(link.user_id, snapshot)
        logger.info("metrics_refreshed", user_id=link.user_id, engagement_rate=snapshot.engagement_rate)
        return snapshot

    async def list_media(self, user_id: Optional[str]) -> List[MediaItem]:
        link = await self._active_link(user_id)
        return await self.media.fetch_recent_media(
            link.access_token, EXTENDED_MEDIA_FIELDS, self.windows.media_list_limit
        )

    async def post_metrics(self, user_id: Optional[str], post_id: Optional[str]) -> PostMetrics:
        shortcode = extract_shortcode(post_id)
        link = await self._active_link(user_id)
        items = await self.media.fetch_recent_media(
            link.access_token, EXTENDED_MEDIA_FIELDS, self.windows.post_search_window
        )
        item = locate_by_shortcode(items, shortcode)

        views = item.view_count or 0
        if item.is_video:
            outcome = await self.aggregator.fetch_item_views(item.id, link.access_token)
            if outcome.ok:
                views = outcome.value
            else:
                logger.warning("post_views_enrichment_failed", media_id=item.id, error=outcome.error)

        return PostMetrics(
            likes=item.like_count,
            comments=item.comments_count,
            views=views,
            type=item.media_type,
            thumbnail=item.thumbnail,
            fetched_at=self._utc_now().isoformat(),
        )
