# creator_match/context.py
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from creator_match.config import Settings
from creator_match.infrastructure.account_store import SocialAccountStore, SqlSocialAccountStore
from creator_match.infrastructure.code_ledger import AuthorizationCodeLedger
from creator_match.infrastructure.crypto import TokenCipher
from creator_match.infrastructure.database import SessionFactory, create_engine, init_db
from creator_match.infrastructure.instagram_client import InstagramGraphClient
from creator_match.infrastructure.redis_cache import create_redis
from creator_match.services.connect_service import ConnectService, MetricsWindows
from creator_match.services.media_fetcher import MediaFetcher
from creator_match.services.metrics_aggregator import MetricsAggregator
from creator_match.services.token_exchange import TokenExchangeService

logger = structlog.get_logger(__name__)


@dataclass
class AppContext:
    """
    Everything a request handler needs, built once per process and passed
    explicitly. Nothing in the package creates clients at import time.
    """

    settings: Settings
    http: httpx.AsyncClient
    store: SocialAccountStore
    connect: ConnectService
    redis: Optional[Any] = None
    engine: Optional[AsyncEngine] = None

    async def aclose(self) -> None:
        await self.http.aclose()
        if self.redis is not None:
            await self.redis.aclose()
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("app_context_closed")


def build_connect_service(
    settings: Settings,
    http: httpx.AsyncClient,
    redis_client: Any,
    store: SocialAccountStore,
) -> ConnectService:
    client = InstagramGraphClient(http, settings.instagram)
    ledger = AuthorizationCodeLedger(redis_client, ttl=settings.auth_code_ttl_seconds)
    return ConnectService(
        tokens=TokenExchangeService(client, settings.instagram, ledger),
        media=MediaFetcher(client),
        aggregator=MetricsAggregator(
            client,
            metric=settings.instagram.insights_metric,
            batch_timeout=settings.insights_batch_timeout_seconds,
        ),
        store=store,
        windows=MetricsWindows(
            metrics_media_window=settings.metrics_media_window,
            max_view_items=settings.max_view_items,
            post_search_window=settings.post_search_window,
            media_list_limit=settings.media_list_limit,
        ),
    )


async def create_context(settings: Settings) -> AppContext:
    http = httpx.AsyncClient(timeout=settings.provider_timeout_seconds)
    redis_client = create_redis(settings.redis_url)
    engine = create_engine(settings.database_url)
    await init_db(engine)

    store = SqlSocialAccountStore(SessionFactory(engine), TokenCipher(settings.oauth_token_key))
    connect = build_connect_service(settings, http, redis_client, store)
    logger.info("app_context_ready", environment=settings.environment)
    return AppContext(
        settings=settings,
        http=http,
        store=store,
        connect=connect,
        redis=redis_client,
        engine=engine,
    )
