import asyncio
from typing import Dict, Iterable, List, Optional, Set
from urllib.parse import parse_qs

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from creator_match.config import InstagramSettings, Settings
from creator_match.errors import PersistenceError
from creator_match.infrastructure.code_ledger import AuthorizationCodeLedger
from creator_match.infrastructure.instagram_client import InstagramGraphClient
from creator_match.schemas.social import MetricsSnapshot, SocialAccountLink
from creator_match.services.connect_service import ConnectService, MetricsWindows
from creator_match.services.media_fetcher import MediaFetcher
from creator_match.services.metrics_aggregator import MetricsAggregator
from creator_match.services.token_exchange import TokenExchangeService

NOW_MS = 1_700_000_000_000
LONG_LIVED_EXPIRES_IN = 5_184_000


class FakeRedis:
    def __init__(self):
        self.data: Dict[str, str] = {}
        self.unavailable = False

    async def set(self, key, value, ex=None, nx=False):
        if self.unavailable:
            raise RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused.")
        if nx and key in self.data:
            return None
        self.data[key] = value
        return True

    async def aclose(self):
        pass


class InMemoryAccountStore:
    def __init__(self):
        self.links: Dict[str, SocialAccountLink] = {}
        self.metrics: Dict[str, MetricsSnapshot] = {}
        self.fail_writes = False

    async def get_link(self, user_id):
        return self.links.get(user_id)

    async def get_metrics(self, user_id):
        return self.metrics.get(user_id)

    async def get_metrics_many(self, user_ids: Iterable[str]):
        return {uid: self.metrics[uid] for uid in user_ids if uid in self.metrics}

    async def save_connection(self, link, metrics=None):
        if self.fail_writes:
            raise PersistenceError("failed to persist social account")
        self.links[link.user_id] = link
        if metrics is not None:
            self.metrics[link.user_id] = metrics

    async def save_metrics(self, user_id, metrics):
        self.metrics[user_id] = metrics


def media(media_id: str, likes: int = 0, comments: int = 0, media_type: str = "IMAGE", shortcode: Optional[str] = None, **extra):
    item = {
        "id": media_id,
        "caption": f"post {media_id}",
        "media_type": media_type,
        "media_url": f"https://cdn.example/{media_id}.jpg",
        "permalink": f"https://www.instagram.com/p/{shortcode or 'SC' + media_id}/",
        "timestamp": "2024-05-01T10:00:00+0000",
        "like_count": likes,
        "comments_count": comments,
    }
    item.update(extra)
    return item


def graph_error(status: int, message: str, code: int = 100) -> httpx.Response:
    return httpx.Response(status, json={"error": {"message": message, "type": "OAuthException", "code": code}})


class FakeInstagram:
    """In-process stand-in for the Instagram OAuth and Graph hosts."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.rejected_codes: Set[str] = set()
        self.reject_long_lived = False
        self.wrapped_code_response = False
        self.profile = {"id": "17841400000", "username": "maria.creates", "followers_count": 2000, "media_count": 40}
        self.profile_status = 200
        self.items: List[dict] = []
        self.reject_extended_fields = False
        self.reject_all_media = False
        self.insight_views: Dict[str, int] = {}
        self.failing_insights: Set[str] = set()
        self.slow_insights: Set[str] = set()
        self.insight_delay = 0.0
        self.in_flight = 0
        self.peak_in_flight = 0

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        params = request.url.params

        if request.method == "POST" and path == "/oauth/access_token":
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            if form.get("code") in self.rejected_codes:
                return httpx.Response(
                    400,
                    json={"error_type": "OAuthException", "code": 400, "error_message": "This authorization code has been used"},
                )
            if self.wrapped_code_response:
                return httpx.Response(
                    200, json={"data": [{"access_token": "short-token", "user_id": "17841400000", "permissions": "instagram_business_basic"}]}
                )
            return httpx.Response(200, json={"access_token": "short-token", "user_id": 17841400000})

        if path == "/access_token":
            if self.reject_long_lived:
                return graph_error(400, "Error validating application. Invalid application ID.", code=101)
            return httpx.Response(200, json={"access_token": "long-token", "token_type": "bearer", "expires_in": LONG_LIVED_EXPIRES_IN})

        if path == "/me":
            if self.profile_status != 200:
                return graph_error(self.profile_status, "Invalid OAuth access token.", code=190)
            return httpx.Response(200, json=self.profile)

        if path == "/me/media":
            fields = params.get("fields", "").split(",")
            if self.reject_all_media or (self.reject_extended_fields and "view_count" in fields):
                return graph_error(400, "Tried accessing nonexisting field (view_count)")
            limit = int(params.get("limit", "25"))
            return httpx.Response(200, json={"data": self.items[:limit], "paging": {}})

        if path.endswith("/insights"):
            media_id = path.split("/")[1]
            if media_id in self.slow_insights:
                await asyncio.sleep(5)
            if self.insight_delay:
                self.in_flight += 1
                self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
                await asyncio.sleep(self.insight_delay)
                self.in_flight -= 1
            if media_id in self.failing_insights:
                return graph_error(500, "An unknown error has occurred.", code=1)
            views = self.insight_views.get(media_id, 0)
            return httpx.Response(200, json={"data": [{"name": "views", "period": "lifetime", "values": [{"value": views}]}]})

        return httpx.Response(404, json={"error": {"message": f"unknown path {path}"}})


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        oauth_token_key=None,
        instagram=InstagramSettings(
            client_id="client-id",
            client_secret="client-secret",
            redirect_uri="https://app.example/auth/instagram/callback",
        ),
        insights_batch_timeout_seconds=1.0,
    )


@pytest.fixture
def fake_ig() -> FakeInstagram:
    return FakeInstagram()


@pytest.fixture
async def http_client(fake_ig):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_ig.handler)) as client:
        yield client


@pytest.fixture
def graph_client(http_client, settings) -> InstagramGraphClient:
    return InstagramGraphClient(http_client, settings.instagram)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store() -> InMemoryAccountStore:
    return InMemoryAccountStore()


@pytest.fixture
def token_service(graph_client, settings, fake_redis) -> TokenExchangeService:
    return TokenExchangeService(graph_client, settings.instagram, AuthorizationCodeLedger(fake_redis))


@pytest.fixture
def connect_service(token_service, graph_client, store, settings) -> ConnectService:
    return ConnectService(
        tokens=token_service,
        media=MediaFetcher(graph_client),
        aggregator=MetricsAggregator(graph_client, batch_timeout=settings.insights_batch_timeout_seconds),
        store=store,
        windows=MetricsWindows(),
        clock=lambda: NOW_MS,
    )
