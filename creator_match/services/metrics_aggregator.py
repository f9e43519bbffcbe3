# creator_match/services/metrics_aggregator.py
import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import structlog

from creator_match.errors import ProviderError
from creator_match.infrastructure.instagram_client import InstagramGraphClient
from creator_match.schemas.social import AccountProfile, MediaItem, MetricsSnapshot

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EngagementSummary:
    avg_likes: float
    avg_comments: float
    engagement_rate: float


@dataclass(frozen=True)
class InsightOutcome:
    """Result of one per-item insight call. Only positive values count."""

    media_id: str
    value: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None and self.value > 0


@dataclass(frozen=True)
class ViewsAverage:
    average: float
    sample_size: int  # successful calls, the denominator
    attempted: int


def _coerce_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            return None
    return None


def extract_insight_value(payload: Dict[str, Any], metric: str) -> Optional[int]:
    entries = payload.get("data") or []
    entry = next((e for e in entries if isinstance(e, dict) and e.get("name") == metric), None)
    if entry is None and entries and isinstance(entries[0], dict):
        entry = entries[0]
    if entry is None:
        return None
    values = entry.get("values") or []
    if values and isinstance(values[0], dict):
        return _coerce_int(values[0].get("value"))
    total = entry.get("total_value")
    if isinstance(total, dict):
        return _coerce_int(total.get("value"))
    return None


def compute_engagement_summary(items: Sequence[MediaItem], follower_count: Optional[int]) -> EngagementSummary:
    followers = max(follower_count or 0, 1)
    if not items:
        return EngagementSummary(avg_likes=0.0, avg_comments=0.0, engagement_rate=0.0)
    avg_likes = sum(item.like_count for item in items) / len(items)
    avg_comments = sum(item.comments_count for item in items) / len(items)
    engagement_rate = round(((avg_likes + avg_comments) / followers) * 100, 2)
    return EngagementSummary(avg_likes=avg_likes, avg_comments=avg_comments, engagement_rate=engagement_rate)


def average_of_successes(outcomes: Sequence[InsightOutcome]) -> ViewsAverage:
    successes = [o.value for o in outcomes if o.ok]
    average = sum(successes) / len(successes) if successes else 0.0
    return ViewsAverage(average=average, sample_size=len(successes), attempted=len(outcomes))


def build_snapshot(
    profile: AccountProfile,
    summary: EngagementSummary,
    views: ViewsAverage,
    computed_at: Optional[datetime] = None,
) -> MetricsSnapshot:
    computed_at = computed_at or datetime.now(timezone.utc)
    return MetricsSnapshot(
        followers=profile.followers_count,
        engagement_rate=summary.engagement_rate,
        avg_likes=round(summary.avg_likes),
        avg_comments=round(summary.avg_comments),
        avg_views=round(views.average),
        last_updated=computed_at.isoformat(),
    )


class MetricsAggregator:
    def __init__(self, client: InstagramGraphClient, metric: str = "views", batch_timeout: float = 8.0):
        self.client = client
        self.metric = metric
        self.batch_timeout = batch_timeout

    async def fetch_item_views(self, media_id: str, access_token: str) -> InsightOutcome:
        try:
            body = await self.client.get(
                f"{media_id}/insights", params={"metric": self.metric, "access_token": access_token}
            )
        except ProviderError as exc:
            return InsightOutcome(media_id=media_id, error=exc.error_type or f"status_{exc.status}")
        value = extract_insight_value(body, self.metric)
        if value is None:
            return InsightOutcome(media_id=media_id, error="missing_value")
        return InsightOutcome(media_id=media_id, value=value)

    async def compute_average_views(
        self, items: Sequence[MediaItem], access_token: str, max_items: int
    ) -> ViewsAverage:
        selected = [item for item in items if item.is_video][: max(max_items, 0)]
        if not selected:
            return ViewsAverage(average=0.0, sample_size=0, attempted=0)

        tasks = [asyncio.create_task(self.fetch_item_views(item.id, access_token)) for item in selected]
        done = set()
        try:
            done, _ = await asyncio.wait(tasks, timeout=self.batch_timeout)
        finally:
            # cancellation scope: nothing outlives this call
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        outcomes: List[InsightOutcome] = []
        for item, task in zip(selected, tasks):
            if task not in done or task.cancelled():
                outcomes.append(InsightOutcome(media_id=item.id, error="timeout"))
            elif task.exception() is not None:
                logger.warning("insight_call_crashed", media_id=item.id, error=repr(task.exception()))
                outcomes.append(InsightOutcome(media_id=item.id, error=type(task.exception()).__name__))
            else:
                outcomes.append(task.result())

        result = average_of_successes(outcomes)
        logger.info(
            "average_views_computed",
            attempted=result.attempted,
            succeeded=result.sample_size,
            failed=[o.media_id for o in outcomes if not o.ok],
        )
        return result
