# creator_match/services/media_fetcher.py
from typing import List, Sequence

import structlog
from pydantic import ValidationError as SchemaValidationError

from creator_match.errors import MediaFetchError, ProviderError
from creator_match.infrastructure.instagram_client import InstagramGraphClient
from creator_match.schemas.social import AccountProfile, MediaItem

logger = structlog.get_logger(__name__)

BASIC_MEDIA_FIELDS = (
    "id",
    "caption",
    "media_type",
    "media_url",
    "thumbnail_url",
    "permalink",
    "timestamp",
    "like_count",
    "comments_count",
)
EXTENDED_MEDIA_FIELDS = BASIC_MEDIA_FIELDS + ("view_count",)
PROFILE_FIELDS = ("id", "username", "followers_count", "media_count")


def _parse_items(body: dict, limit: int) -> List[MediaItem]:
    items = []
    for raw in body.get("data") or []:
        if not isinstance(raw, dict):
            continue
        try:
            items.append(MediaItem.model_validate(raw))
        except SchemaValidationError:
            logger.warning("media_item_skipped_invalid", media_id=raw.get("id"))
        if len(items) >= limit:
            break
    return items


class MediaFetcher:
    def __init__(self, client: InstagramGraphClient):
        self.client = client

    async def fetch_profile(self, access_token: str) -> AccountProfile:
        body = await self.client.get(
            "me", params={"fields": ",".join(PROFILE_FIELDS), "access_token": access_token}
        )
        try:
            return AccountProfile.model_validate(body)
        except SchemaValidationError as exc:
            raise ProviderError("Instagram returned an unreadable profile", status=502) from exc

    async def _fetch_page(self, access_token: str, fields: Sequence[str], limit: int) -> List[MediaItem]:
        body = await self.client.get(
            "me/media",
            params={"fields": ",".join(fields), "limit": limit, "access_token": access_token},
        )
        return _parse_items(body, limit)

    async def fetch_recent_media(
        self,
        access_token: str,
        fields: Sequence[str] = EXTENDED_MEDIA_FIELDS,
        limit: int = 25,
    ) -> List[MediaItem]:
        """
        Most-recent-first, at most `limit` items. A rejected extended field
        set is retried once with the basic fields; there is no second retry.
        """
        if limit < 1:
            return []

        try:
            return await self._fetch_page(access_token, fields, limit)
        except ProviderError as exc:
            if tuple(fields) == BASIC_MEDIA_FIELDS:
                raise MediaFetchError(
                    "Failed to fetch recent media",
                    status=exc.status,
                    code=exc.code,
                    error_type=exc.error_type,
                    details=exc.details,
                ) from exc
            logger.info("media_fetch_fallback_basic_fields", status=exc.status, code=exc.code)

        try:
            return await self._fetch_page(access_token, BASIC_MEDIA_FIELDS, limit)
        except ProviderError as exc:
            raise MediaFetchError(
                "Failed to fetch recent media",
                status=exc.status,
                code=exc.code,
                error_type=exc.error_type,
                details=exc.details,
            ) from exc
