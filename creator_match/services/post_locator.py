# creator_match/services/post_locator.py
import re
from typing import Optional, Sequence

from creator_match.errors import NotFoundError, ValidationError
from creator_match.schemas.social import MediaItem

_POST_URL = re.compile(r"/(?:p|reel|reels|tv)/([A-Za-z0-9_-]+)")


def extract_shortcode(value: Optional[str]) -> str:
    """Accepts a bare shortcode or a full post URL."""
    if not value or not value.strip():
        raise ValidationError("Missing post id")
    value = value.strip()
    match = _POST_URL.search(value)
    if match:
        return match.group(1)
    return value.strip("/")


def locate_by_shortcode(items: Sequence[MediaItem], shortcode: str) -> MediaItem:
    """
    First item in the recent window whose permalink contains the shortcode.
    Posts older than the window cannot be found.
    """
    if not shortcode or not shortcode.strip():
        raise ValidationError("Missing shortcode")
    shortcode = shortcode.strip()
    for item in items:
        if item.permalink and shortcode in item.permalink:
            return item
    raise NotFoundError(f"Post {shortcode} not found among the {len(items)} most recent posts")
