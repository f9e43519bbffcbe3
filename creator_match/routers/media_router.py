# creator_match/routers/media_router.py
from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
import structlog

from creator_match.context import AppContext
from creator_match.dependencies.context import get_context
from creator_match.errors import ProviderError
from creator_match.schemas.requests import MediaRequest

logger = structlog.get_logger(__name__)
router = APIRouter(tags=["media"])


@router.api_route("/media", methods=["GET", "POST"])
async def recent_media(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    payload: Optional[MediaRequest] = Body(default=None),
    ctx: AppContext = Depends(get_context),
):
    """
    Provider errors are reported in the body with HTTP 200, unlike
    /auth/exchange which answers 500.
    """
    uid = user_id or (payload.user_id if payload else None)
    try:
        items = await ctx.connect.list_media(uid)
    except ProviderError as exc:
        logger.warning("media_list_failed", user_id=uid, error=exc.message, status=exc.status)
        return {"success": False, "error": exc.message, "details": exc.details or exc.message}
    return {"success": True, "data": [item.to_public() for item in items]}
