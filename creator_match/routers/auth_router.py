# creator_match/routers/auth_router.py
from fastapi import APIRouter, Depends

from creator_match.context import AppContext
from creator_match.dependencies.context import get_context
from creator_match.schemas.requests import ExchangeRequest

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/exchange")
async def exchange(payload: ExchangeRequest, ctx: AppContext = Depends(get_context)):
    """
    Exchanges an Instagram authorization code for a long-lived token and
    stores the connected account. Provider failures answer 500 through the
    app's ProviderError handler.
    """
    result = await ctx.connect.connect(payload.code, payload.user_id)
    return {
        "success": True,
        "data": {
            "id": result.link.external_id,
            "username": result.link.username,
            "engagementRate": result.snapshot.engagement_rate if result.snapshot else 0,
            "access_token": result.link.access_token,
        },
    }
