# creator_match/routers/match_router.py
from fastapi import APIRouter, Depends

from creator_match.context import AppContext
from creator_match.dependencies.context import get_context
from creator_match.schemas.matching import CreatorProfile
from creator_match.schemas.requests import MatchRequest, RankRequest
from creator_match.services.match_scorer import calculate_match_score, rank_creators

router = APIRouter(prefix="/match", tags=["match"])


@router.post("")
async def match(payload: MatchRequest):
    result = calculate_match_score(payload.campaign, payload.creator)
    return {"success": True, "match": result.model_dump()}


@router.post("/rank")
async def rank(payload: RankRequest, ctx: AppContext = Depends(get_context)):
    """Creators sent without metrics are scored from their stored snapshot."""
    missing = [c.id for c in payload.creators if c.metrics is None]
    stored = await ctx.store.get_metrics_many(missing) if missing else {}

    candidates = [
        (
            c.id,
            CreatorProfile(categories=c.categories, location=c.location, metrics=c.metrics or stored.get(c.id)),
        )
        for c in payload.creators
    ]
    ranked = rank_creators(payload.campaign, candidates)
    return {"success": True, "data": [m.model_dump(by_alias=True) for m in ranked]}
