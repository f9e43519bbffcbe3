# creator_match/routers/metrics_router.py
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from creator_match.context import AppContext
from creator_match.dependencies.context import get_context
from creator_match.errors import TokenExpiredError
from creator_match.schemas.requests import PostMetricsRequest, RefreshMetricsRequest

router = APIRouter(tags=["metrics"])


@router.post("/postMetrics")
async def post_metrics(payload: PostMetricsRequest, ctx: AppContext = Depends(get_context)):
    metrics = await ctx.connect.post_metrics(payload.user_id, payload.post_id)
    return {"success": True, "metrics": metrics.model_dump(by_alias=True)}


@router.post("/metrics/refresh")
async def refresh_metrics(payload: RefreshMetricsRequest, ctx: AppContext = Depends(get_context)):
    try:
        snapshot = await ctx.connect.refresh_metrics(payload.user_id)
    except TokenExpiredError as exc:
        return JSONResponse(status_code=401, content={"success": False, "error": exc.message, "details": exc.details})
    return {"success": True, "metrics": snapshot.to_document()}
