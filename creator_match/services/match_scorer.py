# creator_match/services/match_scorer.py
"""
Campaign/creator compatibility scoring.

Pure functions: the same campaign and creator always give the same
MatchResult. Four components, each capped on its own, summed and then capped
at 99 so a perfect 100 never appears:

    location    0 or 30
    vibe        0, 15 (soft match) or 20..40
    engagement  5, 10, 15 or 20
    bonus       0 or 10 (no reason string is emitted for it)
"""
from typing import Iterable, List, Optional, Sequence, Tuple

from creator_match.schemas.matching import (
    CampaignBrief,
    CreatorProfile,
    MatchBreakdown,
    MatchResult,
    RankedMatch,
)

MAX_SCORE = 99
LOCATION_POINTS = 30
VIBE_CAP = 40
VIBE_FIRST_MATCH = 20
VIBE_EXTRA_MATCH = 10
VIBE_SOFT_MATCH = 15
BONUS_POINTS = 10
BONUS_FOLLOWER_THRESHOLD = 1000
WILDCARD_LOCATIONS = {"global", "any"}

# (minimum engagement rate, points, reason)
ENGAGEMENT_TIERS: Tuple[Tuple[float, int, Optional[str]], ...] = (
    (5.0, 20, "Exceptional Engagement"),
    (3.0, 15, "High Engagement"),
    (1.5, 10, "Good Engagement"),
)
ENGAGEMENT_FLOOR = 5


def _clean(tags: Iterable[str]) -> List[str]:
    return [t.strip().lower() for t in tags if t and t.strip()]


def score_location(campaign_location: Optional[str], creator_location: Optional[str]) -> Tuple[int, Optional[str]]:
    wanted = (campaign_location or "").strip().lower()
    if not wanted:
        return LOCATION_POINTS, None
    if wanted in WILDCARD_LOCATIONS or wanted in (creator_location or "").lower():
        return LOCATION_POINTS, "Perfect Location Match"
    return 0, None


def matched_vibes(vibes: Sequence[str], categories: Sequence[str]) -> List[str]:
    cats = _clean(categories)
    matched = []
    for vibe in vibes:
        v = (vibe or "").strip().lower()
        if v and any(v in c or c in v for c in cats):
            matched.append(vibe.strip())
    return matched


def score_vibe(campaign: CampaignBrief, categories: Sequence[str]) -> Tuple[int, Optional[str]]:
    matched = matched_vibes(campaign.vibes, categories)
    if matched:
        points = min(VIBE_CAP, VIBE_FIRST_MATCH + VIBE_EXTRA_MATCH * (len(matched) - 1))
        return points, f"Matches vibes: {', '.join(matched[:2])}"

    cats = _clean(categories)
    if cats:
        context = f"{campaign.name} {campaign.description or ''}".lower()
        if any(c in context for c in cats):
            return VIBE_SOFT_MATCH, "Content relevant to campaign"
    return 0, None


def score_engagement(engagement_rate: float) -> Tuple[int, Optional[str]]:
    for threshold, points, reason in ENGAGEMENT_TIERS:
        if engagement_rate >= threshold:
            return points, reason
    return ENGAGEMENT_FLOOR, None


def score_bonus(followers: int) -> int:
    return BONUS_POINTS if followers > BONUS_FOLLOWER_THRESHOLD else 0


def calculate_match_score(campaign: CampaignBrief, creator: CreatorProfile) -> MatchResult:
    reasons: List[str] = []
    metrics = creator.metrics
    engagement_rate = metrics.engagement_rate if metrics else 0.0
    followers = metrics.followers if metrics else 0

    location, reason = score_location(campaign.location, creator.location)
    if reason:
        reasons.append(reason)

    vibe, reason = score_vibe(campaign, creator.categories)
    if reason:
        reasons.append(reason)

    engagement, reason = score_engagement(engagement_rate)
    if reason:
        reasons.append(reason)

    bonus = score_bonus(followers)

    breakdown = MatchBreakdown(location=location, vibe=vibe, engagement=engagement, bonus=bonus)
    return MatchResult(score=min(MAX_SCORE, breakdown.total), breakdown=breakdown, reasons=reasons)


def rank_creators(campaign: CampaignBrief, creators: Iterable[Tuple[str, CreatorProfile]]) -> List[RankedMatch]:
    """Highest score first; equal scores ordered by creator id."""
    ranked = []
    for creator_id, profile in creators:
        result = calculate_match_score(campaign, profile)
        ranked.append(
            RankedMatch(
                creator_id=creator_id,
                score=result.score,
                breakdown=result.breakdown,
                reasons=result.reasons,
            )
        )
    ranked.sort(key=lambda m: (-m.score, m.creator_id))
    return ranked
