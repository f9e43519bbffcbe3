# creator_match/schemas/matching.py
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from creator_match.schemas.social import MetricsSnapshot


class CampaignBrief(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    description: Optional[str] = None
    location: Optional[str] = None  # a place, "global", "any", or absent
    vibes: List[str] = Field(default_factory=list)


class CreatorProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    categories: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    metrics: Optional[MetricsSnapshot] = None


class MatchBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    location: int = Field(default=0, ge=0, le=30)
    vibe: int = Field(default=0, ge=0, le=40)
    engagement: int = Field(default=0, ge=0, le=20)
    bonus: int = Field(default=0, ge=0, le=10)

    @property
    def total(self) -> int:
        return self.location + self.vibe + self.engagement + self.bonus


class MatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=99)
    breakdown: MatchBreakdown
    reasons: List[str] = Field(default_factory=list)


class RankedMatch(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    creator_id: str
    score: int
    breakdown: MatchBreakdown
    reasons: List[str]
