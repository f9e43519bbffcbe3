# creator_match/schemas/requests.py
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from creator_match.schemas.matching import CampaignBrief, CreatorProfile
from creator_match.schemas.social import MetricsSnapshot


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExchangeRequest(_CamelModel):
    code: Optional[str] = None
    user_id: Optional[str] = None


class MediaRequest(_CamelModel):
    user_id: Optional[str] = None


class PostMetricsRequest(_CamelModel):
    user_id: Optional[str] = None
    post_id: Optional[str] = None  # shortcode or post URL


class RefreshMetricsRequest(_CamelModel):
    user_id: Optional[str] = None


class MatchRequest(_CamelModel):
    campaign: CampaignBrief
    creator: CreatorProfile


class RankCandidate(_CamelModel):
    id: str
    categories: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    metrics: Optional[MetricsSnapshot] = None


class RankRequest(_CamelModel):
    campaign: CampaignBrief
    creators: List[RankCandidate] = Field(default_factory=list)
