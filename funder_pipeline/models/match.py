"""Funder-match results and their cache entries."""

from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import as_utc
from .grant import Grant
from .organisation import Organisation

Score = Annotated[float, Field(ge=0, le=100)]


class ScoreBreakdown(BaseModel):
    """The five scoring factors, each 0-100."""

    mission_alignment: Score
    geographic_fit: Score
    size_compatibility: Score
    activity_level: Score
    historical_precedent: Score


class SimilarCharity(BaseModel):
    model_config = ConfigDict(extra="ignore")

    charity_name: str = ""
    grant_amount: Optional[float] = None
    award_date: Optional[str] = None
    grant_purpose: str = ""


class MatchResponseItem(BaseModel):
    """One element of the JSON array returned by the scoring service."""

    model_config = ConfigDict(extra="ignore")

    funder_org_id: str
    match_score: Score
    score_breakdown: ScoreBreakdown
    reasoning: str = ""
    similar_charities_funded: List[SimilarCharity] = Field(default_factory=list)

    @field_validator("similar_charities_funded", mode="before")
    @classmethod
    def null_as_empty(cls, v):
        return v or []


class FunderMatch(BaseModel):
    funder: Organisation
    match_score: float
    score_breakdown: ScoreBreakdown
    reasoning: str
    similar_charities_funded: List[SimilarCharity] = Field(default_factory=list)


class MatchCacheEntry(BaseModel):
    """Keyed by ``(charity_number, cache_key)``."""

    charity_number: int
    cache_key: str
    charity_name: Optional[str] = None
    matches: List[FunderMatch] = Field(default_factory=list)
    funder_count: int = 0
    last_sync_at: Optional[datetime] = Field(
        None, description="Last completed sync when the matches were computed"
    )
    created_at: datetime
    expires_at: datetime

    @field_validator("last_sync_at", "created_at", "expires_at")
    @classmethod
    def normalise_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    def is_live(self, now: datetime) -> bool:
        return now < self.expires_at


class FunderStatsSummary(BaseModel):
    total_grants: int = 0
    avg_amount: float = 0.0
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None


class FunderDetails(BaseModel):
    funder: Organisation
    grants: List[Grant] = Field(default_factory=list)
    stats: FunderStatsSummary = Field(default_factory=FunderStatsSummary)
