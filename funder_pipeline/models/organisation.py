"""Organisation - a funder and/or recipient in the 360Giving ecosystem."""

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from .common import as_utc


class CurrencyStats(BaseModel):
    """Per-currency grant aggregates."""

    grants: int = Field(0, ge=0, description="Number of grants in this currency")
    avg: float = Field(0.0, description="Average amount awarded")
    min: float = Field(0.0, description="Smallest amount awarded")
    max: float = Field(0.0, description="Largest amount awarded")
    total: float = Field(0.0, description="Total amount awarded")


class AggregateStats(BaseModel):
    grants: int = Field(0, ge=0, description="Total grants across all currencies")
    currencies: Dict[str, CurrencyStats] = Field(default_factory=dict)


class OrganisationStats(BaseModel):
    """Funder or recipient statistics as published by 360Giving.

    Validated at the ingestion boundary so malformed upstream blobs fail
    there rather than when the matcher reads them.
    """

    aggregate: AggregateStats = Field(default_factory=AggregateStats)

    @property
    def total_grants(self) -> int:
        return self.aggregate.grants

    def currency(self, code: str) -> CurrencyStats:
        """Stats for ``code``, or zeroed stats if the funder never used it."""
        return self.aggregate.currencies.get(code, CurrencyStats())


class Organisation(BaseModel):
    """Organisation row, upserted by the sync keyed on ``org_id``."""

    org_id: str = Field(..., description="Stable 360Giving organisation identifier")
    name: str = Field(..., description="Organisation name")
    is_funder: bool = Field(default=False)
    is_recipient: bool = Field(default=False)
    funder_stats: Optional[OrganisationStats] = None
    recipient_stats: Optional[OrganisationStats] = None
    last_grant_made_date: Optional[datetime] = Field(
        None, description="Award date of the funder's most recent grant"
    )

    @field_validator("last_grant_made_date")
    @classmethod
    def normalise_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    @property
    def total_grants(self) -> int:
        return self.funder_stats.total_grants if self.funder_stats else 0
