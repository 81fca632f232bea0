"""Grant records - raw 360Giving payloads and the normalised stored row."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import as_utc

DEFAULT_CURRENCY = "GBP"


class Classification(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: Optional[str] = None
    title: Optional[str] = None
    vocabulary: Optional[str] = None
    description: Optional[str] = None


class BeneficiaryLocation(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: Optional[str] = None
    country_code: Optional[str] = Field(None, alias="countryCode")


class GrantProgramme(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    code: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None


class GrantPayload(BaseModel):
    """The ``data`` block of a 360Giving grant, in 360Giving Data Standard form.

    Unknown keys are retained so the full payload can be stored for
    traceability.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    amount_awarded: Optional[float] = Field(None, ge=0, alias="amountAwarded")
    currency: Optional[str] = None
    award_date: Optional[datetime] = Field(None, alias="awardDate")
    grant_programme: List[GrantProgramme] = Field(default_factory=list, alias="grantProgramme")
    classifications: List[Classification] = Field(default_factory=list)
    beneficiary_location: List[BeneficiaryLocation] = Field(
        default_factory=list, alias="beneficiaryLocation"
    )

    @field_validator("award_date")
    @classmethod
    def normalise_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class OrgReference(BaseModel):
    model_config = ConfigDict(extra="allow")

    org_id: str


class GrantRecord(BaseModel):
    """One element of a ``grants_made`` / ``grants_received`` page."""

    model_config = ConfigDict(extra="allow")

    grant_id: str
    data: GrantPayload = Field(default_factory=GrantPayload)
    funders: List[OrgReference] = Field(default_factory=list)
    recipients: List[OrgReference] = Field(default_factory=list)

    @property
    def award_date(self) -> Optional[datetime]:
        return self.data.award_date

    def to_grant(self, default_funder_id: Optional[str] = None) -> "Grant":
        """Map to the stored row.

        The funder is the first listed funder (falling back to the funder being
        synced) and the recipient is the first listed recipient, if any.
        """
        payload = self.data
        funder_org_id = self.funders[0].org_id if self.funders else default_funder_id
        recipient_org_id = self.recipients[0].org_id if self.recipients else None
        return Grant(
            grant_id=self.grant_id,
            title=payload.title,
            description=payload.description,
            amount_awarded=payload.amount_awarded,
            currency=payload.currency,
            award_date=payload.award_date,
            funder_org_id=funder_org_id,
            recipient_org_id=recipient_org_id,
            grant_programme=payload.grant_programme,
            classifications=payload.classifications,
            beneficiary_location=payload.beneficiary_location,
            raw_data=payload.model_dump(mode="json", by_alias=True, exclude_none=True),
        )


class Grant(BaseModel):
    """Grant row, upserted keyed on ``grant_id``.

    Funder and recipient ids are soft references; either may point at an
    organisation that has not been synced yet.
    """

    grant_id: str = Field(..., description="Globally unique 360Giving grant identifier")
    title: Optional[str] = None
    description: Optional[str] = None
    amount_awarded: Optional[float] = Field(None, ge=0)
    currency: str = Field(default=DEFAULT_CURRENCY, description="ISO 4217 code")
    award_date: Optional[datetime] = None
    funder_org_id: Optional[str] = None
    recipient_org_id: Optional[str] = None
    grant_programme: List[GrantProgramme] = Field(default_factory=list)
    classifications: List[Classification] = Field(default_factory=list)
    beneficiary_location: List[BeneficiaryLocation] = Field(default_factory=list)
    raw_data: Dict[str, Any] = Field(default_factory=dict, description="Source payload as received")

    @field_validator("currency", mode="before")
    @classmethod
    def default_currency(cls, v: Optional[str]) -> str:
        return v or DEFAULT_CURRENCY

    @field_validator("award_date")
    @classmethod
    def normalise_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)
