"""Charity Commission profile of the charity being matched."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

WHAT = "What"
WHO = "Who"


class Classification(BaseModel):
    """One ``who_what_where`` entry."""

    model_config = ConfigDict(extra="ignore")

    classification_code: str = ""
    classification_type: str = ""
    classification_desc: str = ""

    @field_validator("classification_code", mode="before")
    @classmethod
    def code_as_text(cls, v):
        return "" if v is None else str(v)


class AreaRegion(BaseModel):
    model_config = ConfigDict(extra="ignore")

    region: str


class AreaLocalAuthority(BaseModel):
    model_config = ConfigDict(extra="ignore")

    local_authority: str
    metropolitan_county: Optional[str] = None
    welsh_ind: bool = False


class CharityProfile(BaseModel):
    """Subset of the Charity Commission register record used for matching."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    reg_charity_number: int
    charity_name: str
    latest_income: Optional[float] = None
    latest_expenditure: Optional[float] = None
    who_what_where: List[Classification] = Field(default_factory=list)
    regions: List[AreaRegion] = Field(default_factory=list, alias="CharityAoORegion")
    local_authorities: List[AreaLocalAuthority] = Field(
        default_factory=list, alias="CharityAoOLocalAuthority"
    )

    def classifications(self, classification_type: str) -> List[Classification]:
        return [c for c in self.who_what_where if c.classification_type == classification_type]

    @property
    def activities(self) -> List[Classification]:
        return self.classifications(WHAT)

    @property
    def beneficiaries(self) -> List[Classification]:
        return self.classifications(WHO)

    @property
    def region_names(self) -> List[str]:
        return [r.region for r in self.regions]
