"""Response shapes of the 360Giving API (``/org/`` endpoints).

Page ``results`` stay as raw dicts. Each entry is validated on its own by the
caller (``OrganisationSummary`` / ``GrantRecord``), so one bad record never
discards the rest of its page.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .organisation import OrganisationStats


class _Page(BaseModel):
    model_config = ConfigDict(extra="allow")

    count: int = 0
    next: Optional[str] = None
    previous: Optional[str] = None
    results: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def has_next(self) -> bool:
        return self.next is not None


class OrganisationSummary(BaseModel):
    model_config = ConfigDict(extra="allow")

    org_id: str
    name: str


class OrganisationPage(_Page):
    """``GET /org/``; ``results`` are raw ``OrganisationSummary`` payloads."""


class OrganisationDetail(BaseModel):
    """``GET /org/{id}/``. ``funder``/``recipient`` are null when absent."""

    model_config = ConfigDict(extra="allow")

    org_id: str
    name: str = ""
    funder: Optional[OrganisationStats] = None
    recipient: Optional[OrganisationStats] = None


class GrantPage(_Page):
    """``GET /org/{id}/grants_made/`` and ``grants_received/``; raw ``GrantRecord`` payloads."""
