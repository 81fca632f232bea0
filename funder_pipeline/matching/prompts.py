"""LLM prompt templates for funder matching.

The system prompt defines the five scoring factors (each 0-100). The user
prompt is rendered deterministically from the charity profile and the
funders with their recent grants, and asks for a JSON array back.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from ..models import CharityProfile, Grant, Organisation

SAMPLE_GRANTS_IN_PROMPT = 5
DESCRIPTION_PREVIEW_CHARS = 200

MATCHING_SYSTEM_PROMPT = """You are an expert grant advisor for UK charities. Your role is to analyze charity profiles and match them with the most suitable funders based on historical grant data.

When analyzing matches, consider these key factors:

1. **Mission Alignment** (0-100): How well does the funder's historical giving align with the charity's charitable purposes, activities, and beneficiaries?
2. **Geographic Fit** (0-100): Does the funder support organizations in the charity's geographic area?
3. **Size Compatibility** (0-100): Is the charity's income level within the typical range of organizations this funder supports?
4. **Activity Level** (0-100): How recently and frequently has this funder made grants? Are they actively giving?
5. **Historical Precedent** (0-100): Has the funder supported similar charities in the past?

For each funder, provide:
- Overall match score (weighted average of the 5 factors)
- Score breakdown for each factor
- Clear reasoning explaining why this funder is a good match
- Specific examples of similar charities they've funded

Be specific, evidence-based, and actionable in your recommendations."""

RESPONSE_FORMAT = """# Task

Analyze each funder above and score them for this charity. Return your response as a JSON array with this structure:

```json
[
  {
    "funder_org_id": "GB-CHC-123456",
    "match_score": 85,
    "score_breakdown": {
      "mission_alignment": 90,
      "geographic_fit": 85,
      "size_compatibility": 80,
      "activity_level": 95,
      "historical_precedent": 75
    },
    "reasoning": "This funder has a strong track record of supporting [specific activities] in [specific regions]. Their average grant size of £X aligns well with this charity's income level.",
    "similar_charities_funded": [
      {
        "charity_name": "Example Charity",
        "grant_amount": 50000,
        "award_date": "2023-06-15",
        "grant_purpose": "Core support for youth services"
      }
    ]
  }
]
```

Only use funder_org_id values listed above. Focus on the top 15-20 most relevant funders. Be specific and evidence-based in your reasoning."""


@dataclass
class FunderSample:
    """A funder plus a sample of its most recent grants."""

    funder: Organisation
    grants: List[Grant] = field(default_factory=list)


def build_matching_prompt(
    charity: CharityProfile,
    funders: Sequence[FunderSample],
    currency: str = "GBP",
) -> str:
    """Render the user prompt for one matching request."""
    activities = _join_or_default(c.classification_desc for c in charity.activities)
    beneficiaries = _join_or_default(c.classification_desc for c in charity.beneficiaries)
    regions = _join_or_default(charity.region_names)
    local_authorities = _join_or_default(la.local_authority for la in charity.local_authorities)

    sections = [
        "# Charity Profile to Match",
        "",
        f"**Charity Name:** {charity.charity_name}",
        f"**Registration Number:** {charity.reg_charity_number}",
        f"**Annual Income:** {_money(charity.latest_income, currency, 'Not available')}",
        f"**Annual Expenditure:** {_money(charity.latest_expenditure, currency, 'Not available')}",
        "",
        f"**Activities:** {activities}",
        f"**Beneficiaries:** {beneficiaries}",
        "**Geographic Areas:**",
        f"- Regions: {regions}",
        f"- Local Authorities: {local_authorities}",
        "",
        "---",
        "",
        "# Funders to Analyze",
        "",
    ]
    for index, sample in enumerate(funders, start=1):
        sections.extend(_funder_block(index, sample, currency))
    sections.append(RESPONSE_FORMAT)
    return "\n".join(sections)


def _funder_block(index: int, sample: FunderSample, currency: str) -> List[str]:
    funder = sample.funder
    stats = funder.funder_stats.currency(currency) if funder.funder_stats else None
    lines = [
        f"## Funder {index}: {funder.name}",
        f"**Org ID:** {funder.org_id}",
        f"**Total Grants Made:** {funder.total_grants}",
        f"**Average Grant ({currency}):** {_money(stats.avg if stats else 0, currency)}",
        f"**Total Granted ({currency}):** {_money(stats.total if stats else 0, currency)}",
        f"**Last Grant Date:** {_date(funder.last_grant_made_date, 'Unknown')}",
        "",
        "**Recent Grants (sample):**",
    ]
    for i, grant in enumerate(sample.grants[:SAMPLE_GRANTS_IN_PROMPT], start=1):
        lines.append(
            f"{i}. {grant.title or 'Untitled'} - "
            f"{_money(grant.amount_awarded or 0, grant.currency)} ({_date(grant.award_date, 'Unknown')})"
        )
        lines.append(f"   Recipient: {grant.recipient_org_id or 'Unknown'}")
        if grant.description:
            lines.append(f"   Description: {grant.description[:DESCRIPTION_PREVIEW_CHARS]}...")
    if not sample.grants:
        lines.append("No grants on record.")
    lines.extend(["", "---", ""])
    return lines


def _join_or_default(values, default: str = "Not specified") -> str:
    joined = ", ".join(v for v in values if v)
    return joined or default


def _money(amount: Optional[float], currency: str, default: str = "0") -> str:
    if amount is None:
        return default
    symbol = "£" if currency == "GBP" else f"{currency} "
    return f"{symbol}{amount:,.0f}"


def _date(value: Optional[datetime], default: str) -> str:
    return value.date().isoformat() if value else default
