"""Funder detail lookup: organisation, recent grants and summary stats."""

from ..errors import NotFound
from ..models import FunderDetails, FunderStatsSummary

GRANT_HISTORY_LIMIT = 100


def get_funder_details(store, funder_org_id: str, limit: int = GRANT_HISTORY_LIMIT) -> FunderDetails:
    """Raises NotFound when the funder is not in the store."""
    funder = store.get_organisation(funder_org_id)
    if funder is None:
        raise NotFound(f"Funder not found: {funder_org_id}")

    grants = store.get_recent_grants(funder_org_id, limit=limit)
    priced = [g for g in grants if g.award_date and g.amount_awarded]
    dates = sorted(g.award_date for g in priced)

    stats = FunderStatsSummary(
        total_grants=len(priced),
        avg_amount=sum(g.amount_awarded for g in priced) / len(priced) if priced else 0.0,
        earliest=dates[0] if dates else None,
        latest=dates[-1] if dates else None,
    )
    return FunderDetails(funder=funder, grants=grants, stats=stats)
