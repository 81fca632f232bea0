"""Shared pydantic models - the contract between sync, store and matching."""

from .api import GrantPage, OrganisationDetail, OrganisationPage, OrganisationSummary
from .charity import CharityProfile
from .grant import DEFAULT_CURRENCY, Grant, GrantPayload, GrantRecord, OrgReference
from .match import (
    FunderDetails,
    FunderMatch,
    FunderStatsSummary,
    MatchCacheEntry,
    MatchResponseItem,
    ScoreBreakdown,
    SimilarCharity,
)
from .organisation import AggregateStats, CurrencyStats, Organisation, OrganisationStats
from .sync_log import SyncLog, SyncOptions, SyncResult, SyncStatus, SyncType

__all__ = [
    "AggregateStats",
    "CharityProfile",
    "CurrencyStats",
    "DEFAULT_CURRENCY",
    "FunderDetails",
    "FunderMatch",
    "FunderStatsSummary",
    "Grant",
    "GrantPage",
    "GrantPayload",
    "GrantRecord",
    "MatchCacheEntry",
    "MatchResponseItem",
    "OrgReference",
    "Organisation",
    "OrganisationDetail",
    "OrganisationPage",
    "OrganisationStats",
    "OrganisationSummary",
    "ScoreBreakdown",
    "SimilarCharity",
    "SyncLog",
    "SyncOptions",
    "SyncResult",
    "SyncStatus",
    "SyncType",
]
