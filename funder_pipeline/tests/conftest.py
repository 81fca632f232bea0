"""Pytest configuration, in-memory fakes and fixtures."""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple, Union

import pytest
from pydantic import BaseModel

from funder_pipeline.errors import NotFound, StoreError
from funder_pipeline.models import (
    AggregateStats,
    CharityProfile,
    CurrencyStats,
    Grant,
    GrantPage,
    GrantRecord,
    MatchCacheEntry,
    Organisation,
    OrganisationDetail,
    OrganisationPage,
    OrganisationStats,
    OrganisationSummary,
    SyncLog,
    SyncStatus,
    SyncType,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock a test can move forward by hand."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class InMemoryStore:
    """In-memory replacement for SupabaseStore.

    Upserts are keyed the same way as the real tables. Put a method name in
    ``fail_on`` to make that call raise StoreError.
    """

    def __init__(self):
        self.organisations: Dict[str, Organisation] = {}
        self.grants: Dict[str, Grant] = {}
        self.sync_logs: List[SyncLog] = []
        self.cache: Dict[Tuple[int, str], MatchCacheEntry] = {}
        self.fail_on: Set[str] = set()
        self.grant_upserts = 0

    def _check(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StoreError(f"Failed to {operation}: simulated outage")

    # Sync logs

    def get_last_completed_sync(self) -> Optional[datetime]:
        self._check("get_last_completed_sync")
        completed = [
            log.completed_at
            for log in self.sync_logs
            if log.status is SyncStatus.COMPLETED and log.completed_at
        ]
        return max(completed) if completed else None

    def create_sync_log(self, sync_type: SyncType, started_at: datetime) -> SyncLog:
        self._check("create_sync_log")
        log = SyncLog(id=str(len(self.sync_logs) + 1), sync_type=sync_type, started_at=started_at)
        self.sync_logs.append(log)
        return log

    def _log(self, log_id: str) -> SyncLog:
        return next(log for log in self.sync_logs if log.id == log_id)

    def complete_sync_log(self, log_id, orgs_synced, grants_synced, completed_at) -> None:
        self._check("complete_sync_log")
        log = self._log(log_id)
        log.status = SyncStatus.COMPLETED
        log.orgs_synced = orgs_synced
        log.grants_synced = grants_synced
        log.completed_at = completed_at

    def fail_sync_log(self, log_id, error_message, completed_at) -> None:
        self._check("fail_sync_log")
        log = self._log(log_id)
        log.status = SyncStatus.FAILED
        log.error_message = error_message[:1000]
        log.completed_at = completed_at

    # Organisations

    def upsert_organisation(self, org: Organisation) -> dict:
        self._check("upsert_organisation")
        existing = self.organisations.get(org.org_id)
        kept_date = existing.last_grant_made_date if existing else None
        self.organisations[org.org_id] = org.model_copy(update={"last_grant_made_date": kept_date})
        return org.model_dump(mode="json")

    def update_last_grant_made_date(self, org_id: str, award_date: datetime) -> None:
        self._check("update_last_grant_made_date")
        if org_id in self.organisations:
            org = self.organisations[org_id]
            self.organisations[org_id] = org.model_copy(update={"last_grant_made_date": award_date})

    def list_funders(self, limit: int = 50, order_by_grant_count: bool = False) -> List[Organisation]:
        self._check("list_funders")
        funders = [o for o in self.organisations.values() if o.is_funder]
        if order_by_grant_count:
            funders = sorted(funders, key=lambda o: o.total_grants, reverse=True)
        return funders[:limit]

    def get_organisation(self, org_id: str) -> Optional[Organisation]:
        self._check("get_organisation")
        return self.organisations.get(org_id)

    # Grants

    def grant_exists(self, grant_id: str) -> bool:
        self._check("grant_exists")
        return grant_id in self.grants

    def upsert_grant(self, grant: Grant) -> dict:
        self._check("upsert_grant")
        self.grants[grant.grant_id] = grant
        self.grant_upserts += 1
        return grant.model_dump(mode="json")

    def get_recent_grants(self, funder_org_id: str, limit: int = 10) -> List[Grant]:
        self._check("get_recent_grants")
        grants = [g for g in self.grants.values() if g.funder_org_id == funder_org_id]
        floor = datetime.min.replace(tzinfo=timezone.utc)
        grants.sort(key=lambda g: g.award_date or floor, reverse=True)
        return grants[:limit]

    # Match cache

    def get_cache_entry(self, charity_number, cache_key, now=None) -> Optional[MatchCacheEntry]:
        self._check("get_cache_entry")
        now = now or datetime.now(timezone.utc)
        entry = self.cache.get((charity_number, cache_key))
        return entry if entry is not None and entry.expires_at > now else None

    def upsert_cache_entry(self, entry: MatchCacheEntry) -> None:
        self._check("upsert_cache_entry")
        self.cache[(entry.charity_number, entry.cache_key)] = entry

    def delete_cache_entries_before(self, sync_date: datetime) -> int:
        self._check("delete_cache_entries_before")
        # NULL < x is not true in SQL, so unsynced entries survive
        stale = [k for k, e in self.cache.items() if e.last_sync_at and e.last_sync_at < sync_date]
        for key in stale:
            del self.cache[key]
        return len(stale)

    def delete_expired_cache_entries(self, now=None) -> int:
        self._check("delete_expired_cache_entries")
        now = now or datetime.now(timezone.utc)
        expired = [k for k, e in self.cache.items() if e.expires_at < now]
        for key in expired:
            del self.cache[key]
        return len(expired)


# ---------------------------------------------------------------------------
# Fake 360Giving client
# ---------------------------------------------------------------------------


class FakeGrantDataClient:
    """Serves canned organisations, details and grant pages.

    A detail or grant-page value that is an Exception is raised instead.
    Page entries are served as raw payloads, the way the API client returns
    them; plain dicts pass through untouched so a test can plant a bad one.
    """

    def __init__(
        self,
        organisations: Optional[List[Union[OrganisationSummary, dict]]] = None,
        details: Optional[Dict[str, Union[OrganisationDetail, Exception]]] = None,
        grants_made: Optional[Dict[str, Union[List[Union[GrantRecord, dict]], Exception]]] = None,
    ):
        self.organisations = organisations or []
        self.details = details or {}
        self.grants_made = grants_made or {}
        self.calls: List[Tuple] = []

    async def list_organisations(self, limit=1000, offset=0) -> OrganisationPage:
        self.calls.append(("list_organisations", limit, offset))
        results = self.organisations[offset: offset + limit]
        has_more = offset + limit < len(self.organisations)
        return OrganisationPage(
            count=len(self.organisations),
            next=f"?offset={offset + limit}" if has_more else None,
            results=[_raw(o) for o in results],
        )

    async def get_organisation_detail(self, org_id: str) -> OrganisationDetail:
        self.calls.append(("get_organisation_detail", org_id))
        detail = self.details.get(org_id)
        if detail is None:
            raise NotFound()
        if isinstance(detail, Exception):
            raise detail
        return detail

    async def list_grants_made(self, org_id: str, limit=100, offset=0) -> GrantPage:
        self.calls.append(("list_grants_made", org_id, limit, offset))
        records = self.grants_made.get(org_id, [])
        if isinstance(records, Exception):
            raise records
        return GrantPage(
            count=len(records), results=[_raw(r) for r in records[offset: offset + limit]]
        )


def _raw(item: Union[BaseModel, dict]) -> dict:
    if isinstance(item, BaseModel):
        return item.model_dump(mode="json", by_alias=True, exclude_none=True)
    return item


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_stats(grants: int, avg: float = 25_000.0, total: Optional[float] = None) -> OrganisationStats:
    return OrganisationStats(
        aggregate=AggregateStats(
            grants=grants,
            currencies={
                "GBP": CurrencyStats(
                    grants=grants, avg=avg, min=avg / 2, max=avg * 2,
                    total=total if total is not None else avg * grants,
                )
            },
        )
    )


def make_funder(org_id: str, name: Optional[str] = None, grants: int = 10, **kwargs) -> Organisation:
    return Organisation(
        org_id=org_id,
        name=name or f"Funder {org_id}",
        is_funder=True,
        funder_stats=make_stats(grants),
        **kwargs,
    )


def make_grant_record(
    grant_id: str,
    funder_id: str,
    award_date: Optional[str] = "2024-03-01",
    amount: float = 10_000,
    recipient_id: Optional[str] = "GB-CHC-900001",
    title: Optional[str] = None,
) -> GrantRecord:
    data = {"title": title or f"Grant {grant_id}", "amountAwarded": amount, "currency": "GBP"}
    if award_date:
        data["awardDate"] = award_date
    return GrantRecord.model_validate(
        {
            "grant_id": grant_id,
            "data": data,
            "funders": [{"org_id": funder_id}],
            "recipients": [{"org_id": recipient_id}] if recipient_id else [],
        }
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def clock():
    return FixedClock(utc(2024, 6, 1, 12, 0))


@pytest.fixture
def charity_profile_data():
    """Charity Commission register record, as returned by its API."""
    return {
        "reg_charity_number": 1123456,
        "charity_name": "Riverside Youth Trust",
        "latest_income": 52_000,
        "latest_expenditure": 48_500,
        "who_what_where": [
            {"classification_code": 101, "classification_type": "What",
             "classification_desc": "General Charitable Purposes"},
            {"classification_code": 105, "classification_type": "What",
             "classification_desc": "Education/training"},
            {"classification_code": 202, "classification_type": "Who",
             "classification_desc": "Children/young People"},
            {"classification_code": 301, "classification_type": "How",
             "classification_desc": "Makes Grants To Individuals"},
        ],
        "CharityAoORegion": [{"region": "London"}, {"region": "South East"}],
        "CharityAoOLocalAuthority": [{"local_authority": "Southwark", "welsh_ind": False}],
        "charity_type": "Trust",
    }


@pytest.fixture
def charity_profile(charity_profile_data):
    return CharityProfile.model_validate(charity_profile_data)


@pytest.fixture
def funders():
    return [
        make_funder("GB-CHC-1000", "Big Lottery Community", grants=500),
        make_funder("GB-CHC-2000", "City Bridge Trust", grants=300),
        make_funder("GB-CHC-3000", "Esmee Fairbairn", grants=120),
    ]
