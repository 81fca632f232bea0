"""Supabase store for organisations, grants, sync logs and the match cache."""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError
from supabase import Client, create_client

from ..errors import StoreError
from ..models.common import as_utc
from ..models import Grant, MatchCacheEntry, Organisation, SyncLog, SyncStatus, SyncType

logger = logging.getLogger(__name__)

ORGANISATIONS = "organisations"
GRANTS = "grants"
SYNC_LOGS = "sync_logs"
MATCH_CACHE = "match_cache"

RowT = TypeVar("RowT", bound=BaseModel)

# PostgREST timestamps may carry 1-6 fractional digits and no offset
_TIMESTAMP = TypeAdapter(datetime)


class SupabaseStore:
    """Client for the organisations, grants, sync_logs and match_cache tables.

    All writes are upserts keyed by natural identity, so retried or
    overlapping syncs converge instead of duplicating rows.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
    ) -> None:
        """Connect to the project holding the four pipeline tables.

        Args:
            url: Project URL; SUPABASE_URL when omitted.
            key: Service-role key; SUPABASE_KEY when omitted. Writes to
                sync_logs and match_cache need a key that bypasses RLS.
        """
        self._url = url or os.environ["SUPABASE_URL"]
        self._key = key or os.environ["SUPABASE_KEY"]
        self._client: Client = create_client(self._url, self._key)

    # ------------------------------------------------------------------
    # Sync logs
    # ------------------------------------------------------------------

    def get_last_completed_sync(self) -> Optional[datetime]:
        """Return ``completed_at`` of the most recent completed sync, if any."""
        rows = self._execute(
            self._client.table(SYNC_LOGS)
            .select("completed_at")
            .eq("status", SyncStatus.COMPLETED.value)
            .order("completed_at", desc=True)
            .limit(1),
            "read last completed sync",
        )
        if not rows or not rows[0].get("completed_at"):
            return None
        try:
            return as_utc(_TIMESTAMP.validate_python(rows[0]["completed_at"]))
        except ValidationError as exc:
            raise StoreError(f"Failed to read last completed sync: {exc}") from exc

    def create_sync_log(self, sync_type: SyncType, started_at: datetime) -> SyncLog:
        rows = self._execute(
            self._client.table(SYNC_LOGS).insert(
                {
                    "sync_type": sync_type.value,
                    "status": SyncStatus.RUNNING.value,
                    "orgs_synced": 0,
                    "grants_synced": 0,
                    "started_at": started_at.isoformat(),
                }
            ),
            "create sync log",
        )
        if not rows:
            raise StoreError("create sync log: no row returned")
        return self._parse(SyncLog, rows[0], "create sync log")

    def complete_sync_log(
        self, log_id: str, orgs_synced: int, grants_synced: int, completed_at: datetime
    ) -> None:
        self._execute(
            self._client.table(SYNC_LOGS)
            .update(
                {
                    "status": SyncStatus.COMPLETED.value,
                    "orgs_synced": orgs_synced,
                    "grants_synced": grants_synced,
                    "completed_at": completed_at.isoformat(),
                }
            )
            .eq("id", log_id),
            "complete sync log",
        )
        logger.info("Sync log %s completed: %d orgs, %d grants", log_id, orgs_synced, grants_synced)

    def fail_sync_log(self, log_id: str, error_message: str, completed_at: datetime) -> None:
        self._execute(
            self._client.table(SYNC_LOGS)
            .update(
                {
                    "status": SyncStatus.FAILED.value,
                    "error_message": error_message[:1000],
                    "completed_at": completed_at.isoformat(),
                }
            )
            .eq("id", log_id),
            "fail sync log",
        )

    # ------------------------------------------------------------------
    # Organisations
    # ------------------------------------------------------------------

    def upsert_organisation(self, org: Organisation) -> Dict[str, Any]:
        """Insert or update an organisation keyed by org_id.

        ``last_grant_made_date`` is owned by the grant phase and left alone.
        """
        record = org.model_dump(mode="json", exclude={"last_grant_made_date"})
        rows = self._execute(
            self._client.table(ORGANISATIONS).upsert(record, on_conflict="org_id"),
            f"upsert organisation {org.org_id}",
        )
        return rows[0] if rows else {}

    def update_last_grant_made_date(self, org_id: str, award_date: datetime) -> None:
        self._execute(
            self._client.table(ORGANISATIONS)
            .update({"last_grant_made_date": award_date.isoformat()})
            .eq("org_id", org_id),
            f"update last grant date for {org_id}",
        )

    def list_funders(self, limit: int = 50, order_by_grant_count: bool = False) -> List[Organisation]:
        """Organisations flagged ``is_funder``, optionally busiest first."""
        query = self._client.table(ORGANISATIONS).select("*").eq("is_funder", True)
        if order_by_grant_count:
            query = query.order("funder_stats->aggregate->grants", desc=True)
        rows = self._execute(query.limit(limit), "list funders")
        return [self._parse(Organisation, row, "list funders") for row in rows]

    def get_organisation(self, org_id: str) -> Optional[Organisation]:
        rows = self._execute(
            self._client.table(ORGANISATIONS).select("*").eq("org_id", org_id).limit(1),
            f"read organisation {org_id}",
        )
        return self._parse(Organisation, rows[0], f"read organisation {org_id}") if rows else None

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    def grant_exists(self, grant_id: str) -> bool:
        rows = self._execute(
            self._client.table(GRANTS).select("grant_id").eq("grant_id", grant_id).limit(1),
            f"check grant {grant_id}",
        )
        return bool(rows)

    def upsert_grant(self, grant: Grant) -> Dict[str, Any]:
        """Insert or update a grant keyed by grant_id."""
        record = grant.model_dump(mode="json", by_alias=True)
        rows = self._execute(
            self._client.table(GRANTS).upsert(record, on_conflict="grant_id"),
            f"upsert grant {grant.grant_id}",
        )
        logger.debug("Upserted grant %s", grant.grant_id)
        return rows[0] if rows else {}

    def get_recent_grants(self, funder_org_id: str, limit: int = 10) -> List[Grant]:
        """Most recent grants made by a funder, newest award first."""
        rows = self._execute(
            self._client.table(GRANTS)
            .select("*")
            .eq("funder_org_id", funder_org_id)
            .order("award_date", desc=True)
            .limit(limit),
            f"read grants for {funder_org_id}",
        )
        return [self._parse(Grant, row, f"read grants for {funder_org_id}") for row in rows]

    # ------------------------------------------------------------------
    # Match cache
    # ------------------------------------------------------------------

    def get_cache_entry(
        self, charity_number: int, cache_key: str, now: Optional[datetime] = None
    ) -> Optional[MatchCacheEntry]:
        """Return the unexpired entry for ``(charity_number, cache_key)``."""
        now = now or datetime.now(timezone.utc)
        rows = self._execute(
            self._client.table(MATCH_CACHE)
            .select("*")
            .eq("charity_number", charity_number)
            .eq("cache_key", cache_key)
            .gt("expires_at", now.isoformat())
            .limit(1),
            f"read match cache for {charity_number}",
        )
        if not rows:
            return None
        return self._parse(MatchCacheEntry, rows[0], f"read match cache for {charity_number}")

    def upsert_cache_entry(self, entry: MatchCacheEntry) -> None:
        self._execute(
            self._client.table(MATCH_CACHE).upsert(
                entry.model_dump(mode="json", by_alias=True),
                on_conflict="charity_number,cache_key",
            ),
            f"write match cache for {entry.charity_number}",
        )

    def delete_cache_entries_before(self, sync_date: datetime) -> int:
        """Delete entries computed against a sync older than ``sync_date``."""
        rows = self._execute(
            self._client.table(MATCH_CACHE).delete().lt("last_sync_at", sync_date.isoformat()),
            "invalidate match cache",
        )
        return len(rows)

    def delete_expired_cache_entries(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        rows = self._execute(
            self._client.table(MATCH_CACHE).delete().lt("expires_at", now.isoformat()),
            "purge expired match cache",
        )
        return len(rows)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _execute(query: Any, action: str) -> List[Dict[str, Any]]:
        try:
            response = query.execute()
        except Exception as exc:
            raise StoreError(f"Failed to {action}: {exc}") from exc
        return response.data or []

    @staticmethod
    def _parse(model: Type[RowT], row: Dict[str, Any], action: str) -> RowT:
        try:
            return model.model_validate(row)
        except ValidationError as exc:
            raise StoreError(f"Failed to {action}: unreadable row: {exc}") from exc
