"""Content-addressed cache of funder-match results.

The cache key is a digest of the charity's salient attributes plus the funder
population it was scored against. Income is bucketed and every list is
sorted, so immaterial variation (income moving within a band, funders listed
in a different order) still hits the cache.
"""

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional

from ..errors import StoreError
from ..models import CharityProfile, FunderMatch, MatchCacheEntry

logger = logging.getLogger(__name__)

CACHE_TTL = timedelta(days=7)
CACHE_KEY_LENGTH = 32

# (upper bound exclusive, bucket name)
INCOME_BUCKETS = (
    (10_000, "micro"),
    (100_000, "small"),
    (500_000, "medium"),
    (1_000_000, "large"),
    (5_000_000, "major"),
)


def income_bucket(income: Optional[float]) -> str:
    """Band an annual income; unknown income counts as zero."""
    income = income or 0
    for upper, name in INCOME_BUCKETS:
        if income < upper:
            return name
    return "national"


def _joined(values: Iterable[str]) -> str:
    return ",".join(sorted(values))


def compute_cache_key(profile: CharityProfile, funder_org_ids: Iterable[str]) -> str:
    """Stable fingerprint of ``profile`` against a funder population."""
    charity_details = {
        "reg_charity_number": profile.reg_charity_number,
        "income_bucket": income_bucket(profile.latest_income),
        "activities": _joined(c.classification_code for c in profile.activities),
        "beneficiaries": _joined(c.classification_code for c in profile.beneficiaries),
        "regions": _joined(profile.region_names),
    }
    payload = json.dumps(
        {"charityDetails": charity_details, "funderIds": _joined(funder_org_ids)},
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode()).hexdigest()[:CACHE_KEY_LENGTH]


class MatchCache:
    """Read-through/write-through cache over the store's match_cache table.

    Caching never turns a good computation into a failure: read errors are
    misses and write errors are logged and dropped.
    """

    def __init__(
        self,
        store,
        ttl: timedelta = CACHE_TTL,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self.ttl = ttl
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def lookup(self, charity_number: int, cache_key: str) -> Optional[List[FunderMatch]]:
        """Return cached matches, or ``None`` on a miss.

        An entry is a miss once it has expired or once a sync has completed
        after the one it was computed against.
        """
        try:
            entry = self._store.get_cache_entry(charity_number, cache_key, self._clock())
            if entry is None:
                return None
            last_sync = self._store.get_last_completed_sync()
        except StoreError as exc:
            logger.warning("Match cache lookup failed for %s: %s", charity_number, exc)
            return None

        if not entry.is_live(self._clock()):
            return None
        if last_sync is not None and (entry.last_sync_at is None or entry.last_sync_at < last_sync):
            logger.info("Stale cache entry for charity %s (synced since)", charity_number)
            return None

        logger.info("Cache hit for charity %s", charity_number)
        return entry.matches

    def store(self, profile: CharityProfile, cache_key: str, matches: List[FunderMatch]) -> None:
        """Upsert the ranked matches for ``(charity, cache_key)``."""
        try:
            now = self._clock()
            entry = MatchCacheEntry(
                charity_number=profile.reg_charity_number,
                cache_key=cache_key,
                charity_name=profile.charity_name,
                matches=matches,
                funder_count=len(matches),
                last_sync_at=self._store.get_last_completed_sync(),
                created_at=now,
                expires_at=now + self.ttl,
            )
            self._store.upsert_cache_entry(entry)
        except Exception as exc:
            logger.error("Failed to save to cache: %s", exc)
            return
        logger.info("Cached %d matches for charity %s", len(matches), profile.reg_charity_number)

    def invalidate_before(self, sync_date: datetime) -> int:
        """Drop entries computed against data older than ``sync_date``."""
        try:
            removed = self._store.delete_cache_entries_before(sync_date)
        except StoreError as exc:
            logger.error("Failed to invalidate cache: %s", exc)
            return 0
        logger.info("Invalidated %d cache entries older than %s", removed, sync_date.isoformat())
        return removed

    def purge_expired(self) -> int:
        try:
            removed = self._store.delete_expired_cache_entries(self._clock())
        except StoreError as exc:
            logger.error("Failed to purge expired cache entries: %s", exc)
            return 0
        logger.info("Purged %d expired cache entries", removed)
        return removed
