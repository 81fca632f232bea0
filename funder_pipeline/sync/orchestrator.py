"""Full / incremental sync of 360Giving organisations and grants into the store."""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from pydantic import ValidationError

from ..errors import RemoteAPIError, StoreError
from ..models import (
    GrantRecord,
    Organisation,
    OrganisationSummary,
    SyncLog,
    SyncOptions,
    SyncResult,
    SyncType,
)

logger = logging.getLogger(__name__)

FUNDER_BATCH_SIZE = 50
GRANTS_PER_FUNDER = 100


class SyncOrchestrator:
    """Drives one sync run: organisation phase, grant phase, sync-log bookkeeping.

    Per-item failures (one organisation, one grant, one funder's page) are
    logged and counted. An unreachable API or a store failure outside a
    single item aborts the run, marks the sync log failed and re-raises.
    """

    def __init__(
        self,
        client,
        store,
        cache=None,
        funder_batch_size: int = FUNDER_BATCH_SIZE,
        grants_per_funder: int = GRANTS_PER_FUNDER,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._client = client
        self._store = store
        self._cache = cache
        self.funder_batch_size = funder_batch_size
        self.grants_per_funder = grants_per_funder
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def run_sync(self, options: Optional[SyncOptions] = None) -> SyncResult:
        options = options or SyncOptions()

        last_sync_date = None
        if options.force_full_sync:
            logger.info("Full sync (forced)")
        else:
            last_sync_date = self._store.get_last_completed_sync()
            if last_sync_date:
                logger.info(f"Incremental sync from: {last_sync_date.isoformat()}")
            else:
                logger.info("Full sync (no previous sync found)")
        sync_type = SyncType.INCREMENTAL if last_sync_date else SyncType.FULL

        sync_log = self._store.create_sync_log(sync_type, self._clock())
        result = SyncResult(sync_type=sync_type, last_sync_date=last_sync_date)

        try:
            if sync_type is SyncType.INCREMENTAL and options.offset == 0:
                logger.info("Skipping organisation sync for incremental update")
            else:
                await self._sync_organisations(options, result)

            logger.info(f"Starting {sync_type.value} grants sync (max: {options.max_grants})")
            await self._sync_grants(options, last_sync_date, result)

            completed_at = self._clock()
            self._store.complete_sync_log(
                sync_log.id, result.organisations_synced, result.grants_synced, completed_at
            )
        except Exception as exc:
            logger.error(f"Sync failed: {exc}", exc_info=True)
            self._mark_failed(sync_log, exc)
            raise

        logger.info(
            f"Sync completed: type={sync_type.value} orgs={result.organisations_synced} "
            f"grants={result.grants_synced} skipped={result.grants_skipped} "
            f"failed_orgs={result.organisations_failed} failed_grants={result.grants_failed} "
            f"failed_funders={result.funders_failed}"
        )
        if self._cache is not None:
            self._cache.invalidate_before(completed_at)
        return result

    # ------------------------------------------------------------------
    # Organisation phase
    # ------------------------------------------------------------------

    async def _sync_organisations(self, options: SyncOptions, result: SyncResult) -> None:
        if options.max_organisations == 0:
            return
        logger.info(
            f"Starting organisation sync (max: {options.max_organisations}, offset: {options.offset})"
        )
        page = await self._client.list_organisations(options.max_organisations, options.offset)

        for raw in page.results[: options.max_organisations]:
            org_id = raw.get("org_id")
            try:
                summary = OrganisationSummary.model_validate(raw)
                detail = await self._client.get_organisation_detail(summary.org_id)
                self._store.upsert_organisation(
                    Organisation(
                        org_id=summary.org_id,
                        name=summary.name,
                        is_funder=detail.funder is not None,
                        is_recipient=detail.recipient is not None,
                        funder_stats=detail.funder,
                        recipient_stats=detail.recipient,
                    )
                )
            except RemoteAPIError as exc:
                if exc.unreachable:
                    raise
                result.organisations_failed += 1
                logger.error(f"Failed to sync org {org_id}: {exc}")
                continue
            except (StoreError, ValidationError) as exc:
                result.organisations_failed += 1
                logger.error(f"Error upserting org {org_id}: {exc}")
                continue

            result.organisations_synced += 1
            logger.info(
                f"Synced organisation {result.organisations_synced}/{options.max_organisations}: "
                f"{summary.name}"
            )

    # ------------------------------------------------------------------
    # Grant phase
    # ------------------------------------------------------------------

    async def _sync_grants(
        self, options: SyncOptions, last_sync_date: Optional[datetime], result: SyncResult
    ) -> None:
        funders = self._store.list_funders(limit=self.funder_batch_size)
        if not funders:
            logger.info("No funders found in database")
            return

        incremental = last_sync_date is not None
        for funder in funders:
            if result.grants_synced >= options.max_grants:
                break

            logger.info(f"Fetching grants for funder: {funder.name}")
            try:
                page = await self._client.list_grants_made(funder.org_id, self.grants_per_funder, 0)
            except RemoteAPIError as exc:
                if exc.unreachable:
                    raise
                result.funders_failed += 1
                logger.error(f"Failed to sync grants for {funder.name}: {exc}")
                continue

            records: List[GrantRecord] = []
            for raw in page.results:
                capped = result.grants_synced >= options.max_grants
                try:
                    record = GrantRecord.model_validate(raw)
                except ValidationError as exc:
                    if not capped:
                        result.grants_failed += 1
                        logger.error(f"Malformed grant {raw.get('grant_id')} from {funder.org_id}: {exc}")
                    continue
                # Every returned grant counts towards last_grant_made_date, capped or not
                records.append(record)
                if capped:
                    continue
                if incremental and record.award_date and record.award_date < last_sync_date:
                    result.grants_skipped += 1
                    continue
                try:
                    if incremental and self._store.grant_exists(record.grant_id):
                        result.grants_skipped += 1
                        continue
                    self._store.upsert_grant(record.to_grant(funder.org_id))
                except (StoreError, ValidationError) as exc:
                    result.grants_failed += 1
                    logger.error(f"Error inserting grant {record.grant_id}: {exc}")
                    continue

                result.grants_synced += 1
                logger.debug(
                    f"Synced grant {result.grants_synced}/{options.max_grants}: "
                    f"{record.data.title or 'Untitled'}"
                )

            self._record_latest_grant(funder, records)

    def _record_latest_grant(self, funder: Organisation, records: List[GrantRecord]) -> None:
        award_dates = [r.award_date for r in records if r.award_date is not None]
        if not award_dates:
            return
        try:
            self._store.update_last_grant_made_date(funder.org_id, max(award_dates))
        except StoreError as exc:
            logger.warning(f"Could not update last_grant_made_date for {funder.org_id}: {exc}")

    def _mark_failed(self, sync_log: SyncLog, exc: Exception) -> None:
        try:
            self._store.fail_sync_log(sync_log.id, str(exc) or type(exc).__name__, self._clock())
        except StoreError as log_exc:
            logger.error(f"Could not mark sync log {sync_log.id} failed: {log_exc}")
