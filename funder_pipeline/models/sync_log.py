"""Sync bookkeeping: options, results and the persisted sync log."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .common import as_utc


class SyncType(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


class SyncStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncOptions(BaseModel):
    max_organisations: int = Field(default=50, ge=0)
    max_grants: int = Field(default=500, ge=0)
    offset: int = Field(default=0, ge=0)
    force_full_sync: bool = False


class SyncLog(BaseModel):
    """One row per sync attempt; mutated exactly once when the sync ends."""

    id: Optional[str] = None
    sync_type: SyncType
    status: SyncStatus = SyncStatus.RUNNING
    orgs_synced: int = 0
    grants_synced: int = 0
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    @field_validator("started_at", "completed_at")
    @classmethod
    def normalise_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class SyncResult(BaseModel):
    organisations_synced: int = 0
    grants_synced: int = 0
    grants_skipped: int = 0
    sync_type: SyncType
    last_sync_date: Optional[datetime] = Field(
        None, description="Pivot date of an incremental sync"
    )
    organisations_failed: int = 0
    grants_failed: int = 0
    funders_failed: int = Field(0, description="Funders whose grants page could not be fetched")
