"""Ingestion of 360Giving data into the store."""

from .orchestrator import SyncOrchestrator

__all__ = ["SyncOrchestrator"]
