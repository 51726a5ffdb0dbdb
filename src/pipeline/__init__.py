"""Background sync orchestration for data sources."""

from src.pipeline.sync_orchestrator import SyncOrchestrator

__all__ = ["SyncOrchestrator"]
