"""Sync orchestrator: the DataSource lifecycle state machine.

States::

    Pending ──start_sync──▶ Syncing ──success──▶ Synced
                               │                   │
                               └──exception──▶ Error
                                                   │
                 Synced / Error ──start_sync──▶ Syncing

ARCHITECTURE NOTE:
    The orchestrator is the single writer of ``status``, ``last_synced``,
    ``last_synced_at`` and ``item_count``.  Connectors only report a
    :class:`SyncResult`; everything visible to a polling caller is written
    here.

    ``start_sync`` writes the ``Syncing`` status and an ``InProgress`` log
    before it returns, then hands the connector work to a background task.
    Tasks run behind a semaphore, so at most ``max_concurrent_syncs``
    connectors execute at once; the rest wait their turn while already
    reporting ``Syncing``.  Callers poll the source status or await the
    returned task.

    At most one sync per (tenant, source) is ever in flight.  A second
    ``start_sync`` while one is running returns the existing task.
"""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timezone

import structlog

from src.interfaces.knowledge_store import IKnowledgeStore
from src.models.knowledge import (
    SYNC_FAILED_LABEL,
    DataSource,
    SourceStatus,
    SyncLog,
    SyncLogStatus,
    SyncResult,
)
from src.providers.connectors.registry import ConnectorRegistry
from src.utils.errors import SourceNotFoundError
from src.utils.logging import get_logger

_SourceKey = tuple[str, str]


class SyncOrchestrator:
    """Runs connector syncs as bounded background tasks.

    Parameters
    ----------
    store:
        Knowledge store holding sources and sync logs.
    registry:
        Source-type → connector dispatch.
    max_concurrent_syncs:
        Upper bound on connector syncs executing at the same time.
    """

    def __init__(
        self,
        store: IKnowledgeStore,
        registry: ConnectorRegistry,
        max_concurrent_syncs: int = 4,
    ) -> None:
        if max_concurrent_syncs < 1:
            raise ValueError("max_concurrent_syncs must be at least 1")
        self._store = store
        self._registry = registry
        self._semaphore = asyncio.Semaphore(max_concurrent_syncs)
        self._in_flight: dict[_SourceKey, asyncio.Task[DataSource]] = {}
        self._start_lock = asyncio.Lock()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_syncing(self, tenant_id: str, source_id: str) -> bool:
        task = self._in_flight.get((tenant_id, source_id))
        return task is not None and not task.done()

    @property
    def in_flight_count(self) -> int:
        return sum(1 for task in self._in_flight.values() if not task.done())

    async def start_sync(self, source: DataSource) -> asyncio.Task[DataSource]:
        """Move *source* to ``Syncing`` and schedule its connector sync.

        Idempotent: if a sync for the source is already running, that
        task is returned and nothing new is written.
        """
        key = (source.tenant_id, source.id)
        async with self._start_lock:
            existing = self._in_flight.get(key)
            if existing is not None and not existing.done():
                self._logger.info(
                    "sync_already_running", tenant_id=source.tenant_id, source_id=source.id
                )
                return existing

            syncing = await self._mark_syncing(source)
            task = asyncio.create_task(
                self._run(syncing), name=f"sync:{source.tenant_id}:{source.id}"
            )
            self._in_flight[key] = task
            task.add_done_callback(lambda done, key=key: self._forget(key, done))
        return task

    async def sync_now(self, source: DataSource) -> DataSource:
        """Start a sync (or join the running one) and wait for the outcome."""
        task = await self.start_sync(source)
        return await task

    async def wait(self, tenant_id: str, source_id: str) -> DataSource | None:
        """Wait for the in-flight sync of a source, if any."""
        task = self._in_flight.get((tenant_id, source_id))
        if task is None:
            return None
        return await task

    async def wait_all(self) -> None:
        tasks = [task for task in self._in_flight.values() if not task.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def cancel(self, tenant_id: str, source_id: str) -> bool:
        """Cancel the in-flight sync of a source; ``False`` if none was running."""
        task = self._in_flight.get((tenant_id, source_id))
        if task is None or task.done():
            return False
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        return True

    async def shutdown(self) -> None:
        """Cancel every in-flight sync and wait for them to unwind."""
        tasks = [task for task in self._in_flight.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._logger.info("sync_orchestrator_shutdown", cancelled=len(tasks))

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    async def _mark_syncing(self, source: DataSource) -> DataSource:
        await self._store.append_log(
            SyncLog(
                tenant_id=source.tenant_id,
                source_id=source.id,
                status=SyncLogStatus.IN_PROGRESS,
                message=f"Sync started for {source.type.value} source '{source.name}'",
            )
        )
        updated = await self._store.update_source(
            source.tenant_id, source.id, {"status": SourceStatus.SYNCING}
        )
        # Credentials are never persisted; carry them into the running sync.
        if source.auth is not None and updated.auth is None:
            updated = updated.model_copy(update={"auth": source.auth})
        self._logger.info(
            "sync_started",
            tenant_id=source.tenant_id,
            source_id=source.id,
            source_type=source.type.value,
        )
        return updated

    async def _run(self, source: DataSource) -> DataSource:
        async with self._semaphore:
            with structlog.contextvars.bound_contextvars(
                tenant_id=source.tenant_id,
                source_id=source.id,
                source_type=source.type.value,
            ):
                return await self._execute(source)

    async def _execute(self, source: DataSource) -> DataSource:
        connector = self._registry.get(source.type)
        try:
            result = await connector.sync(source)
        except asyncio.CancelledError:
            await self._record_failure(source, "Sync cancelled")
            raise
        except Exception as exc:  # noqa: BLE001
            self._logger.error(
                "sync_failed",
                connector=connector.get_provider_name(),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return await self._record_failure(source, str(exc))
        return await self._record_success(source, result)

    async def _record_success(self, source: DataSource, result: SyncResult) -> DataSource:
        now = datetime.now(tz=timezone.utc)  # noqa: UP017
        message = (
            f"Synced {result.item_count} items from {result.resources_processed} resources"
        )
        if result.resources_skipped:
            message += f" ({result.resources_skipped} skipped)"

        updated = await self._apply_outcome(
            source,
            {
                "status": SourceStatus.SYNCED,
                "last_synced": now.isoformat(timespec="seconds"),
                "last_synced_at": now,
                "item_count": result.item_count,
            },
            SyncLog(
                tenant_id=source.tenant_id,
                source_id=source.id,
                status=SyncLogStatus.SUCCESS,
                message=message,
                items_processed=result.item_count,
            ),
        )
        self._logger.info(
            "sync_complete",
            items=result.item_count,
            resources=result.resources_processed,
            skipped=result.resources_skipped,
        )
        return updated

    async def _record_failure(self, source: DataSource, message: str) -> DataSource:
        return await self._apply_outcome(
            source,
            {"status": SourceStatus.ERROR, "last_synced": SYNC_FAILED_LABEL},
            SyncLog(
                tenant_id=source.tenant_id,
                source_id=source.id,
                status=SyncLogStatus.FAILURE,
                message=message,
            ),
        )

    async def _apply_outcome(
        self, source: DataSource, updates: dict, log: SyncLog
    ) -> DataSource:
        try:
            updated = await self._store.update_source(source.tenant_id, source.id, updates)
        except SourceNotFoundError:
            # Deleted while syncing; nothing left to record against.
            self._logger.info("sync_outcome_dropped", status=str(updates["status"].value))
            return source.model_copy(update=updates)
        await self._store.append_log(log)
        return updated

    def _forget(self, key: _SourceKey, task: asyncio.Task[DataSource]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
