"""
Sync Engine - Drains queued local mutations into the authoritative store.

Core responsibilities:
- One FIFO pass per collection over the unsynced mutations
- Isolate failures per record (a failing record never blocks the queue)
- Serialize passes per collection with an in-flight guard
- Trigger passes on connectivity-restored events
- Defer failed records according to a configurable retry policy
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Protocol

from loguru import logger

from langlearn.core.models import MutationRecord, parse_timestamp, utcnow
from langlearn.offline.recorder import USER_PROGRESS
from langlearn.offline.store import LocalStore
from langlearn.sync.connectivity import ConnectivityObserver, Unsubscribe

DEFAULT_COLLECTIONS = ("quiz_responses", "user_progress")


class MutationApplier(Protocol):
    """Anything that can apply one mutation remotely (RemoteStoreClient)."""

    async def apply_mutation(self, record: MutationRecord) -> None: ...


@dataclass(frozen=True)
class RetryPolicy:
    """
    Delay before a failed mutation becomes eligible again.

    With ``base_delay_seconds <= 0`` a failed mutation is retried on the
    very next pass.
    """

    base_delay_seconds: float = 0.0
    multiplier: float = 2.0
    max_delay_seconds: float = 300.0

    def delay_for(self, attempts: int) -> float:
        """Seconds to wait after ``attempts`` failed attempts."""
        if self.base_delay_seconds <= 0 or attempts <= 0:
            return 0.0
        delay = self.base_delay_seconds * (self.multiplier ** (attempts - 1))
        return min(self.max_delay_seconds, delay)

    def is_due(self, record: MutationRecord, now: datetime) -> bool:
        if record.attempts <= 0 or record.last_attempt_at is None:
            return True
        wait = timedelta(seconds=self.delay_for(record.attempts))
        return now >= record.last_attempt_at + wait


class SyncStats:
    """Statistics for one sync pass over one collection."""

    def __init__(self, collection: str) -> None:
        self.collection = collection
        self.attempted = 0
        self.synced = 0
        self.failed = 0
        self.deferred = 0
        self.skipped_in_flight = False
        self.start_time = utcnow()
        self.end_time: datetime | None = None
        self.error_details: list[str] = []

    def finish(self) -> None:
        """Mark pass as finished."""
        self.end_time = utcnow()

    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        end = self.end_time or utcnow()
        return (end - self.start_time).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/CLI output."""
        return {
            "collection": self.collection,
            "attempted": self.attempted,
            "synced": self.synced,
            "failed": self.failed,
            "deferred": self.deferred,
            "skipped_in_flight": self.skipped_in_flight,
            "duration_seconds": round(self.duration_seconds(), 2),
            "error_details": self.error_details[:10],  # Limit to 10 errors
        }


class SyncEngine:
    """
    Reconciles the local mutation queue with the remote store.

    Guarantees:
    - Within a collection, remote applies happen in enqueue order
    - A failed apply leaves the record unsynced and the pass continues
    - At most one pass per collection is in flight
    - Mutations enqueued during a pass are picked up by the next pass
    """

    def __init__(
        self,
        store: LocalStore,
        remote: MutationApplier,
        collections: Iterable[str] = DEFAULT_COLLECTIONS,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize sync engine.

        Args:
            store: Local durable store holding the queue
            remote: Remote applier (RemoteStoreClient in production)
            collections: Collections drained by ``sync_all``
            retry_policy: Delay policy for failed records (default: retry next pass)
            clock: Naive-UTC clock, injectable for tests
        """
        self.store = store
        self.remote = remote
        self.collections = list(collections)
        self.retry_policy = retry_policy or RetryPolicy()
        self._clock = clock
        self._in_flight: set[str] = set()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._unsubscribe: Unsubscribe | None = None

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def is_syncing(self, collection: str) -> bool:
        return collection in self._in_flight

    async def sync_collection(self, collection: str) -> SyncStats:
        """
        Run one FIFO pass over a collection's unsynced mutations.

        Returns:
            SyncStats for the pass; ``skipped_in_flight`` is set when another
            pass over the same collection was already running
        """
        stats = SyncStats(collection)

        if collection in self._in_flight:
            logger.debug(f"Sync pass for {collection} already in flight; skipping")
            stats.skipped_in_flight = True
            stats.finish()
            return stats

        self._in_flight.add(collection)
        try:
            # Point-in-time snapshot; later enqueues wait for the next pass
            pending = self.store.list_unsynced_mutations(collection)
            now = self._clock()

            for record in pending:
                if not self.retry_policy.is_due(record, now):
                    stats.deferred += 1
                    continue
                await self._apply_one(record, stats)
        finally:
            self._in_flight.discard(collection)

        stats.finish()
        logger.info(
            f"Sync pass for {collection}: {stats.synced} synced, "
            f"{stats.failed} failed, {stats.deferred} deferred"
        )
        return stats

    async def sync_all(self) -> dict[str, SyncStats]:
        """
        Run a pass over every configured collection.

        Collections are independent, so their passes run concurrently.
        """
        results = await asyncio.gather(
            *(self.sync_collection(collection) for collection in self.collections)
        )
        return {stats.collection: stats for stats in results}

    def trigger(self) -> asyncio.Task[dict[str, SyncStats]]:
        """Schedule ``sync_all`` on the running loop and return the task."""
        task = asyncio.get_running_loop().create_task(self.sync_all())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every scheduled pass to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # CONNECTIVITY
    # =========================================================================

    def attach(self, observer: ConnectivityObserver) -> None:
        """Sync whenever the observer reports connectivity restored."""
        self.detach()
        self._unsubscribe = observer.subscribe(self._on_connectivity_change)
        logger.debug("Sync engine attached to connectivity observer")

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_connectivity_change(self, online: bool) -> None:
        if not online:
            return
        logger.info("Connectivity restored; scheduling sync pass")
        self.trigger()

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    async def _apply_one(self, record: MutationRecord, stats: SyncStats) -> None:
        stats.attempted += 1
        try:
            await self.remote.apply_mutation(record)
        except Exception as e:  # Intentionally broad - any failure leaves the record queued
            stats.failed += 1
            stats.error_details.append(f"{record.id}: {e}")
            logger.warning(f"Failed to sync mutation {record.id} ({record.collection}): {e}")
            self.store.record_sync_failure(record.id, str(e))
            return

        if not self.store.mark_synced(record.id):
            # Applied remotely but not marked locally; the next pass re-applies,
            # which the remote insert-or-update absorbs.
            stats.failed += 1
            stats.error_details.append(f"{record.id}: could not mark synced")
            return

        stats.synced += 1
        if record.collection == USER_PROGRESS:
            self.store.mark_progress_synced(
                str(record.payload.get("user_id")),
                str(record.payload.get("lesson_id")),
                updated_at=parse_timestamp(record.payload.get("updated_at")),
            )
