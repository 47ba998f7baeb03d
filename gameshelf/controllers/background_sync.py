"""Background library sync queue.

Linking hands sync jobs to this queue and returns immediately. A single
worker task drains the queue; failures are logged and recorded in
`failures` instead of reaching whoever submitted the job.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Tuple

from ..stores.base import Platform

logger = logging.getLogger(__name__)

SyncJob = Tuple[str, Platform]
SyncHandler = Callable[[str, Platform], Awaitable[object]]

# Failures kept in memory for inspection
MAX_RECORDED_FAILURES = 100


@dataclass(frozen=True)
class SyncFailure:
    user_id: str
    platform: Platform
    error: str
    failed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class BackgroundSyncQueue:
    """Fire-and-forget sync jobs with a recorded failure sink"""

    def __init__(self, handler: SyncHandler, on_failure: Optional[Callable[[SyncFailure], None]] = None):
        self.handler = handler
        self.on_failure = on_failure
        self.failures: List[SyncFailure] = []
        self.completed = 0
        self.running = False
        self.task: Optional[asyncio.Task] = None
        self._queue: Optional["asyncio.Queue[SyncJob]"] = None

    @property
    def queue(self) -> "asyncio.Queue[SyncJob]":
        if self._queue is None:
            self._queue = asyncio.Queue()
        return self._queue

    def start(self):
        """Start the worker"""
        if self.running:
            logger.warning("[SyncQueue] Already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._worker())
        logger.info("[SyncQueue] Background sync worker started")

    async def stop(self):
        """Stop the worker, dropping queued jobs"""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
        logger.info("[SyncQueue] Background sync worker stopped")

    def submit(self, user_id: str, platform: Platform) -> None:
        """Queue a sync job. Never blocks and never raises to the caller."""
        if not self.running:
            self.start()
        self.queue.put_nowait((user_id, platform))
        logger.debug(f"[SyncQueue] Queued {platform.value} sync for {user_id}")

    async def drain(self):
        """Wait until every queued job has been processed."""
        await self.queue.join()

    def _record_failure(self, user_id: str, platform: Platform, error: Exception):
        failure = SyncFailure(user_id=user_id, platform=platform, error=f"{type(error).__name__}: {error}")
        self.failures.append(failure)
        del self.failures[:-MAX_RECORDED_FAILURES]
        logger.error(f"[SyncQueue] {platform.value} sync failed for {user_id}: {failure.error}")
        if self.on_failure:
            try:
                self.on_failure(failure)
            except Exception as e:
                logger.error(f"[SyncQueue] Failure sink raised: {e}")

    async def _worker(self):
        while self.running:
            user_id, platform = await self.queue.get()
            try:
                await self.handler(user_id, platform)
                self.completed += 1
                logger.info(f"[SyncQueue] {platform.value} sync complete for {user_id}")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._record_failure(user_id, platform, e)
            finally:
                self.queue.task_done()
