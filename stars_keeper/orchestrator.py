"""Two-task fetch/persist pipeline with first-error-cancels-all coordination."""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from stars_keeper.crawlers.client import sanitize_log_extra
from stars_keeper.crawlers.contracts import StarredItem
from stars_keeper.crawlers.persist_stage import StarsPersistResult
from stars_keeper.crawlers.stars_stage import StarsFetchResult
from stars_keeper.services.handoff import HandoffQueue

logger = logging.getLogger(__name__)


class SyncState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SyncError(Exception):
    """The sync did not complete; `__cause__` is the first error observed."""

    def __init__(self, message: str, *, stage: str) -> None:
        super().__init__(message)
        self.stage = stage


@dataclass(slots=True)
class SyncReport:
    """Statistics for a successful sync run."""

    state: SyncState
    started_at: str
    completed_at: str
    fetch: StarsFetchResult = field(default_factory=StarsFetchResult)
    persist: StarsPersistResult = field(default_factory=StarsPersistResult)

    @property
    def pages(self) -> int:
        return self.fetch.pages

    @property
    def items_fetched(self) -> int:
        return self.fetch.items_emitted

    @property
    def stars_saved(self) -> int:
        return self.persist.stars_saved

    @property
    def repositories_saved(self) -> int:
        return self.persist.repositories_saved

    def as_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "login": self.fetch.login,
            "pages": self.pages,
            "items_fetched": self.items_fetched,
            "readmes_attached": self.fetch.readmes_attached,
            "stars_saved": self.stars_saved,
            "repositories_saved": self.repositories_saved,
        }


class StarsSyncOrchestrator:
    """Runs one producer (fetch) and one consumer (persist) connected by a handoff queue.

    The run succeeds only when both stages finish cleanly. The first stage to
    fail raises the shared cancellation event so the other one stops at its
    next queue operation; the producer always closes the queue on exit.
    """

    PRODUCER = "fetch"
    CONSUMER = "persist"

    def __init__(
        self,
        *,
        fetch_stage: Any,
        persist_stage: Any,
        queue_factory: Optional[Callable[[asyncio.Event], HandoffQueue[StarredItem]]] = None,
    ) -> None:
        self._fetch_stage = fetch_stage
        self._persist_stage = persist_stage
        self._queue_factory = queue_factory or HandoffQueue
        self._state = SyncState.IDLE
        self._cancel_event = asyncio.Event()
        self._queue: Optional[HandoffQueue[StarredItem]] = None
        self._first_error: Optional[tuple[str, BaseException]] = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def queue(self) -> Optional[HandoffQueue[StarredItem]]:
        return self._queue

    def cancel(self) -> None:
        """Ask both stages to stop at their next suspension point.

        Calling this before `run()` makes the run stop as soon as it starts.
        """
        self._cancel_event.set()

    async def run(self) -> SyncReport:
        if self._state != SyncState.IDLE:
            raise RuntimeError(f"sync already {self._state.value}; create a new orchestrator to run again")

        self._state = SyncState.RUNNING
        started_at = datetime.utcnow().isoformat()
        self._queue = self._queue_factory(self._cancel_event)
        logger.info("Stars sync started")

        producer = asyncio.create_task(
            self._guard(self.PRODUCER, self._produce(self._queue)),
            name="stars-sync-fetch",
        )
        consumer = asyncio.create_task(
            self._guard(self.CONSUMER, self._persist_stage.run(self._queue)),
            name="stars-sync-persist",
        )
        try:
            results = await asyncio.gather(producer, consumer, return_exceptions=True)
        except BaseException:
            # The awaiting task itself was cancelled; gather has cancelled both stages.
            self._state = SyncState.FAILED
            self.cancel()
            raise

        if self._first_error is not None:
            stage, error = self._first_error
            self._state = SyncState.FAILED
            logger.error(
                "Stars sync failed",
                extra=sanitize_log_extra(stage=stage, error=str(error)),
            )
            raise SyncError(f"stars sync failed in {stage} stage: {error}", stage=stage) from error

        for result in results:
            # Task cancelled from outside, not by a stage failure.
            if isinstance(result, BaseException):
                self._state = SyncState.FAILED
                raise result

        fetch_result, persist_result = results
        if fetch_result.cancelled or persist_result.cancelled:
            self._state = SyncState.FAILED
            raise SyncError("stars sync was cancelled before completion", stage="coordinator")

        self._state = SyncState.SUCCEEDED
        report = SyncReport(
            state=self._state,
            started_at=started_at,
            completed_at=datetime.utcnow().isoformat(),
            fetch=fetch_result,
            persist=persist_result,
        )
        logger.info("Stars sync completed", extra=report.as_dict())
        return report

    async def _produce(self, queue: HandoffQueue[StarredItem]) -> StarsFetchResult:
        try:
            return await self._fetch_stage.run(queue)
        finally:
            queue.close()

    async def _guard(self, stage: str, work: Awaitable[Any]) -> Any:
        try:
            return await work
        except Exception as exc:
            if self._first_error is None:
                self._first_error = (stage, exc)
            self.cancel()
            raise
