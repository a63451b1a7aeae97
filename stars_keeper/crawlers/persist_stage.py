"""Persist stage: drain the handoff queue into the stars and repositories stores."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from stars_keeper.config.settings import settings
from stars_keeper.crawlers.contracts import StarredItem
from stars_keeper.services.handoff import HandoffQueue
from stars_keeper.services.star_mapper import map_item_to_repository_row, map_item_to_star_row

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StarsPersistResult:
    """Result metadata for one persist run."""

    items_received: int = 0
    stars_saved: int = 0
    repositories_saved: int = 0
    cancelled: bool = False


class StarsPersistStage:
    """Upserts every received item as one repository row and one star row."""

    def __init__(
        self,
        stars_store: Any,
        repositories_store: Any,
        *,
        legacy_identity: Optional[bool] = None,
    ) -> None:
        self._stars_store = stars_store
        self._repositories_store = repositories_store
        self._legacy_identity = settings.STARS_LEGACY_IDENTITY if legacy_identity is None else legacy_identity

    async def run(self, queue: HandoffQueue[StarredItem]) -> StarsPersistResult:
        """Consume until the producer closes the queue or cancellation is raised.

        Raises `MalformedStarError` for an item without a repository and
        `StorageError` when a write fails; records committed before the failure
        stay committed.
        """

        result = StarsPersistResult()

        async for item in queue:
            result.items_received += 1
            star_row = map_item_to_star_row(item, legacy_identity=self._legacy_identity)
            repository_row = map_item_to_repository_row(item)

            if queue.cancelled:
                break
            self._repositories_store.upsert(repository_row)
            result.repositories_saved += 1

            if queue.cancelled:
                break
            self._stars_store.upsert(star_row)
            result.stars_saved += 1

        result.cancelled = queue.cancelled
        logger.info(
            "Persist stage finished",
            extra={
                "items_received": result.items_received,
                "stars_saved": result.stars_saved,
                "repositories_saved": result.repositories_saved,
                "cancelled": result.cancelled,
            },
        )
        return result
