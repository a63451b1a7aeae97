"""Identity, mapping, storage and handoff helpers."""

from stars_keeper.services.handoff import HandoffQueue, QueueClosedError
from stars_keeper.services.identity import build_star_id, format_rfc3339
from stars_keeper.services.star_mapper import MalformedStarError
from stars_keeper.services.store import RepositoriesStore, StarsStore

__all__ = [
    "HandoffQueue",
    "QueueClosedError",
    "build_star_id",
    "format_rfc3339",
    "MalformedStarError",
    "RepositoriesStore",
    "StarsStore",
]
