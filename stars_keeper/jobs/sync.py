"""Sync and purge entrypoints wiring settings, storage and the GitHub client."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from stars_keeper.config.database import (
    create_database_engine,
    create_session_factory,
    initialize_schema,
    prepare_database_path,
    purge_database,
)
from stars_keeper.config.settings import Settings, settings as default_settings
from stars_keeper.crawlers.client import GitHubStarsClient
from stars_keeper.crawlers.persist_stage import StarsPersistStage
from stars_keeper.crawlers.stars_stage import StarsFetchStage
from stars_keeper.orchestrator import StarsSyncOrchestrator, SyncReport
from stars_keeper.services.store import RepositoriesStore, StarsStore

logger = logging.getLogger(__name__)


async def run_stars_sync(
    *,
    app_settings: Optional[Settings] = None,
    database_path: Optional[Path] = None,
    github_client_factory: Optional[Callable[..., Any]] = None,
) -> SyncReport:
    """Re-fetch every star and upsert it into the local database.

    Configuration problems raise `ConfigurationError` before any request is
    made; pipeline failures raise `SyncError`.
    """

    config = app_settings or default_settings
    token = config.require_github_token()
    path = prepare_database_path(database_path or config.database_path)

    engine = create_database_engine(path, busy_timeout_ms=config.SQLITE_BUSY_TIMEOUT_MS)
    try:
        applied = initialize_schema(engine)
        if applied:
            logger.info("Database schema upgraded", extra={"migrations": applied})

        session_factory = create_session_factory(engine)
        client_factory = github_client_factory or GitHubStarsClient
        async with client_factory(
            token=token,
            timeout_seconds=config.GITHUB_TIMEOUT_SECONDS,
            base_url=config.GITHUB_API_URL,
        ) as client:
            orchestrator = StarsSyncOrchestrator(
                fetch_stage=StarsFetchStage(
                    client,
                    per_page=config.page_size,
                    fetch_readme=config.STARS_FETCH_README,
                ),
                persist_stage=StarsPersistStage(
                    StarsStore(session_factory),
                    RepositoriesStore(session_factory),
                    legacy_identity=config.STARS_LEGACY_IDENTITY,
                ),
            )
            return await orchestrator.run()
    finally:
        engine.dispose()


def run_purge(
    *,
    app_settings: Optional[Settings] = None,
    database_path: Optional[Path] = None,
) -> bool:
    """Delete the local database. Returns False if it did not exist."""
    config = app_settings or default_settings
    return purge_database(database_path or config.database_path)
