"""Starred-repository fetch stage: paginate, enrich with README, hand off."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from stars_keeper.config.settings import settings
from stars_keeper.crawlers.client import GitHubRequestError, sanitize_log_extra
from stars_keeper.crawlers.contracts import StarredItem
from stars_keeper.services.handoff import HandoffQueue

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StarsFetchResult:
    """Result metadata for one fetch run."""

    login: Optional[str] = None
    pages: int = 0
    items_emitted: int = 0
    readmes_attached: int = 0
    cancelled: bool = False


class StarsFetchStage:
    """Walks the authenticated user's stars page by page and emits one item at a time."""

    def __init__(
        self,
        github_client: Any,
        *,
        per_page: Optional[int] = None,
        fetch_readme: Optional[bool] = None,
    ) -> None:
        self._github_client = github_client
        self._per_page = per_page or settings.page_size
        self._fetch_readme = settings.STARS_FETCH_README if fetch_readme is None else fetch_readme

    async def run(self, queue: HandoffQueue[StarredItem]) -> StarsFetchResult:
        """Fetch every page and send each enriched item into `queue`.

        Raises `GitHubRequestError` on the first failed request. Returns early,
        without error, once the queue reports cancellation.
        """

        result = StarsFetchResult()

        user = await self._github_client.get_authenticated_user()
        if not user.is_ok or not isinstance(user.data, dict) or not user.data.get("login"):
            raise GitHubRequestError.from_result("resolve authenticated user", user)
        result.login = str(user.data["login"])
        logger.info("Fetching starred repositories", extra={"login": result.login, "per_page": self._per_page})

        page = 1
        while True:
            if queue.cancelled:
                result.cancelled = True
                return result

            response = await self._github_client.list_starred(result.login, page=page, per_page=self._per_page)
            if response.is_failed:
                raise GitHubRequestError.from_result(f"list starred page {page}", response)
            result.pages += 1

            for payload in response.data or []:
                if not isinstance(payload, dict):
                    continue
                item = StarredItem(payload=payload)
                if self._fetch_readme:
                    await self._attach_readme(item, result)

                if not await queue.send(item):
                    result.cancelled = True
                    logger.info(
                        "Fetch stage cancelled",
                        extra={"page": page, "items_emitted": result.items_emitted},
                    )
                    return result
                result.items_emitted += 1

            if not response.next_page:
                logger.info(
                    "Fetched all starred repositories",
                    extra={"pages": result.pages, "items_emitted": result.items_emitted},
                )
                return result
            page = response.next_page

    async def _attach_readme(self, item: StarredItem, result: StarsFetchResult) -> None:
        owner_and_name = item.owner_and_name
        if owner_and_name is None:
            return

        owner, repo = owner_and_name
        readme = await self._github_client.get_readme(owner, repo)
        if readme.is_failed:
            logger.warning(
                "README enrichment failed",
                extra=sanitize_log_extra(repository=f"{owner}/{repo}", error=readme.error),
            )
            raise GitHubRequestError.from_result(f"fetch README for {owner}/{repo}", readme)

        if readme.is_empty:
            logger.debug("Repository has no README", extra={"repository": f"{owner}/{repo}"})
            return

        item.readme = readme.data
        result.readmes_attached += 1
