from __future__ import annotations

import asyncio
from typing import Any

import pytest

from stars_keeper.crawlers.client import GitHubRequestError
from stars_keeper.crawlers.contracts import FetchResult, FetchState, StarredItem
from stars_keeper.crawlers.stars_stage import StarsFetchStage
from stars_keeper.services.handoff import HandoffQueue


def star_payload(repo_id: int, starred_at: str, *, name: str | None = None) -> dict[str, Any]:
    repo_name = name or f"repo-{repo_id}"
    return {
        "starred_at": starred_at,
        "repo": {
            "id": repo_id,
            "name": repo_name,
            "full_name": f"acme/{repo_name}",
            "owner": {"login": "acme"},
        },
    }


class FakeClient:
    def __init__(self, pages: list[list[dict[str, Any]]]) -> None:
        self.pages = pages
        self.user_calls = 0
        self.requested_pages: list[int] = []
        self.readme_calls: list[tuple[str, str]] = []
        self.page_failure: dict[int, FetchResult[Any]] = {}
        self.readme_results: dict[str, FetchResult[str]] = {}

    async def get_authenticated_user(self) -> FetchResult[dict[str, Any]]:
        self.user_calls += 1
        return FetchResult(state=FetchState.OK, data={"login": "octocat"})

    async def list_starred(self, login: str, *, page: int = 1, per_page: int = 50) -> FetchResult[list[dict[str, Any]]]:
        assert login == "octocat"
        self.requested_pages.append(page)
        if page in self.page_failure:
            return self.page_failure[page]
        data = self.pages[page - 1]
        next_page = page + 1 if page < len(self.pages) else 0
        return FetchResult(state=FetchState.OK if data else FetchState.EMPTY, data=data, next_page=next_page)

    async def get_readme(self, owner: str, repo: str) -> FetchResult[str]:
        self.readme_calls.append((owner, repo))
        return self.readme_results.get(repo, FetchResult(state=FetchState.OK, data=f"# {repo}"))


async def _collect(stage: StarsFetchStage, queue: HandoffQueue[StarredItem]) -> tuple[Any, list[StarredItem]]:
    received: list[StarredItem] = []

    async def produce():
        try:
            return await stage.run(queue)
        finally:
            queue.close()

    async def consume() -> None:
        async for item in queue:
            received.append(item)

    result, _ = await asyncio.wait_for(asyncio.gather(produce(), consume()), timeout=2)
    return result, received


@pytest.mark.asyncio
async def test_walks_all_pages_and_enriches_each_item() -> None:
    client = FakeClient(
        [
            [star_payload(1, "2024-01-01T00:00:00Z"), star_payload(2, "2024-01-02T00:00:00Z")],
            [star_payload(3, "2024-01-03T00:00:00Z")],
        ]
    )
    stage = StarsFetchStage(client, per_page=2, fetch_readme=True)

    result, received = await _collect(stage, HandoffQueue(asyncio.Event()))

    assert client.user_calls == 1
    assert client.requested_pages == [1, 2]
    assert [item.repository["id"] for item in received] == [1, 2, 3]
    assert [item.readme for item in received] == ["# repo-1", "# repo-2", "# repo-3"]
    assert result.login == "octocat"
    assert result.pages == 2
    assert result.items_emitted == 3
    assert result.readmes_attached == 3
    assert result.cancelled is False


@pytest.mark.asyncio
async def test_empty_next_page_stops_without_extra_request() -> None:
    client = FakeClient([[star_payload(1, "2024-01-01T00:00:00Z")], [star_payload(2, "2024-01-02T00:00:00Z")]])

    async def single_page(login: str, *, page: int = 1, per_page: int = 50):
        client.requested_pages.append(page)
        return FetchResult(state=FetchState.OK, data=client.pages[0], next_page=0)

    client.list_starred = single_page
    stage = StarsFetchStage(client, fetch_readme=False)

    result, received = await _collect(stage, HandoffQueue(asyncio.Event()))

    assert client.requested_pages == [1]
    assert len(received) == 1
    assert received[0].readme is None
    assert client.readme_calls == []
    assert result.pages == 1


@pytest.mark.asyncio
async def test_missing_readme_is_not_an_error() -> None:
    client = FakeClient([[star_payload(1, "2024-01-01T00:00:00Z", name="bare")]])
    client.readme_results["bare"] = FetchResult(state=FetchState.EMPTY, data="", status_code=404)
    stage = StarsFetchStage(client, fetch_readme=True)

    result, received = await _collect(stage, HandoffQueue(asyncio.Event()))

    assert received[0].readme is None
    assert result.readmes_attached == 0


@pytest.mark.asyncio
async def test_item_without_repository_skips_enrichment_but_is_emitted() -> None:
    client = FakeClient([[{"starred_at": "2024-01-01T00:00:00Z"}]])
    stage = StarsFetchStage(client, fetch_readme=True)

    _, received = await _collect(stage, HandoffQueue(asyncio.Event()))

    assert client.readme_calls == []
    assert received[0].repository is None


@pytest.mark.asyncio
async def test_readme_failure_aborts_the_whole_stage() -> None:
    client = FakeClient([[star_payload(1, "2024-01-01T00:00:00Z"), star_payload(2, "2024-01-02T00:00:00Z")]])
    client.readme_results["repo-2"] = FetchResult(state=FetchState.FAILED, status_code=502, error="Bad Gateway")
    stage = StarsFetchStage(client, fetch_readme=True)

    with pytest.raises(GitHubRequestError) as excinfo:
        await _collect(stage, HandoffQueue(asyncio.Event()))

    assert excinfo.value.status_code == 502
    assert "acme/repo-2" in str(excinfo.value)


@pytest.mark.asyncio
async def test_page_failure_surfaces_upstream_error() -> None:
    client = FakeClient([[star_payload(1, "2024-01-01T00:00:00Z")], []])
    client.page_failure[2] = FetchResult(state=FetchState.FAILED, status_code=403, error="rate limit exceeded")
    stage = StarsFetchStage(client, fetch_readme=False)

    with pytest.raises(GitHubRequestError) as excinfo:
        await _collect(stage, HandoffQueue(asyncio.Event()))

    assert excinfo.value.status_code == 403
    assert client.requested_pages == [1, 2]


@pytest.mark.asyncio
async def test_unresolvable_user_fails_before_paging() -> None:
    client = FakeClient([[star_payload(1, "2024-01-01T00:00:00Z")]])

    async def unauthorized():
        return FetchResult(state=FetchState.FAILED, status_code=401, error="authentication failed")

    client.get_authenticated_user = unauthorized
    stage = StarsFetchStage(client, fetch_readme=False)

    with pytest.raises(GitHubRequestError):
        await stage.run(HandoffQueue(asyncio.Event()))

    assert client.requested_pages == []


@pytest.mark.asyncio
async def test_cancellation_unblocks_pending_handoff_and_stops_paging() -> None:
    cancel_event = asyncio.Event()
    queue: HandoffQueue[StarredItem] = HandoffQueue(cancel_event)
    client = FakeClient(
        [
            [star_payload(1, "2024-01-01T00:00:00Z"), star_payload(2, "2024-01-02T00:00:00Z")],
            [star_payload(3, "2024-01-03T00:00:00Z")],
        ]
    )
    stage = StarsFetchStage(client, fetch_readme=False)

    async def cancel_without_consuming() -> None:
        await asyncio.sleep(0.01)
        cancel_event.set()

    result, _ = await asyncio.wait_for(asyncio.gather(stage.run(queue), cancel_without_consuming()), timeout=2)

    assert result.cancelled is True
    assert result.items_emitted == 1
    assert client.requested_pages == [1]


@pytest.mark.asyncio
async def test_cancellation_is_checked_before_each_page_request() -> None:
    cancel_event = asyncio.Event()
    cancel_event.set()
    client = FakeClient([[star_payload(1, "2024-01-01T00:00:00Z")]])
    stage = StarsFetchStage(client, fetch_readme=False)

    result = await stage.run(HandoffQueue(cancel_event))

    assert result.cancelled is True
    assert client.requested_pages == []
