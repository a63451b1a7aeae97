"""Mapping helpers from fetched star items to `stars` and `repositories` rows."""

from __future__ import annotations

import json
from typing import Any

from stars_keeper.crawlers.contracts import StarredItem
from stars_keeper.services.identity import build_star_id, format_rfc3339


class MalformedStarError(ValueError):
    """A fetched star cannot be persisted (no repository or no timestamp)."""


def serialize_body(payload: Any) -> str:
    """Stable JSON text for the verbatim `body` columns."""
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def build_repository_external_id(repository: dict[str, Any]) -> str:
    repo_id = repository.get("id")
    if isinstance(repo_id, bool) or repo_id is None or str(repo_id).strip() == "":
        raise MalformedStarError("Repository payload missing id")
    return str(repo_id).strip()


def map_item_to_star_row(item: StarredItem, *, legacy_identity: bool = False) -> dict[str, Any]:
    """Map a starred item into the `stars` table contract."""

    repository = item.repository
    if repository is None:
        raise MalformedStarError("a star does not have an assigned repository, try again")
    if item.starred_at is None:
        raise MalformedStarError("a star does not have a starred_at timestamp")

    repository_id = build_repository_external_id(repository)
    try:
        starred_at = format_rfc3339(item.starred_at)
    except ValueError as exc:
        raise MalformedStarError(str(exc)) from exc

    return {
        "id": build_star_id(repository_id, starred_at, legacy=legacy_identity),
        "starred_at": starred_at,
        "repository_id": repository_id,
        "body": serialize_body(item.payload),
    }


def map_item_to_repository_row(item: StarredItem) -> dict[str, Any]:
    """Map the item's repository into the `repositories` table contract."""

    repository = item.repository
    if repository is None:
        raise MalformedStarError("a star does not have an assigned repository, try again")

    description = repository.get("description")
    return {
        "id": build_repository_external_id(repository),
        "description": description if isinstance(description, str) else None,
        "topics": _pick_topics(repository.get("topics")),
        "readme": item.readme,
        "body": serialize_body(repository),
    }


def _pick_topics(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(topic).strip() for topic in value if str(topic).strip()]
