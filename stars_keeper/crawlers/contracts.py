"""Typed contracts for GitHub client responses and fetched star items."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar


T = TypeVar("T")


class FetchState(str, Enum):
    """Normalized response state for downstream stages."""

    OK = "ok"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass(slots=True)
class FetchResult(Generic[T]):
    """Container that separates payload from fetch semantics."""

    state: FetchState
    data: Optional[T] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    next_page: int = 0

    @property
    def is_ok(self) -> bool:
        return self.state == FetchState.OK

    @property
    def is_empty(self) -> bool:
        return self.state == FetchState.EMPTY

    @property
    def is_failed(self) -> bool:
        return self.state == FetchState.FAILED


@dataclass(slots=True)
class StarredItem:
    """One starred repository as listed upstream, plus fetch-time enrichment."""

    payload: dict[str, Any]
    readme: Optional[str] = None

    @property
    def starred_at(self) -> Optional[str]:
        value = self.payload.get("starred_at")
        return value if isinstance(value, str) else None

    @property
    def repository(self) -> Optional[dict[str, Any]]:
        value = self.payload.get("repo")
        return value if isinstance(value, dict) and value else None

    @property
    def owner_and_name(self) -> Optional[tuple[str, str]]:
        repository = self.repository
        if repository is None:
            return None

        owner = repository.get("owner")
        login = owner.get("login") if isinstance(owner, dict) else None
        name = repository.get("name")
        if isinstance(login, str) and login.strip() and isinstance(name, str) and name.strip():
            return login.strip(), name.strip()

        full_name = repository.get("full_name")
        if isinstance(full_name, str) and "/" in full_name:
            owner_part, name_part = full_name.split("/", 1)
            if owner_part.strip() and name_part.strip():
                return owner_part.strip(), name_part.strip()
        return None


UserPayload = dict[str, Any]
StarredPayload = list[dict[str, Any]]
ContentPayload = str

UserContract = FetchResult[UserPayload]
StarredContract = FetchResult[StarredPayload]
ContentContract = FetchResult[ContentPayload]
