"""Async GitHub client for starred-repository synchronization."""

from __future__ import annotations

import base64
import logging
import re
from typing import Any, Optional

import httpx

from stars_keeper.config.settings import settings
from stars_keeper.crawlers.contracts import (
    ContentContract,
    FetchResult,
    FetchState,
    StarredContract,
    UserContract,
)

logger = logging.getLogger(__name__)

REDACTED = "***REDACTED***"
# Header and field names whose values must never reach the logs.
_SECRET_FIELDS = frozenset({"authorization", "token", "github_token", "password", "cookie"})
# Fields carrying upstream documents; only their size is logged.
_DOCUMENT_FIELDS = frozenset({"body", "content", "payload", "readme"})
_SECRET_IN_TEXT = re.compile(
    r"(?i)(?P<prefix>bearer\s+|token\s*[=:]\s*|access_token=)[^\s,;&]+"
    r"|(?P<github>\bgh[pousr]_)[A-Za-z0-9]+"
)


def _mask_secrets(text: str) -> str:
    return _SECRET_IN_TEXT.sub(
        lambda match: f"{match.group('prefix') or match.group('github')}{REDACTED}",
        text,
    )


def _describe_document(text: str) -> str:
    return f"<redacted payload ({len(text)} chars)>" if text.strip() else ""


def sanitize_for_log(value: Any, *, key: Optional[str] = None) -> Any:
    """Copy `value` with tokens masked and README/body documents reduced to their size."""

    field = (key or "").lower()
    if field in _SECRET_FIELDS:
        return REDACTED
    if isinstance(value, str):
        return _describe_document(value) if field in _DOCUMENT_FIELDS else _mask_secrets(value)
    if isinstance(value, dict):
        return {str(name): sanitize_for_log(item, key=str(name)) for name, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_log(item) for item in value]
    return value


def sanitize_log_extra(**kwargs: Any) -> dict[str, Any]:
    """Sanitized `extra=` payload for structured log calls."""
    return sanitize_for_log(kwargs)


class GitHubRequestError(Exception):
    """Unrecoverable upstream failure (auth, rate limit, transport)."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @classmethod
    def from_result(cls, operation: str, result: FetchResult[Any]) -> "GitHubRequestError":
        detail = result.error or "unknown error"
        if result.status_code is not None:
            return cls(f"{operation} failed ({result.status_code}): {detail}", status_code=result.status_code)
        return cls(f"{operation} failed: {detail}")


class GitHubStarsClient:
    """Typed GitHub API client for the authenticated user's stars."""

    API_VERSION = "2022-11-28"
    ACCEPT_JSON = "application/vnd.github+json"
    ACCEPT_STARRED = "application/vnd.github.star+json"
    MAX_PER_PAGE = 100

    def __init__(
        self,
        *,
        token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        base_url: Optional[str] = None,
        transport: Optional[Any] = None,
    ) -> None:
        self._token = token or settings.GITHUB_TOKEN
        self._timeout_seconds = timeout_seconds or settings.GITHUB_TIMEOUT_SECONDS
        self._base_url = base_url or settings.GITHUB_API_URL
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "GitHubStarsClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_authenticated_user(self) -> UserContract:
        return await self._request("/user", accept=self.ACCEPT_JSON)

    async def list_starred(
        self,
        login: str,
        *,
        page: int = 1,
        per_page: int = 50,
    ) -> StarredContract:
        """List one page of the user's stars, each item carrying `starred_at` and `repo`.

        `next_page` on the result is taken from the `Link` header and is 0 on
        the last page.
        """

        response = await self._request(
            f"/users/{login}/starred",
            params={"page": page, "per_page": min(max(per_page, 1), self.MAX_PER_PAGE)},
            accept=self.ACCEPT_STARRED,
        )
        if not response.is_ok:
            return response

        items = response.data if isinstance(response.data, list) else []
        return FetchResult(
            state=FetchState.OK if items else FetchState.EMPTY,
            data=items,
            status_code=response.status_code,
            next_page=response.next_page,
        )

    async def get_readme(self, owner: str, repo: str) -> ContentContract:
        """Fetch and decode the repository README. A missing README is EMPTY, not FAILED."""

        response = await self._request(f"/repos/{owner}/{repo}/readme", accept=self.ACCEPT_JSON)
        if response.is_failed and response.status_code == 404:
            return FetchResult(state=FetchState.EMPTY, data="", status_code=404)
        if not response.is_ok:
            return response

        payload = response.data if isinstance(response.data, dict) else {}
        encoded = payload.get("content") if isinstance(payload.get("content"), str) else ""
        encoding = payload.get("encoding") if isinstance(payload.get("encoding"), str) else ""

        if not encoded:
            return FetchResult(state=FetchState.EMPTY, data="", status_code=response.status_code)

        if encoding == "base64":
            try:
                decoded = base64.b64decode(encoded).decode("utf-8", errors="replace")
            except ValueError as exc:
                return FetchResult(
                    state=FetchState.FAILED,
                    error=f"Failed to decode base64 content: {exc}",
                    status_code=response.status_code,
                )
        else:
            decoded = encoded

        if not decoded.strip():
            return FetchResult(state=FetchState.EMPTY, data=decoded, status_code=response.status_code)

        return FetchResult(state=FetchState.OK, data=decoded, status_code=response.status_code)

    async def _request(
        self,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        accept: Optional[str] = None,
    ) -> FetchResult[Any]:
        client = await self._ensure_client()
        headers = {"Accept": accept} if accept else {}

        try:
            response = await client.get(path, params=params, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning(
                "GitHub request failed",
                extra=sanitize_log_extra(path=path, params=params, error=str(exc)),
            )
            return FetchResult(state=FetchState.FAILED, error=str(exc))

        if response.status_code == 401:
            return self._failed(path, params, response, "authentication failed, check GITHUB_TOKEN")

        if response.status_code in (403, 429):
            remaining = response.headers.get("x-ratelimit-remaining")
            if response.status_code == 429 or remaining == "0":
                reset = response.headers.get("x-ratelimit-reset")
                return self._failed(path, params, response, f"rate limit exceeded (resets at {reset or 'unknown'})")
            return self._failed(path, params, response, "forbidden")

        if response.is_error:
            return self._failed(path, params, response, response.reason_phrase or "request failed")

        try:
            data = response.json()
        except ValueError as exc:
            return self._failed(path, params, response, f"invalid JSON payload: {exc}")

        return FetchResult(
            state=FetchState.OK,
            data=data,
            status_code=response.status_code,
            next_page=self._parse_next_page(response),
        )

    @staticmethod
    def _failed(
        path: str,
        params: Optional[dict[str, Any]],
        response: httpx.Response,
        reason: str,
    ) -> FetchResult[Any]:
        logger.warning(
            "GitHub request returned an error status",
            extra=sanitize_log_extra(path=path, params=params, status_code=response.status_code, error=reason),
        )
        return FetchResult(state=FetchState.FAILED, error=reason, status_code=response.status_code)

    @staticmethod
    def _parse_next_page(response: httpx.Response) -> int:
        next_link = response.links.get("next") or {}
        url = next_link.get("url")
        if not url:
            return 0

        raw_page = httpx.URL(url).params.get("page")
        try:
            return max(int(raw_page), 0) if raw_page is not None else 0
        except ValueError:
            return 0

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client:
            return self._client

        headers = {
            "Accept": self.ACCEPT_JSON,
            "User-Agent": settings.USER_AGENT,
            "X-GitHub-Api-Version": self.API_VERSION,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=self._timeout_seconds,
            transport=self._transport,
        )
        return self._client
