"""GitHub REST API client."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

import httpx

from ..cache import FileCache
from ..config import DEFAULT_CACHE_DIR, DEFAULT_CACHE_TTL
from .rate_limit import RateLimitMonitor

logger = logging.getLogger(__name__)

BASE_URL = "https://api.github.com"


class GitHubClient:
    """Async GitHub REST API client with pagination, rate limit and optional cache support."""

    def __init__(
        self,
        token: str,
        concurrency: int = 5,
        use_cache: bool = False,
        base_url: str | None = None,
        verify_ssl: bool = True,
        cache_dir: Path = DEFAULT_CACHE_DIR,
        cache_ttl: int = DEFAULT_CACHE_TTL,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        self.base_url = base_url or BASE_URL
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=30.0,
            verify=verify_ssl,
        )
        self._rate_limit = RateLimitMonitor()
        self._semaphore = asyncio.Semaphore(concurrency)
        self._cache: FileCache | None = None
        if use_cache:
            self._cache = FileCache(cache_dir=cache_dir, ttl=cache_ttl, namespace=self.base_url)
            self._cache.sweep()

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def _get(
        self, url: str, params: dict[str, Any] | None = None
    ) -> httpx.Response:
        async with self._semaphore:
            await self._rate_limit.wait_if_needed()
            response = await self._client.get(url, params=params)
            self._rate_limit.update(response)
            response.raise_for_status()
            return response

    async def _send(
        self, method: str, url: str, payload: dict[str, Any] | None = None
    ) -> httpx.Response:
        """Issue a write request (PATCH, PUT, POST)."""
        async with self._semaphore:
            await self._rate_limit.wait_if_needed()
            logger.debug("%s %s", method, url)
            response = await self._client.request(method, url, json=payload)
            self._rate_limit.update(response)
            response.raise_for_status()
            return response

    async def _cached_get_json(
        self, url: str, params: dict[str, Any] | None = None
    ) -> Any:
        """GET with file cache support. Returns parsed JSON."""
        if self._cache is not None:
            cached = self._cache.get(url, params)
            if cached is not None:
                return cached
        response = await self._get(url, params)
        data = response.json()
        if self._cache is not None:
            self._cache.set(url, params, data)
        return data

    async def _cached_paginate(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        limit: int | None = None,
        stop: Callable[[Any], bool] | None = None,
        cache_scope: dict[str, Any] | None = None,
    ) -> list[Any]:
        """Paginate with file cache support.

        ``cache_scope`` distinguishes cached results whose ``limit`` or
        ``stop`` differ for the same request parameters.
        """
        cache_params = dict(params or {})
        cache_params.update(cache_scope or {})
        if limit is not None:
            cache_params["__limit"] = limit
        if self._cache is not None:
            cached = self._cache.get(url, cache_params)
            if cached is not None:
                return cached

        results = await self._paginate(url, params, limit=limit, stop=stop)
        if self._cache is not None:
            self._cache.set(url, cache_params, results)
        return results

    async def _paginate(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        limit: int | None = None,
        stop: Callable[[Any], bool] | None = None,
    ) -> list[Any]:
        """Follow ``Link: rel="next"`` until exhausted.

        Stops early once ``limit`` items are collected or an item matches
        ``stop`` (that item and the rest of its page are dropped).
        """
        results: list[Any] = []
        params = dict(params or {})
        params.setdefault("per_page", 100)
        next_url: str | None = url

        while next_url is not None:
            response = await self._get(next_url, params)
            data = response.json()
            page = data if isinstance(data, list) else [data]
            for item in page:
                if stop is not None and stop(item):
                    return results
                results.append(item)
                if limit is not None and len(results) >= limit:
                    return results

            # Follow Link header for next page
            next_url = None
            link_header = response.headers.get("Link", "")
            for part in link_header.split(","):
                if 'rel="next"' in part:
                    next_url = part.split(";")[0].strip().strip("<>")
                    params = {}  # URL already contains params
                    break

        return results

    async def get_authenticated_user(self) -> str:
        """Return the login of the token's owner."""
        response = await self._get("/user")
        return response.json()["login"]

    async def list_repos(self, org: str) -> list[dict[str, Any]]:
        """List all repositories for an organization, or a user as fallback."""
        params = {"type": "all", "sort": "full_name"}
        try:
            return await self._cached_paginate(f"/orgs/{org}/repos", params=params)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return await self._cached_paginate(f"/users/{org}/repos", params=params)
            raise

    async def get_repo(self, owner: str, repo: str) -> dict[str, Any] | None:
        """Repository metadata, or ``None`` when it does not exist or is not visible."""
        try:
            return await self._cached_get_json(f"/repos/{owner}/{repo}")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            raise

    async def list_releases(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return await self._cached_paginate(f"/repos/{owner}/{repo}/releases")

    async def get_latest_release(self, owner: str, repo: str) -> dict[str, Any] | None:
        """Latest published release, or ``None`` if the repository has none."""
        try:
            return await self._cached_get_json(f"/repos/{owner}/{repo}/releases/latest")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            raise

    async def compare(self, owner: str, repo: str, base: str, head: str) -> dict[str, Any]:
        """Compare two refs; ``ahead_by`` counts commits on ``head`` missing from ``base``."""
        return await self._cached_get_json(f"/repos/{owner}/{repo}/compare/{base}...{head}")

    async def list_dependabot_alerts(
        self, owner: str, repo: str, state: str = "open"
    ) -> list[dict[str, Any]]:
        return await self._cached_paginate(
            f"/repos/{owner}/{repo}/dependabot/alerts", params={"state": state}
        )

    async def list_pull_requests(
        self,
        owner: str,
        repo: str,
        state: str = "open",
        since: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """List pull requests, newest first.

        With ``since`` paging stops at the first pull request created before it.
        """
        params: dict[str, Any] = {
            "state": state,
            "sort": "created",
            "direction": "desc",
        }
        stop = None
        if since:
            def stop(pr: dict[str, Any]) -> bool:
                return pr.get("created_at", "") < since

        return await self._cached_paginate(
            f"/repos/{owner}/{repo}/pulls",
            params=params,
            limit=limit,
            stop=stop,
            # Day granularity so repeated runs share an entry; the exact
            # cutoff is applied again when the results are filtered.
            cache_scope={"__since": since[:10]} if since else None,
        )

    async def list_reviews(self, owner: str, repo: str, number: int) -> list[dict[str, Any]]:
        return await self._cached_paginate(f"/repos/{owner}/{repo}/pulls/{number}/reviews")

    async def approve_pull_request(
        self, owner: str, repo: str, number: int, body: str = ""
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"event": "APPROVE"}
        if body:
            payload["body"] = body
        response = await self._send("POST", f"/repos/{owner}/{repo}/pulls/{number}/reviews", payload)
        return response.json()

    async def update_repo(self, owner: str, repo: str, **fields: Any) -> dict[str, Any]:
        response = await self._send("PATCH", f"/repos/{owner}/{repo}", fields)
        return response.json()

    async def vulnerability_alerts_enabled(self, owner: str, repo: str) -> bool:
        """GitHub answers 204 when enabled and 404 when disabled."""
        try:
            await self._get(f"/repos/{owner}/{repo}/vulnerability-alerts")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return False
            raise
        return True

    async def enable_vulnerability_alerts(self, owner: str, repo: str) -> None:
        await self._send("PUT", f"/repos/{owner}/{repo}/vulnerability-alerts")

    async def automated_security_fixes_enabled(self, owner: str, repo: str) -> bool:
        try:
            response = await self._get(f"/repos/{owner}/{repo}/automated-security-fixes")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return False
            raise
        return bool(response.json().get("enabled"))

    async def enable_automated_security_fixes(self, owner: str, repo: str) -> None:
        await self._send("PUT", f"/repos/{owner}/{repo}/automated-security-fixes")

    async def list_rulesets(self, owner: str, repo: str) -> list[dict[str, Any]]:
        return await self._paginate(f"/repos/{owner}/{repo}/rulesets")

    async def create_ruleset(
        self, owner: str, repo: str, ruleset: dict[str, Any]
    ) -> dict[str, Any]:
        response = await self._send("POST", f"/repos/{owner}/{repo}/rulesets", ruleset)
        return response.json()
