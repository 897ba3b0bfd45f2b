"""File-based cache for GitHub API responses, enabled by ``--use-cache``."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Any

from .config import DEFAULT_CACHE_DIR, DEFAULT_CACHE_TTL

logger = logging.getLogger(__name__)


class FileCache:
    """One JSON file per request, expiring ``ttl`` seconds after it was written.

    Entries of every namespace share ``cache_dir``; ``sweep`` removes the
    expired ones so the directory does not grow without bound.
    """

    def __init__(
        self,
        cache_dir: Path = DEFAULT_CACHE_DIR,
        ttl: int = DEFAULT_CACHE_TTL,
        namespace: str = "",
    ) -> None:
        self._cache_dir = cache_dir
        self._ttl = ttl
        self._namespace = namespace
        self._cache_dir.mkdir(parents=True, exist_ok=True)

    def _entry_path(self, url: str, params: dict[str, Any] | None) -> Path:
        request = json.dumps([self._namespace, url, params or {}], sort_keys=True)
        return self._cache_dir / f"{hashlib.sha256(request.encode()).hexdigest()}.json"

    def _load(self, path: Path) -> dict[str, Any] | None:
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.debug("Ignoring unreadable cache entry %s: %s", path.name, exc)
            return None

    def _expired(self, entry: dict[str, Any], now: float) -> bool:
        return now - entry.get("ts", 0) > self._ttl

    def get(self, url: str, params: dict[str, Any] | None = None) -> Any | None:
        path = self._entry_path(url, params)
        if not path.exists():
            return None
        entry = self._load(path)
        if entry is None:
            return None
        if self._expired(entry, time.time()):
            path.unlink(missing_ok=True)
            return None
        logger.debug("Cache hit for %s", url)
        return entry.get("value")

    def set(self, url: str, params: dict[str, Any] | None, value: Any) -> None:
        path = self._entry_path(url, params)
        entry = {"ts": time.time(), "url": url, "value": value}
        try:
            path.write_text(json.dumps(entry, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write cache entry for %s: %s", url, exc)

    def sweep(self) -> int:
        """Delete expired and unreadable entries; return how many were removed."""
        now = time.time()
        removed = 0
        for path in self._cache_dir.glob("*.json"):
            entry = self._load(path)
            if entry is not None and not self._expired(entry, now):
                continue
            path.unlink(missing_ok=True)
            removed += 1
        if removed:
            logger.debug("Removed %d stale cache entries from %s", removed, self._cache_dir)
        return removed
