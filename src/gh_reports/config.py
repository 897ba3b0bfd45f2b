"""Runtime settings with documented defaults and environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

DEFAULT_ORG = "harness"

# Repositories that never carry releases, alerts or reviewable pull requests.
DEFAULT_DENYLIST = frozenset({".github", "homebrew-tap", "sandbox"})

SETTINGS_ACTIONS = ("secure-all", "auto-merge", "auto-delete", "protect-default")

DEFAULT_QUARTER = "Q4"
DEFAULT_CONCURRENCY = 5
DEFAULT_CACHE_DIR = Path.home() / ".cache" / "gh-reports"
DEFAULT_CACHE_TTL = 3600  # 1 hour


def _current_year() -> int:
    return datetime.now(timezone.utc).year


@dataclass(frozen=True)
class Settings:
    """Configuration shared by every subcommand.

    Environment variables:
      GH_REPORTS_ORG        organization to report on
      GH_REPORTS_DENYLIST   comma-separated repository names to always skip
      GITHUB_API_URL        GitHub Enterprise API base URL
    """

    org: str = DEFAULT_ORG
    denylist: frozenset[str] = DEFAULT_DENYLIST
    api_url: str | None = None
    default_quarter: str = DEFAULT_QUARTER
    default_year: int = field(default_factory=_current_year)
    keep_going: bool = False
    concurrency: int = DEFAULT_CONCURRENCY
    cache_dir: Path = DEFAULT_CACHE_DIR
    cache_ttl: int = DEFAULT_CACHE_TTL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        settings = cls()
        org = env.get("GH_REPORTS_ORG")
        if org:
            settings = replace(settings, org=org)
        denylist = env.get("GH_REPORTS_DENYLIST")
        if denylist is not None:
            names = {n.strip() for n in denylist.split(",") if n.strip()}
            settings = replace(settings, denylist=frozenset(names))
        api_url = env.get("GITHUB_API_URL")
        if api_url:
            settings = replace(settings, api_url=api_url)
        return settings

    def with_overrides(
        self,
        org: str | None = None,
        exclude_repos: tuple[str, ...] = (),
        api_url: str | None = None,
        keep_going: bool | None = None,
        concurrency: int | None = None,
    ) -> Settings:
        """Apply command-line overrides on top of the environment settings."""
        return replace(
            self,
            org=org or self.org,
            denylist=self.denylist | frozenset(exclude_repos),
            api_url=api_url or self.api_url,
            keep_going=self.keep_going if keep_going is None else keep_going,
            concurrency=concurrency or self.concurrency,
        )
