"""Repository enumeration for an organization."""

from __future__ import annotations

import logging
from typing import Iterable

from .errors import RepositoryNotFoundError
from .github.client import GitHubClient
from .models import Repository

logger = logging.getLogger(__name__)


def select_repos(
    repos: Iterable[Repository],
    denylist: frozenset[str] = frozenset(),
    name_filter: str | None = None,
) -> list[Repository]:
    """Drop archived and denylisted repositories, keep substring matches, sort by name."""
    selected = []
    for repo in repos:
        if repo.archived:
            logger.debug("Skipping archived repository %s", repo.full_name)
            continue
        if repo.name in denylist:
            logger.debug("Skipping denylisted repository %s", repo.full_name)
            continue
        if name_filter and name_filter.lower() not in repo.name.lower():
            continue
        selected.append(repo)
    return sorted(selected, key=lambda r: r.name.lower())


async def list_target_repos(
    client: GitHubClient,
    org: str,
    repo: str | None = None,
    name_filter: str | None = None,
    denylist: frozenset[str] = frozenset(),
) -> list[Repository]:
    """Return the repositories a report should cover.

    A named ``repo`` must exist; RepositoryNotFoundError is raised otherwise.
    """
    if repo:
        data = await client.get_repo(org, repo)
        if data is None:
            raise RepositoryNotFoundError(f"{org}/{repo}")
        candidates = [Repository.from_api(data)]
    else:
        candidates = [Repository.from_api(r) for r in await client.list_repos(org)]

    return select_repos(candidates, denylist=denylist, name_filter=name_filter)
