"""Tests for repository enumeration."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from gh_reports.enumerator import list_target_repos, select_repos
from gh_reports.errors import RepositoryNotFoundError
from gh_reports.github.client import GitHubClient
from gh_reports.models import Repository


def _repo_json(name, archived=False):
    return {"name": name, "full_name": f"acme/{name}", "owner": {"login": "acme"}, "archived": archived}


@pytest.fixture
def mock_client():
    client = AsyncMock(spec=GitHubClient)
    client.list_repos.return_value = [
        _repo_json("web"),
        _repo_json("api"),
        _repo_json("old-api", archived=True),
        _repo_json(".github"),
        _repo_json("api-gateway"),
    ]
    return client


@pytest.mark.asyncio
async def test_lists_org_repos_sorted_without_archived_or_denylisted(mock_client):
    repos = await list_target_repos(mock_client, "acme", denylist=frozenset({".github"}))
    assert [r.name for r in repos] == ["api", "api-gateway", "web"]
    mock_client.list_repos.assert_awaited_once_with("acme")


@pytest.mark.asyncio
async def test_substring_filter(mock_client):
    repos = await list_target_repos(mock_client, "acme", name_filter="API")
    assert [r.name for r in repos] == ["api", "api-gateway"]


@pytest.mark.asyncio
async def test_single_repo(mock_client):
    mock_client.get_repo.return_value = _repo_json("api")
    repos = await list_target_repos(mock_client, "acme", repo="api")
    assert [r.full_name for r in repos] == ["acme/api"]
    mock_client.list_repos.assert_not_called()


@pytest.mark.asyncio
async def test_single_repo_not_found(mock_client):
    mock_client.get_repo.return_value = None
    with pytest.raises(RepositoryNotFoundError, match="acme/missing"):
        await list_target_repos(mock_client, "acme", repo="missing")


@pytest.mark.asyncio
async def test_single_archived_repo_is_excluded(mock_client):
    mock_client.get_repo.return_value = _repo_json("old-api", archived=True)
    assert await list_target_repos(mock_client, "acme", repo="old-api") == []


def test_select_repos_empty():
    assert select_repos([]) == []


def test_select_repos_denylist_matches_name_only():
    repos = [Repository(full_name="acme/sandbox", name="sandbox", owner="acme")]
    assert select_repos(repos, denylist=frozenset({"acme/sandbox"})) == repos
    assert select_repos(repos, denylist=frozenset({"sandbox"})) == []
