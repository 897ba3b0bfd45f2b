"""Tests for data models."""

from datetime import datetime, timezone

import pytest

from gh_reports.models import (
    Commit,
    MetricsReport,
    PullRequest,
    Release,
    Repository,
    Review,
    ReviewState,
    ReviewStatus,
    SecurityAlert,
    Severity,
)


def test_repository_from_api():
    repo = Repository.from_api(
        {
            "name": "api",
            "full_name": "acme/api",
            "owner": {"login": "acme"},
            "archived": True,
            "default_branch": "develop",
            "allow_auto_merge": True,
        }
    )
    assert repo.full_name == "acme/api"
    assert repo.owner == "acme"
    assert repo.archived is True
    assert repo.default_branch == "develop"
    assert repo.allow_auto_merge is True
    assert repo.delete_branch_on_merge is False


def test_repository_from_api_minimal():
    repo = Repository.from_api({"name": "api", "owner": {"login": "acme"}})
    assert repo.full_name == "acme/api"
    assert repo.default_branch == "main"


def test_release_from_api():
    release = Release.from_api(
        {
            "tag_name": "v1.2.0",
            "name": None,
            "body": "  fixes\n",
            "published_at": "2024-02-01T09:00:00Z",
            "draft": False,
        },
        "acme/api",
    )
    assert release.tag == "v1.2.0"
    assert release.title == "v1.2.0"
    assert release.body == "fixes"
    assert release.published_at == datetime(2024, 2, 1, 9, tzinfo=timezone.utc)


def test_draft_release_is_dropped():
    assert Release.from_api({"tag_name": "v2", "published_at": None, "draft": True}, "acme/api") is None


def test_security_alert_from_api():
    alert = SecurityAlert.from_api(
        {
            "html_url": "https://github.com/acme/api/security/dependabot/1",
            "dependency": {"package": {"name": "requests"}},
            "security_advisory": {
                "ghsa_id": "GHSA-xxxx-yyyy-zzzz",
                "severity": "critical",
                "published_at": "2024-03-01T00:00:00Z",
            },
        },
        "acme/api",
    )
    assert alert.package == "requests"
    assert alert.severity is Severity.CRITICAL
    assert alert.ghsa_id == "GHSA-xxxx-yyyy-zzzz"
    assert alert.repo == "acme/api"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("HIGH", Severity.HIGH),
        ("moderate", Severity.MEDIUM),
        ("medium", Severity.MEDIUM),
        (None, Severity.LOW),
    ],
)
def test_severity_parse(raw, expected):
    assert Severity.parse(raw) is expected


def test_pull_request_from_api():
    pr = PullRequest.from_api(
        {
            "number": 42,
            "title": "Fix bug",
            "user": {"login": "alice"},
            "created_at": "2024-06-01T00:00:00Z",
            "merged_at": None,
            "html_url": "https://github.com/acme/api/pull/42",
            "draft": False,
            "assignees": [{"login": "bob"}],
            "requested_reviewers": [{"login": "carol"}],
        },
        "acme/api",
    )
    assert pr.number == 42
    assert pr.author == "alice"
    assert pr.merged_at is None
    assert pr.assignees == ["bob"]
    assert pr.requested_reviewers == ["carol"]
    assert pr.review_status is ReviewStatus.PENDING


def test_pull_request_deleted_author_is_ghost():
    pr = PullRequest.from_api(
        {"number": 1, "user": None, "created_at": "2024-06-01T00:00:00Z"}, "acme/api"
    )
    assert pr.author == "ghost"


def test_review_from_api():
    review = Review.from_api(
        {"user": {"login": "bob"}, "state": "APPROVED", "submitted_at": "2024-06-02T00:00:00Z"},
        42,
    )
    assert review.reviewer == "bob"
    assert review.state is ReviewState.APPROVED
    assert review.pr_number == 42


def test_commit_from_api_first_line_only():
    commit = Commit.from_api(
        {
            "sha": "0123456789abcdef",
            "commit": {
                "message": "Add feature\n\nLonger description",
                "author": {"name": "Alice", "date": "2024-06-02T00:00:00Z"},
            },
        }
    )
    assert commit.sha == "0123456"
    assert commit.message == "Add feature"
    assert commit.author == "Alice"


def test_metrics_report_defaults():
    report = MetricsReport(
        org="acme", period_start="2024-01-01", period_end="2024-01-31", window_days=30
    )
    assert report.total_prs == 0
    assert report.avg_time_to_merge_days == 0.0
    assert report.authors == []
    assert report.failed_repos == []
