"""Tests for the filters module."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from gh_reports.dates import DateRange
from gh_reports.filters import (
    filter_by_date,
    filter_high_risk,
    filter_pull_requests,
    pending_release,
    review_status,
    sort_alerts,
)
from gh_reports.models import (
    PullRequest,
    Review,
    ReviewPolicy,
    ReviewState,
    ReviewStatus,
    SecurityAlert,
    Severity,
)

NOW = datetime(2024, 6, 15, tzinfo=timezone.utc)


def _pr(number=1, author="alice", age_days=1.0, **kwargs) -> PullRequest:
    return PullRequest(
        number=number,
        title=f"PR {number}",
        author=author,
        created_at=NOW - timedelta(days=age_days),
        url=f"https://github.com/acme/api/pull/{number}",
        repo="acme/api",
        **kwargs,
    )


def _review(reviewer, state, hours=0) -> Review:
    return Review(
        reviewer=reviewer,
        state=state,
        submitted_at=NOW + timedelta(hours=hours),
        pr_number=1,
    )


def _alert(package, severity) -> SecurityAlert:
    return SecurityAlert(
        package=package,
        severity=severity,
        ghsa_id=f"GHSA-{package}",
        published_at=NOW,
        url="",
        repo="acme/api",
    )


def test_filter_by_date_inclusive_bounds():
    window = DateRange(start=NOW - timedelta(days=1), end=NOW)
    items = [NOW - timedelta(days=2), NOW - timedelta(days=1), NOW, NOW + timedelta(seconds=1), None]
    assert filter_by_date(items, window, lambda d: d) == [NOW - timedelta(days=1), NOW]


def test_filter_high_risk_keeps_critical_only_over_medium():
    alerts = [_alert("lodash", Severity.MEDIUM), _alert("openssl", Severity.CRITICAL)]
    kept = filter_high_risk(alerts)
    assert [a.package for a in kept] == ["openssl"]


def test_filter_high_risk_keeps_high():
    alerts = [_alert("a", Severity.HIGH), _alert("b", Severity.LOW)]
    assert [a.package for a in filter_high_risk(alerts)] == ["a"]


def test_sort_alerts_most_severe_first():
    alerts = [
        _alert("b", Severity.LOW),
        _alert("c", Severity.CRITICAL),
        _alert("a", Severity.CRITICAL),
        _alert("d", Severity.MEDIUM),
    ]
    assert [a.package for a in sort_alerts(alerts)] == ["a", "c", "d", "b"]


def test_filter_pull_requests_drops_drafts():
    prs = [_pr(1), _pr(2, draft=True)]
    assert [p.number for p in filter_pull_requests(prs, now=NOW)] == [1]


def test_filter_pull_requests_mine():
    prs = [_pr(1, author="alice"), _pr(2, author="bob")]
    kept = filter_pull_requests(prs, user="bob", mine=True, now=NOW)
    assert [p.number for p in kept] == [2]


def test_filter_pull_requests_involved():
    prs = [
        _pr(1, assignees=["bob"]),
        _pr(2, requested_reviewers=["bob"]),
        _pr(3, author="bob"),
    ]
    kept = filter_pull_requests(prs, user="bob", involved=True, now=NOW)
    assert [p.number for p in kept] == [1, 2]


def test_filter_pull_requests_older_than():
    prs = [_pr(1, age_days=0.5), _pr(2, age_days=3), _pr(3, age_days=10)]
    kept = filter_pull_requests(prs, older_than_days=3, now=NOW)
    assert [p.number for p in kept] == [2, 3]


def test_review_status_no_reviews_is_pending():
    assert review_status([]) is ReviewStatus.PENDING


def test_review_status_comments_only_is_pending():
    assert review_status([_review("bob", ReviewState.COMMENTED)]) is ReviewStatus.PENDING


def test_review_status_changes_requested():
    reviews = [_review("bob", ReviewState.CHANGES_REQUESTED)]
    assert review_status(reviews) is ReviewStatus.CHANGES_REQUESTED


def test_review_status_any_approval_wins_regardless_of_order():
    reviews = [
        _review("bob", ReviewState.APPROVED, hours=1),
        _review("bob", ReviewState.CHANGES_REQUESTED, hours=2),
    ]
    assert review_status(reviews) is ReviewStatus.APPROVED


def test_review_status_latest_wins_change_request_after_approval():
    reviews = [
        _review("bob", ReviewState.APPROVED, hours=1),
        _review("bob", ReviewState.CHANGES_REQUESTED, hours=2),
    ]
    assert review_status(reviews, ReviewPolicy.LATEST_WINS) is ReviewStatus.CHANGES_REQUESTED


def test_review_status_latest_wins_approval_after_change_request():
    reviews = [
        _review("bob", ReviewState.CHANGES_REQUESTED, hours=1),
        _review("bob", ReviewState.COMMENTED, hours=2),
        _review("bob", ReviewState.APPROVED, hours=3),
    ]
    assert review_status(reviews, ReviewPolicy.LATEST_WINS) is ReviewStatus.APPROVED


def test_review_status_latest_wins_other_reviewer_blocks():
    reviews = [
        _review("bob", ReviewState.APPROVED, hours=1),
        _review("carol", ReviewState.CHANGES_REQUESTED, hours=0),
    ]
    assert review_status(reviews, ReviewPolicy.LATEST_WINS) is ReviewStatus.CHANGES_REQUESTED


def test_pending_release_zero_ahead_is_none():
    assert pending_release("acme/api", "v1.0.0", "main", {"ahead_by": 0, "commits": []}) is None


def test_pending_release_behind_is_none():
    assert pending_release("acme/api", "v1.0.0", "main", {"ahead_by": 0, "behind_by": 3}) is None


def test_pending_release_lists_commits_newest_first():
    comparison = {
        "ahead_by": 2,
        "commits": [
            {"sha": "aaaaaaaaaa", "commit": {"message": "First", "author": {"name": "A", "date": "2024-06-01T00:00:00Z"}}},
            {"sha": "bbbbbbbbbb", "commit": {"message": "Second\nbody", "author": {"name": "B", "date": "2024-06-02T00:00:00Z"}}},
        ],
    }
    pending = pending_release("acme/api", "v1.0.0", "main", comparison)
    assert pending is not None
    assert pending.ahead_by == 2
    assert [c.sha for c in pending.commits] == ["bbbbbbb", "aaaaaaa"]
    assert pending.commits[0].message == "Second"
