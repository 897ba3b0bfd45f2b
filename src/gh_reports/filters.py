"""Pure filters and reductions over decoded API records."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, TypeVar

from .dates import DateRange
from .models import (
    Commit,
    PendingRelease,
    PullRequest,
    Review,
    ReviewPolicy,
    ReviewState,
    ReviewStatus,
    SecurityAlert,
    Severity,
)

T = TypeVar("T")

HIGH_RISK = frozenset({Severity.CRITICAL, Severity.HIGH})

_SEVERITY_ORDER = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
}


def filter_by_date(
    records: Iterable[T],
    window: DateRange,
    moment: Callable[[T], datetime | None],
) -> list[T]:
    """Keep records whose ``moment`` falls inside ``window`` (inclusive)."""
    kept = []
    for record in records:
        when = moment(record)
        if when is not None and window.contains(when):
            kept.append(record)
    return kept


def filter_high_risk(alerts: Iterable[SecurityAlert]) -> list[SecurityAlert]:
    return [a for a in alerts if a.severity in HIGH_RISK]


def sort_alerts(alerts: Iterable[SecurityAlert]) -> list[SecurityAlert]:
    """Most severe first, then by package name."""
    return sorted(alerts, key=lambda a: (_SEVERITY_ORDER[a.severity], a.package))


def filter_pull_requests(
    prs: Iterable[PullRequest],
    user: str | None = None,
    mine: bool = False,
    involved: bool = False,
    older_than_days: int | None = None,
    now: datetime | None = None,
) -> list[PullRequest]:
    """Drop drafts, then apply the --mine, --involved and --days predicates."""
    now = now or datetime.now(timezone.utc)
    kept = []
    for pr in prs:
        if pr.draft:
            continue
        if mine and pr.author != user:
            continue
        if involved and user not in pr.assignees and user not in pr.requested_reviewers:
            continue
        if older_than_days is not None and now - pr.created_at < timedelta(days=older_than_days):
            continue
        kept.append(pr)
    return kept


def review_status(
    reviews: Iterable[Review], policy: ReviewPolicy = ReviewPolicy.APPROVAL_WINS
) -> ReviewStatus:
    """Reduce a pull request's reviews to one status.

    APPROVAL_WINS: approved if anyone approved, else changes requested if
    anyone requested changes, else pending. Review order is ignored.

    LATEST_WINS: only each reviewer's most recent approval or change request
    counts, and an outstanding change request beats any approval.
    """
    reviews = list(reviews)
    if policy is ReviewPolicy.LATEST_WINS:
        decisive = (ReviewState.APPROVED, ReviewState.CHANGES_REQUESTED)
        latest: dict[str, Review] = {}
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        for review in sorted(reviews, key=lambda r: r.submitted_at or epoch):
            if review.state in decisive:
                latest[review.reviewer] = review
        states = {r.state for r in latest.values()}
        if ReviewState.CHANGES_REQUESTED in states:
            return ReviewStatus.CHANGES_REQUESTED
        if ReviewState.APPROVED in states:
            return ReviewStatus.APPROVED
        return ReviewStatus.PENDING

    states = {r.state for r in reviews}
    if ReviewState.APPROVED in states:
        return ReviewStatus.APPROVED
    if ReviewState.CHANGES_REQUESTED in states:
        return ReviewStatus.CHANGES_REQUESTED
    return ReviewStatus.PENDING


def pending_release(
    repo: str,
    latest_tag: str,
    branch: str,
    comparison: dict,
) -> PendingRelease | None:
    """Describe unreleased work, or ``None`` unless ``branch`` is strictly ahead of the tag."""
    ahead_by = int(comparison.get("ahead_by") or 0)
    if ahead_by <= 0:
        return None
    commits = [Commit.from_api(c) for c in comparison.get("commits") or []]
    # The compare API lists oldest first; show newest first.
    commits.reverse()
    return PendingRelease(
        repo=repo,
        latest_tag=latest_tag,
        branch=branch,
        ahead_by=ahead_by,
        commits=commits,
    )
