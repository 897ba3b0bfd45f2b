"""Pull request and review metrics aggregation."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from statistics import mean

from .dates import DateRange, days_between
from .models import MetricsBucket, MetricsReport, PullRequest, ReviewState

logger = logging.getLogger(__name__)


@dataclass
class ReviewEvent:
    """A reviewer's first submitted review on someone else's pull request."""

    reviewer: str
    repo: str
    pr_number: int
    days_to_review: float


def _avg(values: list[float]) -> float:
    return round(mean(values), 1) if values else 0.0


def _merge_rate(merged: int, total: int) -> float:
    return round(merged / total * 100, 1) if total else 0.0


def _velocity(count: int, window_days: int) -> float:
    return round(count * 7 / window_days, 1) if window_days > 0 else 0.0


def review_events(prs: list[PullRequest]) -> list[ReviewEvent]:
    """One event per (pull request, reviewer); self-reviews and unsubmitted drafts are ignored."""
    events: list[ReviewEvent] = []
    for pr in prs:
        first: dict[str, float] = {}
        for review in pr.reviews:
            if review.state is ReviewState.PENDING or review.submitted_at is None:
                continue
            if review.reviewer == pr.author:
                continue
            days = max(0.0, days_between(pr.created_at, review.submitted_at))
            if review.reviewer not in first or days < first[review.reviewer]:
                first[review.reviewer] = days
        for reviewer, days in sorted(first.items()):
            events.append(ReviewEvent(reviewer, pr.repo, pr.number, days))
    return events


def _first_review_days(pr: PullRequest, events: list[ReviewEvent]) -> float | None:
    times = [e.days_to_review for e in events if e.repo == pr.repo and e.pr_number == pr.number]
    return min(times) if times else None


def _author_buckets(
    prs: list[PullRequest], events: list[ReviewEvent], window_days: int
) -> list[MetricsBucket]:
    by_author: dict[str, list[PullRequest]] = defaultdict(list)
    for pr in prs:
        by_author[pr.author].append(pr)

    buckets = []
    for author, authored in by_author.items():
        merged = [pr for pr in authored if pr.merged_at is not None]
        review_times = [
            t for t in (_first_review_days(pr, events) for pr in authored) if t is not None
        ]
        buckets.append(
            MetricsBucket(
                key=author,
                count=len(authored),
                merged=len(merged),
                avg_time_to_merge_days=_avg(
                    [days_between(pr.created_at, pr.merged_at) for pr in merged]
                ),
                avg_time_to_review_days=_avg(review_times),
                velocity_per_week=_velocity(len(authored), window_days),
                merge_rate=_merge_rate(len(merged), len(authored)),
            )
        )
    buckets.sort(key=lambda b: (-b.count, b.key))
    return buckets


def _reviewer_buckets(events: list[ReviewEvent], window_days: int) -> list[MetricsBucket]:
    by_reviewer: dict[str, list[float]] = defaultdict(list)
    for event in events:
        by_reviewer[event.reviewer].append(event.days_to_review)

    buckets = [
        MetricsBucket(
            key=reviewer,
            count=len(times),
            avg_time_to_review_days=_avg(times),
            velocity_per_week=_velocity(len(times), window_days),
        )
        for reviewer, times in by_reviewer.items()
    ]
    buckets.sort(key=lambda b: (-b.count, b.key))
    return buckets


def aggregate_metrics(
    prs: list[PullRequest],
    window: DateRange,
    org: str,
    user: str | None = None,
    failed_repos: list[str] | None = None,
) -> MetricsReport:
    """Aggregate pull requests (with their reviews attached) created within ``window``.

    With ``user`` the author statistics cover only that user's pull requests
    and the review statistics only that user's reviews.
    """
    window_days = window.days
    in_window = [pr for pr in prs if window.contains(pr.created_at)]
    all_events = review_events(in_window)
    events = all_events

    if user:
        authored = [pr for pr in in_window if pr.author == user]
        events = [e for e in all_events if e.reviewer == user]
    else:
        authored = in_window

    merged = [pr for pr in authored if pr.merged_at is not None]
    logger.debug(
        "Aggregating %d pull requests and %d reviews over %d days",
        len(authored),
        len(events),
        window_days,
    )

    return MetricsReport(
        org=org,
        period_start=window.iso_start(),
        period_end=window.iso_end(),
        window_days=window_days,
        total_prs=len(authored),
        merged_prs=len(merged),
        total_reviews=len(events),
        avg_time_to_merge_days=_avg(
            [days_between(pr.created_at, pr.merged_at) for pr in merged]
        ),
        avg_time_to_review_days=_avg([e.days_to_review for e in events]),
        pr_velocity=_velocity(len(authored), window_days),
        review_velocity=_velocity(len(events), window_days),
        merge_rate=_merge_rate(len(merged), len(authored)),
        authors=_author_buckets(authored, all_events, window_days),
        reviewers=_reviewer_buckets(events, window_days),
        failed_repos=list(failed_repos or []),
    )
