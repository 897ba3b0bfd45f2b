"""Data models for gh-reports.

Every record is decoded from a GitHub REST payload by an explicit ``from_api``
constructor; missing fields become ``None`` or empty values, never strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from .dates import parse_timestamp


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: str | None) -> Severity:
        try:
            return cls((value or "").lower())
        except ValueError:
            # GitHub reports "moderate" for medium on some advisories.
            if (value or "").lower() == "moderate":
                return cls.MEDIUM
            return cls.LOW


class ReviewState(str, Enum):
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    COMMENTED = "COMMENTED"
    DISMISSED = "DISMISSED"
    PENDING = "PENDING"


class ReviewStatus(str, Enum):
    """Aggregate review status of a pull request."""

    APPROVED = "approved"
    CHANGES_REQUESTED = "changes-requested"
    PENDING = "pending"


class ReviewPolicy(str, Enum):
    APPROVAL_WINS = "approval-wins"
    LATEST_WINS = "latest-wins"


def _login(user: dict[str, Any] | None) -> str:
    if not user:
        return "ghost"
    return user.get("login") or "ghost"


@dataclass
class Repository:
    full_name: str
    name: str
    owner: str
    archived: bool = False
    default_branch: str = "main"
    allow_auto_merge: bool = False
    delete_branch_on_merge: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Repository:
        name = data["name"]
        owner = _login(data.get("owner"))
        return cls(
            full_name=data.get("full_name") or f"{owner}/{name}",
            name=name,
            owner=owner,
            archived=bool(data.get("archived")),
            default_branch=data.get("default_branch") or "main",
            allow_auto_merge=bool(data.get("allow_auto_merge")),
            delete_branch_on_merge=bool(data.get("delete_branch_on_merge")),
        )


@dataclass
class Release:
    tag: str
    title: str
    body: str
    published_at: datetime
    repo: str
    url: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any], repo: str) -> Release | None:
        """Decode a release; drafts (never published) yield ``None``."""
        published = parse_timestamp(data.get("published_at"))
        if published is None or data.get("draft"):
            return None
        tag = data.get("tag_name") or ""
        return cls(
            tag=tag,
            title=data.get("name") or tag,
            body=(data.get("body") or "").strip(),
            published_at=published,
            repo=repo,
            url=data.get("html_url") or "",
        )


@dataclass
class SecurityAlert:
    package: str
    severity: Severity
    ghsa_id: str
    published_at: datetime | None
    url: str
    repo: str

    @classmethod
    def from_api(cls, data: dict[str, Any], repo: str) -> SecurityAlert:
        advisory = data.get("security_advisory") or {}
        vulnerability = data.get("security_vulnerability") or {}
        package = (data.get("dependency") or {}).get("package") or vulnerability.get("package") or {}
        return cls(
            package=package.get("name") or "unknown",
            severity=Severity.parse(advisory.get("severity") or vulnerability.get("severity")),
            ghsa_id=advisory.get("ghsa_id") or "",
            published_at=parse_timestamp(advisory.get("published_at")),
            url=data.get("html_url") or "",
            repo=repo,
        )


@dataclass
class Review:
    reviewer: str
    state: ReviewState
    submitted_at: datetime | None
    pr_number: int

    @classmethod
    def from_api(cls, data: dict[str, Any], pr_number: int) -> Review:
        try:
            state = ReviewState(data.get("state") or "PENDING")
        except ValueError:
            state = ReviewState.COMMENTED
        return cls(
            reviewer=_login(data.get("user")),
            state=state,
            submitted_at=parse_timestamp(data.get("submitted_at")),
            pr_number=pr_number,
        )


@dataclass
class PullRequest:
    number: int
    title: str
    author: str
    created_at: datetime
    url: str
    repo: str
    draft: bool = False
    merged_at: datetime | None = None
    assignees: list[str] = field(default_factory=list)
    requested_reviewers: list[str] = field(default_factory=list)
    review_status: ReviewStatus = ReviewStatus.PENDING
    reviews: list[Review] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any], repo: str) -> PullRequest:
        created = parse_timestamp(data.get("created_at"))
        if created is None:
            raise ValueError(f"{repo}#{data.get('number')}: missing created_at")
        return cls(
            number=int(data["number"]),
            title=data.get("title") or "",
            author=_login(data.get("user")),
            created_at=created,
            url=data.get("html_url") or "",
            repo=repo,
            draft=bool(data.get("draft")),
            merged_at=parse_timestamp(data.get("merged_at")),
            assignees=[_login(u) for u in data.get("assignees") or []],
            requested_reviewers=[_login(u) for u in data.get("requested_reviewers") or []],
        )


@dataclass
class Commit:
    sha: str
    message: str
    author: str
    date: datetime | None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Commit:
        commit = data.get("commit") or {}
        author = commit.get("author") or {}
        message = (commit.get("message") or "").splitlines()
        return cls(
            sha=(data.get("sha") or "")[:7],
            message=message[0] if message else "",
            author=author.get("name") or _login(data.get("author")),
            date=parse_timestamp(author.get("date")),
        )


@dataclass
class PendingRelease:
    repo: str
    latest_tag: str
    branch: str
    ahead_by: int
    commits: list[Commit] = field(default_factory=list)


@dataclass
class MetricsBucket:
    key: str
    count: int = 0
    merged: int = 0
    avg_time_to_merge_days: float = 0.0
    avg_time_to_review_days: float = 0.0
    velocity_per_week: float = 0.0
    merge_rate: float = 0.0


@dataclass
class MetricsReport:
    org: str
    period_start: str
    period_end: str
    window_days: int
    total_prs: int = 0
    merged_prs: int = 0
    total_reviews: int = 0
    avg_time_to_merge_days: float = 0.0
    avg_time_to_review_days: float = 0.0
    pr_velocity: float = 0.0
    review_velocity: float = 0.0
    merge_rate: float = 0.0
    authors: list[MetricsBucket] = field(default_factory=list)
    reviewers: list[MetricsBucket] = field(default_factory=list)
    failed_repos: list[str] = field(default_factory=list)


class SettingsStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class SettingsOutcome:
    repo: str
    status: SettingsStatus
    message: str = ""


@dataclass
class RepoResult:
    """Outcome of fetching one repository: either ``value`` or ``error``."""

    repo: str
    value: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
