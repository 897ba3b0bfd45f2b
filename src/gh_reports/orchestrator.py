"""Orchestrator: wires together enumerator, client, filters and renderers per subcommand."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import httpx
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from . import renderer
from .aggregator import aggregate_metrics
from .approval import choose_pull_request
from .config import Settings
from .dates import DateRange, timeframe_range
from .enumerator import list_target_repos
from .errors import GhReportsError
from .filters import (
    filter_by_date,
    filter_high_risk,
    filter_pull_requests,
    pending_release,
    review_status,
    sort_alerts,
)
from .github.client import GitHubClient
from .models import (
    PendingRelease,
    PullRequest,
    Release,
    RepoResult,
    Repository,
    Review,
    ReviewPolicy,
    ReviewStatus,
    SecurityAlert,
    SettingsOutcome,
    SettingsStatus,
)

logger = logging.getLogger(__name__)

PROTECT_RULESET_NAME = "protect-default-branch"


def make_client(settings: Settings, token: str, use_cache: bool = False) -> GitHubClient:
    return GitHubClient(
        token=token,
        concurrency=settings.concurrency,
        use_cache=use_cache,
        base_url=settings.api_url,
        cache_dir=settings.cache_dir,
        cache_ttl=settings.cache_ttl,
    )


async def collect(
    repos: list[Repository],
    fetch: Callable[[Repository], Awaitable[Any]],
    keep_going: bool,
    description: str = "Fetching",
) -> list[RepoResult]:
    """Run ``fetch`` for every repository, preserving enumeration order.

    With ``keep_going`` HTTP failures are recorded per repository; otherwise
    the first failure propagates and ends the run.
    """
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=Console(stderr=True),
        transient=True,
    ) as progress:
        task = progress.add_task(f"{description} {len(repos)} repos...", total=len(repos))

        async def fetch_one(repo: Repository) -> RepoResult:
            try:
                return RepoResult(repo=repo.full_name, value=await fetch(repo))
            except httpx.HTTPError as exc:
                if not keep_going:
                    raise
                logger.warning("Failed to fetch %s: %s", repo.full_name, exc)
                return RepoResult(repo=repo.full_name, error=str(exc))
            finally:
                progress.advance(task)

        return list(await asyncio.gather(*(fetch_one(r) for r in repos)))


def _failed(results: list[RepoResult]) -> list[str]:
    return [r.repo for r in results if not r.ok]


# release-notes


async def fetch_releases(
    client: GitHubClient, repo: Repository, window: DateRange
) -> list[Release]:
    raw = await client.list_releases(repo.owner, repo.name)
    releases = [
        r for r in (Release.from_api(item, repo.full_name) for item in raw) if r is not None
    ]
    return filter_by_date(releases, window, lambda r: r.published_at)


async def fetch_pending_release(
    client: GitHubClient, repo: Repository
) -> PendingRelease | None:
    latest = await client.get_latest_release(repo.owner, repo.name)
    if latest is None:
        logger.info("%s has no releases", repo.full_name)
        return None
    tag = latest["tag_name"]
    comparison = await client.compare(repo.owner, repo.name, tag, repo.default_branch)
    return pending_release(repo.full_name, tag, repo.default_branch, comparison)


async def run_release_notes(
    settings: Settings,
    token: str,
    window: DateRange,
    period: str,
    repo: str | None = None,
    pending: bool = False,
) -> None:
    async with make_client(settings, token) as client:
        repos = await list_target_repos(
            client, settings.org, repo=repo, denylist=settings.denylist
        )
        if pending:
            results = await collect(
                repos,
                lambda r: fetch_pending_release(client, r),
                settings.keep_going,
                "Comparing",
            )
        else:
            results = await collect(
                repos, lambda r: fetch_releases(client, r, window), settings.keep_going
            )

    if pending:
        renderer.render_pending_releases(
            [r.value for r in results if r.ok and r.value is not None], _failed(results)
        )
    else:
        renderer.render_release_notes(
            [(r.repo, r.value) for r in results if r.ok], period, _failed(results)
        )


# repo-settings


async def _secure_all(client: GitHubClient, repo: Repository, dry_run: bool) -> SettingsOutcome:
    alerts = await client.vulnerability_alerts_enabled(repo.owner, repo.name)
    fixes = await client.automated_security_fixes_enabled(repo.owner, repo.name)
    if alerts and fixes:
        return SettingsOutcome(repo.full_name, SettingsStatus.SKIPPED, "already secured")
    missing = []
    if not alerts:
        missing.append("vulnerability alerts")
    if not fixes:
        missing.append("automated security fixes")
    if dry_run:
        return SettingsOutcome(
            repo.full_name, SettingsStatus.APPLIED, f"would enable {' and '.join(missing)}"
        )
    if not alerts:
        await client.enable_vulnerability_alerts(repo.owner, repo.name)
    if not fixes:
        await client.enable_automated_security_fixes(repo.owner, repo.name)
    return SettingsOutcome(
        repo.full_name, SettingsStatus.APPLIED, f"enabled {' and '.join(missing)}"
    )


def _toggle(field: str, label: str):
    async def apply(client: GitHubClient, repo: Repository, dry_run: bool) -> SettingsOutcome:
        # The org listing omits merge settings; read them from the repository itself.
        data = await client.get_repo(repo.owner, repo.name)
        if data is None:
            return SettingsOutcome(repo.full_name, SettingsStatus.FAILED, "not found")
        if data.get(field):
            return SettingsOutcome(repo.full_name, SettingsStatus.SKIPPED, f"{label} already enabled")
        if dry_run:
            return SettingsOutcome(repo.full_name, SettingsStatus.APPLIED, f"would enable {label}")
        await client.update_repo(repo.owner, repo.name, **{field: True})
        return SettingsOutcome(repo.full_name, SettingsStatus.APPLIED, f"enabled {label}")

    return apply


def protect_default_ruleset() -> dict[str, Any]:
    """Ruleset requiring a reviewed pull request to change the default branch."""
    return {
        "name": PROTECT_RULESET_NAME,
        "target": "branch",
        "enforcement": "active",
        "conditions": {"ref_name": {"include": ["~DEFAULT_BRANCH"], "exclude": []}},
        "rules": [
            {"type": "deletion"},
            {"type": "non_fast_forward"},
            {
                "type": "pull_request",
                "parameters": {
                    "required_approving_review_count": 1,
                    "dismiss_stale_reviews_on_push": True,
                    "require_code_owner_review": False,
                    "require_last_push_approval": False,
                    "required_review_thread_resolution": False,
                },
            },
        ],
    }


async def _protect_default(
    client: GitHubClient, repo: Repository, dry_run: bool
) -> SettingsOutcome:
    rulesets = await client.list_rulesets(repo.owner, repo.name)
    if any(r.get("name") == PROTECT_RULESET_NAME for r in rulesets):
        return SettingsOutcome(repo.full_name, SettingsStatus.SKIPPED, "ruleset already exists")
    if dry_run:
        return SettingsOutcome(
            repo.full_name, SettingsStatus.APPLIED, f"would protect {repo.default_branch}"
        )
    await client.create_ruleset(repo.owner, repo.name, protect_default_ruleset())
    return SettingsOutcome(
        repo.full_name, SettingsStatus.APPLIED, f"protected {repo.default_branch}"
    )


_SETTINGS_HANDLERS = {
    "secure-all": _secure_all,
    "auto-merge": _toggle("allow_auto_merge", "auto-merge"),
    "auto-delete": _toggle("delete_branch_on_merge", "delete branch on merge"),
    "protect-default": _protect_default,
}


async def apply_setting(
    client: GitHubClient, repo: Repository, action: str, dry_run: bool = False
) -> SettingsOutcome:
    """Apply one action; HTTP failures become a FAILED outcome instead of raising."""
    handler = _SETTINGS_HANDLERS[action]
    try:
        return await handler(client, repo, dry_run)
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        logger.warning("%s on %s failed with HTTP %d", action, repo.full_name, status)
        return SettingsOutcome(repo.full_name, SettingsStatus.FAILED, f"HTTP {status}")


async def run_repo_settings(
    settings: Settings,
    token: str,
    action: str,
    repo: str | None = None,
    dry_run: bool = False,
) -> list[SettingsOutcome]:
    outcomes: list[SettingsOutcome] = []
    async with make_client(settings, token) as client:
        repos = await list_target_repos(
            client, settings.org, repo=repo, denylist=settings.denylist
        )
        if not repos:
            raise GhReportsError(f"No repositories found in {settings.org}")
        # Writes go one repository at a time so output follows progress.
        for target in repos:
            outcome = await apply_setting(client, target, action, dry_run=dry_run)
            renderer.render_settings_outcome(outcome)
            outcomes.append(outcome)

    renderer.render_settings_summary(action, outcomes)
    return outcomes


# security-alerts


async def fetch_alerts(
    client: GitHubClient,
    repo: Repository,
    high_risk: bool = False,
    since: datetime | None = None,
) -> list[SecurityAlert]:
    try:
        raw = await client.list_dependabot_alerts(repo.owner, repo.name)
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code in (403, 404):
            logger.warning("Dependabot alerts are not available for %s", repo.full_name)
            return []
        raise
    alerts = [SecurityAlert.from_api(item, repo.full_name) for item in raw]
    if since is not None:
        window = DateRange(start=since, end=datetime.now(timezone.utc))
        alerts = filter_by_date(alerts, window, lambda a: a.published_at)
    if high_risk:
        alerts = filter_high_risk(alerts)
    return sort_alerts(alerts)


async def run_security_alerts(
    settings: Settings,
    token: str,
    repo: str | None = None,
    as_csv: bool = False,
    high_risk: bool = False,
    since: datetime | None = None,
) -> None:
    async with make_client(settings, token) as client:
        repos = await list_target_repos(
            client, settings.org, repo=repo, denylist=settings.denylist
        )
        results = await collect(
            repos,
            lambda r: fetch_alerts(client, r, high_risk=high_risk, since=since),
            settings.keep_going,
        )

    if as_csv:
        renderer.render_alerts_csv([a for r in results if r.ok for a in r.value])
        for name in _failed(results):
            logger.error("Alerts missing for %s", name)
    else:
        renderer.render_security_alerts(
            [(r.repo, r.value) for r in results if r.ok], _failed(results)
        )


# pull-requests


async def attach_reviews(
    client: GitHubClient,
    repo: Repository,
    prs: list[PullRequest],
    policy: ReviewPolicy = ReviewPolicy.APPROVAL_WINS,
) -> list[PullRequest]:
    for pr in prs:
        raw = await client.list_reviews(repo.owner, repo.name, pr.number)
        pr.reviews = [Review.from_api(item, pr.number) for item in raw]
        pr.review_status = review_status(pr.reviews, policy)
    return prs


async def fetch_open_pull_requests(
    client: GitHubClient,
    repo: Repository,
    user: str | None = None,
    mine: bool = False,
    involved: bool = False,
    pending: bool = False,
    days: int | None = None,
    policy: ReviewPolicy = ReviewPolicy.APPROVAL_WINS,
    now: datetime | None = None,
) -> list[PullRequest]:
    raw = await client.list_pull_requests(repo.owner, repo.name, state="open")
    prs = filter_pull_requests(
        (PullRequest.from_api(item, repo.full_name) for item in raw),
        user=user,
        mine=mine,
        involved=involved,
        older_than_days=days,
        now=now,
    )
    prs = await attach_reviews(client, repo, prs, policy)
    if pending:
        prs = [pr for pr in prs if pr.review_status is ReviewStatus.PENDING]
    return prs


async def approve(client: GitHubClient, owner: str, repo: str, number: int) -> None:
    """Submit one approving review; no retry."""
    target = f"{owner}/{repo}#{number}"
    try:
        await client.approve_pull_request(owner, repo, number)
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code == 404:
            raise GhReportsError(f"Pull request {target} not found or inaccessible") from exc
        raise GhReportsError(
            f"Failed to approve {target}: GitHub API returned {exc.response.status_code}"
        ) from exc
    Console().print(f"[green]✓[/green] Approved {target}")


async def run_pull_requests(
    settings: Settings,
    token: str,
    name_filter: str | None = None,
    repo: str | None = None,
    mine: bool = False,
    involved: bool = False,
    pending: bool = False,
    days: int | None = None,
    approve_number: int | None = None,
    interactive_approve: bool = False,
    policy: ReviewPolicy = ReviewPolicy.APPROVAL_WINS,
) -> None:
    now = datetime.now(timezone.utc)
    async with make_client(settings, token) as client:
        if approve_number is not None:
            if not repo:
                raise GhReportsError("--repo flag is required when approving a specific pull request")
            await approve(client, settings.org, repo, approve_number)
            return

        user = await client.get_authenticated_user() if (mine or involved) else None
        repos = await list_target_repos(
            client,
            settings.org,
            repo=repo,
            name_filter=name_filter,
            denylist=settings.denylist,
        )
        results = await collect(
            repos,
            lambda r: fetch_open_pull_requests(
                client,
                r,
                user=user,
                mine=mine,
                involved=involved,
                pending=pending,
                days=days,
                policy=policy,
                now=now,
            ),
            settings.keep_going,
        )

        if not interactive_approve:
            renderer.render_pull_requests(
                [(r.repo, r.value) for r in results if r.ok], now, _failed(results)
            )
            return

        candidates = [pr for r in results if r.ok for pr in r.value]
        if not candidates:
            Console().print("No open pull requests to approve.")
            return
        # The prompt blocks; keep it off the event loop.
        chosen = await asyncio.to_thread(choose_pull_request, candidates, now)
        owner, name = chosen.repo.split("/", 1)
        await approve(client, owner, name, chosen.number)


# pr-metrics


async def fetch_metrics_pull_requests(
    client: GitHubClient,
    repo: Repository,
    window: DateRange,
    limit: int | None = None,
) -> list[PullRequest]:
    raw = await client.list_pull_requests(
        repo.owner, repo.name, state="all", since=window.iso_start(), limit=limit
    )
    prs = [PullRequest.from_api(item, repo.full_name) for item in raw]
    prs = filter_by_date(prs, window, lambda pr: pr.created_at)
    return await attach_reviews(client, repo, prs)


async def run_pr_metrics(
    settings: Settings,
    token: str,
    timeframe: str = "1m",
    repo: str | None = None,
    limit: int | None = None,
    user: str | None = None,
    use_cache: bool = False,
) -> None:
    window = timeframe_range(timeframe)
    async with make_client(settings, token, use_cache=use_cache) as client:
        repos = await list_target_repos(
            client, settings.org, repo=repo, denylist=settings.denylist
        )
        results = await collect(
            repos,
            lambda r: fetch_metrics_pull_requests(client, r, window, limit=limit),
            settings.keep_going,
        )

    prs = [pr for r in results if r.ok for pr in r.value]
    report = aggregate_metrics(
        prs, window, org=settings.org, user=user, failed_repos=_failed(results)
    )
    renderer.render_metrics(report, user=user)
