"""Rich-based terminal renderers and CSV export."""

from __future__ import annotations

import csv
import io
from datetime import datetime
from typing import Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .dates import format_time_open
from .models import (
    MetricsReport,
    PendingRelease,
    PullRequest,
    Release,
    ReviewStatus,
    SecurityAlert,
    SettingsOutcome,
    SettingsStatus,
    Severity,
)

SEVERITY_MARKERS = {
    Severity.CRITICAL: "\U0001f534",
    Severity.HIGH: "\U0001f7e0",
    Severity.MEDIUM: "\U0001f7e1",
    Severity.LOW: "\U0001f7e2",
}

STATUS_MARKERS = {
    ReviewStatus.APPROVED: "✅",
    ReviewStatus.CHANGES_REQUESTED: "❌",
    ReviewStatus.PENDING: "⏳",
}

_SETTINGS_MARKERS = {
    SettingsStatus.APPLIED: "[green]✓[/green]",
    SettingsStatus.SKIPPED: "[dim]-[/dim]",
    SettingsStatus.FAILED: "[red]✗[/red]",
}

ALERT_CSV_HEADER = ["Repository", "Package", "Severity", "GHSA ID", "Published", "URL"]


def _format_date(moment: datetime | None) -> str:
    return moment.strftime("%Y-%m-%d") if moment else "-"


def _header(console: Console, title: str, subtitle: str = "") -> None:
    text = f"{title}\n{subtitle}" if subtitle else title
    console.print(Panel(Text(text, justify="center"), style="bold cyan"))
    console.print()


def _warn_failed(console: Console, failed_repos: Sequence[str]) -> None:
    if failed_repos:
        console.print(
            f"[bold yellow]Warning:[/bold yellow] Failed to collect data for "
            f"{len(failed_repos)} repo(s): {escape(', '.join(failed_repos))}"
        )


def render_release_notes(
    releases: Sequence[tuple[str, list[Release]]],
    period: str,
    failed_repos: Sequence[str] = (),
) -> None:
    """Print releases grouped by repository."""
    console = Console()
    _header(console, "Release notes", period)

    total = 0
    for repo, repo_releases in releases:
        if not repo_releases:
            continue
        console.print(f"[bold]{escape(repo)}[/bold]")
        for release in sorted(repo_releases, key=lambda r: r.published_at, reverse=True):
            total += 1
            title = release.title if release.title != release.tag else ""
            line = f"  \U0001f3f7  [cyan]{escape(release.tag)}[/cyan]"
            if title:
                line += f" {escape(title)}"
            line += f" [dim]({_format_date(release.published_at)})[/dim]"
            console.print(line)
            for body_line in release.body.splitlines():
                console.print(f"      {escape(body_line)}", highlight=False)
        console.print()

    if total == 0:
        console.print(f"No releases found for {period}.")
    _warn_failed(console, failed_repos)


def render_pending_releases(
    pending: Sequence[PendingRelease], failed_repos: Sequence[str] = ()
) -> None:
    """Print repositories whose default branch is ahead of the latest release."""
    console = Console()
    _header(console, "Pending releases")

    for item in pending:
        console.print(
            f"[bold]{escape(item.repo)}[/bold]: {escape(item.branch)} is "
            f"[yellow]{item.ahead_by}[/yellow] commit(s) ahead of "
            f"[cyan]{escape(item.latest_tag)}[/cyan]"
        )
        for commit in item.commits:
            console.print(
                f"  [dim]{commit.sha}[/dim] {escape(commit.message)} "
                f"[dim]({escape(commit.author)}, {_format_date(commit.date)})[/dim]",
                highlight=False,
            )
        console.print()

    if not pending:
        console.print("All repositories are up to date with their latest release.")
    _warn_failed(console, failed_repos)


def render_security_alerts(
    alerts: Sequence[tuple[str, list[SecurityAlert]]],
    failed_repos: Sequence[str] = (),
) -> None:
    """Print open alerts grouped by repository, most severe first."""
    console = Console()
    _header(console, "Dependabot security alerts")

    counts = {severity: 0 for severity in Severity}
    for repo, repo_alerts in alerts:
        if not repo_alerts:
            continue
        console.print(f"[bold]{escape(repo)}[/bold] ({len(repo_alerts)})")
        for alert in repo_alerts:
            counts[alert.severity] += 1
            console.print(
                f"  {SEVERITY_MARKERS[alert.severity]} {alert.severity.value.upper():<8} "
                f"{escape(alert.package)} [dim]{escape(alert.ghsa_id)} "
                f"{_format_date(alert.published_at)}[/dim]",
                highlight=False,
            )
            console.print(f"      {escape(alert.url)}", highlight=False)
        console.print()

    total = sum(counts.values())
    if total == 0:
        console.print("No open security alerts.")
    else:
        summary = ", ".join(
            f"{SEVERITY_MARKERS[s]} {counts[s]} {s.value}" for s in Severity if counts[s]
        )
        console.print(f"[bold]Total:[/bold] {total} open alert(s): {summary}")
    _warn_failed(console, failed_repos)


def alerts_to_csv(alerts: Sequence[SecurityAlert]) -> str:
    """Flat CSV with one header row; empty when there are no alerts."""
    if not alerts:
        return ""
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow(ALERT_CSV_HEADER)
    for alert in alerts:
        writer.writerow(
            [
                alert.repo,
                alert.package,
                alert.severity.value,
                alert.ghsa_id,
                _format_date(alert.published_at) if alert.published_at else "",
                alert.url,
            ]
        )
    return output.getvalue()


def render_alerts_csv(alerts: Sequence[SecurityAlert]) -> None:
    print(alerts_to_csv(alerts), end="")


def _pr_line(pr: PullRequest, now: datetime | None = None) -> str:
    return (
        f"{STATUS_MARKERS[pr.review_status]} [bold]#{pr.number}[/bold] {escape(pr.title)} "
        f"[dim]by {escape(pr.author)}, open {format_time_open(pr.created_at, now)}[/dim]"
    )


def render_pull_requests(
    prs: Sequence[tuple[str, list[PullRequest]]],
    now: datetime | None = None,
    failed_repos: Sequence[str] = (),
) -> None:
    """Print open pull requests grouped by repository with review status markers."""
    console = Console()
    _header(console, "Open pull requests")

    total = 0
    for repo, repo_prs in prs:
        if not repo_prs:
            continue
        console.print(f"[bold]{escape(repo)}[/bold] ({len(repo_prs)})")
        for pr in repo_prs:
            total += 1
            console.print(f"  {_pr_line(pr, now)}", highlight=False)
            console.print(f"      {escape(pr.url)}", highlight=False)
        console.print()

    if total == 0:
        console.print("No open pull requests match.")
    else:
        console.print(
            f"[bold]Total:[/bold] {total}  "
            f"{STATUS_MARKERS[ReviewStatus.APPROVED]} approved  "
            f"{STATUS_MARKERS[ReviewStatus.CHANGES_REQUESTED]} changes requested  "
            f"{STATUS_MARKERS[ReviewStatus.PENDING]} pending"
        )
    _warn_failed(console, failed_repos)


def render_approval_candidates(
    candidates: Sequence[PullRequest], now: datetime | None = None
) -> None:
    """Numbered list (one-based) used by the interactive approval prompt."""
    console = Console()
    for i, pr in enumerate(candidates, 1):
        console.print(
            f"{i:>3}. [cyan]{escape(pr.repo)}[/cyan] {_pr_line(pr, now)}", highlight=False
        )


def _format_days(days: float) -> str:
    return f"{days:.1f}d"


def render_metrics(report: MetricsReport, user: str | None = None) -> None:
    """Print the summary, author and reviewer tables of a metrics report."""
    console = Console()
    subtitle = f"Period: {report.period_start[:10]} ~ {report.period_end[:10]}"
    if user:
        subtitle += f"  User: {user}"
    _header(console, f"PR metrics: {report.org}", subtitle)

    console.print("[bold]Summary[/bold]")
    summary = Table(show_header=False, box=None, padding=(0, 2))
    summary.add_column("label", style="dim")
    summary.add_column("value", style="bold")
    summary.add_row("Pull Requests", str(report.total_prs))
    summary.add_row("Merged", str(report.merged_prs))
    summary.add_row("Merge Rate", f"{report.merge_rate:.1f}%")
    summary.add_row("Avg Time to Merge", _format_days(report.avg_time_to_merge_days))
    summary.add_row("Reviews", str(report.total_reviews))
    summary.add_row("Avg Time to Review", _format_days(report.avg_time_to_review_days))
    summary.add_row("PR Velocity", f"{report.pr_velocity:.1f}/week")
    summary.add_row("Review Velocity", f"{report.review_velocity:.1f}/week")
    console.print(summary)
    console.print()

    if report.authors:
        console.print("[bold]Authors[/bold]")
        author_table = Table(show_header=True, header_style="bold")
        author_table.add_column("Author")
        author_table.add_column("PRs", justify="right")
        author_table.add_column("Merged", justify="right")
        author_table.add_column("Merge Rate", justify="right")
        author_table.add_column("Avg Merge", justify="right")
        author_table.add_column("Avg Review", justify="right")
        author_table.add_column("PRs/week", justify="right")
        for b in report.authors:
            author_table.add_row(
                escape(b.key),
                str(b.count),
                str(b.merged),
                f"{b.merge_rate:.1f}%",
                _format_days(b.avg_time_to_merge_days),
                _format_days(b.avg_time_to_review_days),
                f"{b.velocity_per_week:.1f}",
            )
        console.print(author_table)
        console.print()

    if report.reviewers:
        console.print("[bold]Reviewers[/bold]")
        reviewer_table = Table(show_header=True, header_style="bold")
        reviewer_table.add_column("Reviewer")
        reviewer_table.add_column("Reviews", justify="right")
        reviewer_table.add_column("Avg Review", justify="right")
        reviewer_table.add_column("Reviews/week", justify="right")
        for b in report.reviewers:
            reviewer_table.add_row(
                escape(b.key),
                str(b.count),
                _format_days(b.avg_time_to_review_days),
                f"{b.velocity_per_week:.1f}",
            )
        console.print(reviewer_table)
        console.print()

    _warn_failed(console, report.failed_repos)


def render_settings_outcome(outcome: SettingsOutcome) -> None:
    line = f"{_SETTINGS_MARKERS[outcome.status]} {escape(outcome.repo)}"
    if outcome.message:
        line += f" [dim]{escape(outcome.message)}[/dim]"
    Console().print(line, highlight=False)


def render_settings_summary(action: str, outcomes: Sequence[SettingsOutcome]) -> None:
    counts = {status: 0 for status in SettingsStatus}
    for outcome in outcomes:
        counts[outcome.status] += 1
    console = Console()
    console.print()
    console.print(
        f"[bold]{escape(action)}:[/bold] "
        f"[green]{counts[SettingsStatus.APPLIED]} succeeded[/green], "
        f"{counts[SettingsStatus.SKIPPED]} skipped, "
        f"[red]{counts[SettingsStatus.FAILED]} failed[/red]"
    )
