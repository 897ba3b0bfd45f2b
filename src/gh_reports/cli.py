"""CLI entrypoint for gh-reports."""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .auth import resolve_token
from .config import SETTINGS_ACTIONS, Settings
from .dates import QUARTERS, TIMEFRAMES, parse_since, quarter_range
from .errors import ConfigError, GhReportsError
from .models import ReviewPolicy, SettingsStatus

logger = logging.getLogger(__name__)

# Value of a bare -a/--approve.
INTERACTIVE = "interactive"


@contextmanager
def _usage_errors_exit_one() -> Iterator[None]:
    # Bad flags exit with 1, like every other failure of the tool.
    try:
        yield
    except click.UsageError as exc:
        exc.exit_code = 1
        raise


class ReportCommand(click.Command):
    def make_context(self, info_name, args, parent=None, **extra):
        with _usage_errors_exit_one():
            return super().make_context(info_name, args, parent=parent, **extra)


class ReportGroup(click.Group):
    command_class = ReportCommand

    def make_context(self, info_name, args, parent=None, **extra):
        with _usage_errors_exit_one():
            return super().make_context(info_name, args, parent=parent, **extra)

    def resolve_command(self, ctx, args):
        with _usage_errors_exit_one():
            return super().resolve_command(ctx, args)


@dataclass
class AppContext:
    settings: Settings
    token: str | None


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _run(app: AppContext, pipeline: Callable[[str], Awaitable[Any]]) -> Any:
    """Resolve credentials, run an async pipeline and map failures to exit code 1."""
    try:
        token = resolve_token(app.token)
        return asyncio.run(pipeline(token))
    except (click.ClickException, click.Abort):
        raise
    except GhReportsError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        if status == 404:
            click.echo(f"Error: {exc.request.url.path} not found. Check the org/repo name.", err=True)
        elif status in (401, 403):
            click.echo("Error: Authentication failed. Check your --token, $GITHUB_TOKEN or 'gh auth status'.", err=True)
        else:
            click.echo(f"Error: GitHub API returned {status}.", err=True)
        sys.exit(1)
    except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
        click.echo(f"Error: Could not connect to GitHub API. {exc}", err=True)
        sys.exit(1)
    except Exception as exc:
        logger.debug("Unexpected failure", exc_info=True)
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


def _validate_year(ctx: click.Context, param: click.Parameter, value: str | None) -> int | None:
    if value is None:
        return None
    if not re.match(r"^\d{4}$", value) or int(value) < 1000:
        raise click.BadParameter(f"{value!r} is not a four-digit year")
    return int(value)


def _validate_approve(ctx: click.Context, param: click.Parameter, value: str | None):
    if value is None or value == INTERACTIVE:
        return value
    try:
        number = int(value)
    except ValueError:
        raise click.BadParameter(f"{value!r} is not a pull request number") from None
    if number < 1:
        raise click.BadParameter(f"{number} is not a pull request number")
    return number


def _validate_since(ctx: click.Context, param: click.Parameter, value: str | None):
    if value is None:
        return None
    parsed = parse_since(value)
    if parsed is None:
        raise click.BadParameter(f"{value!r} is not YYYY-MM-DD or a relative date like 30d")
    return parsed


@click.group(cls=ReportGroup, context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--token",
    envvar=["GITHUB_TOKEN", "GH_TOKEN"],
    default=None,
    show_envvar=True,
    help="GitHub token (defaults to the gh CLI session)",
)
@click.option("--org", default=None, help="Organization to report on [env: GH_REPORTS_ORG]")
@click.option(
    "--exclude-repo",
    multiple=True,
    help="Exclude repo by name, in addition to the denylist (repeatable)",
)
@click.option("--api-url", default=None, help="GitHub Enterprise API base URL")
@click.option(
    "--keep-going/--fail-fast",
    default=False,
    show_default=True,
    help="Continue with the remaining repos when one fails",
)
@click.option("--concurrency", type=click.IntRange(min=1), default=None, help="Parallel repository fetches")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Debug logging on stderr")
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: click.Context,
    token: str | None,
    org: str | None,
    exclude_repo: tuple[str, ...],
    api_url: str | None,
    keep_going: bool,
    concurrency: int | None,
    verbose: bool,
) -> None:
    """Reports over the repositories of a GitHub organization.

    \b
    Examples:
      gh-reports release-notes -q Q1 -y 2024
      gh-reports security-alerts --high-risk --csv > alerts.csv
      gh-reports pull-requests api --involved --days 3
      gh-reports pr-metrics -t 2w -u octocat
    """
    _configure_logging(verbose)
    settings = Settings.from_env().with_overrides(
        org=org,
        exclude_repos=exclude_repo,
        api_url=api_url,
        keep_going=keep_going,
        concurrency=concurrency,
    )
    ctx.obj = AppContext(settings=settings, token=token)


@main.command("release-notes")
@click.option("-r", "--repo", default=None, help="Only this repository")
@click.option(
    "-q",
    "--quarter",
    type=click.Choice(QUARTERS, case_sensitive=False),
    default=None,
    help="Quarter to report on [default: Q4]",
)
@click.option("-y", "--year", callback=_validate_year, default=None, help="Four-digit year [default: current]")
@click.option(
    "--pending",
    is_flag=True,
    default=False,
    help="Show commits on the default branch since the latest release instead",
)
@click.pass_obj
def release_notes(
    app: AppContext, repo: str | None, quarter: str | None, year: int | None, pending: bool
) -> None:
    """List releases published during a quarter."""
    from .orchestrator import run_release_notes

    quarter = (quarter or app.settings.default_quarter).upper()
    year = year if year is not None else app.settings.default_year
    window = quarter_range(quarter, year)
    _run(
        app,
        lambda token: run_release_notes(
            app.settings,
            token,
            window=window,
            period=f"{quarter} {year}",
            repo=repo,
            pending=pending,
        ),
    )


@main.command("repo-settings")
@click.argument(
    "action",
    type=click.Choice(SETTINGS_ACTIONS),
    default="secure-all",
    required=False,
)
@click.option("-o", "--org", default=None, help="Organization (overrides the global --org)")
@click.option("-r", "--repo", default=None, help="Only this repository")
@click.option("--dry-run", is_flag=True, default=False, help="Report changes without applying them")
@click.pass_obj
def repo_settings(
    app: AppContext, action: str, org: str | None, repo: str | None, dry_run: bool
) -> None:
    """Apply a repository setting across the organization.

    \b
    ACTION is one of:
      secure-all       vulnerability alerts and automated security fixes
      auto-merge       allow auto-merge
      auto-delete      delete head branches after merge
      protect-default  ruleset requiring a reviewed PR on the default branch
    """
    from .orchestrator import run_repo_settings

    settings = app.settings.with_overrides(org=org)
    outcomes = _run(
        app,
        lambda token: run_repo_settings(settings, token, action, repo=repo, dry_run=dry_run),
    )
    failed = sum(1 for o in outcomes if o.status is SettingsStatus.FAILED)
    if failed:
        logger.warning("%d repositories failed", failed)


@main.command("security-alerts")
@click.option("-r", "--repo", default=None, help="Only this repository")
@click.option("-c", "--csv", "as_csv", is_flag=True, default=False, help="Flat CSV output")
@click.option(
    "-H", "--high-risk", is_flag=True, default=False, help="Only critical and high severity"
)
@click.option(
    "--since",
    callback=_validate_since,
    default=None,
    help="Only advisories published since (YYYY-MM-DD or relative: 7d, 2w, 3m, 1y)",
)
@click.pass_obj
def security_alerts(
    app: AppContext, repo: str | None, as_csv: bool, high_risk: bool, since
) -> None:
    """List open Dependabot alerts. Archived repositories are skipped."""
    from .orchestrator import run_security_alerts

    _run(
        app,
        lambda token: run_security_alerts(
            app.settings, token, repo=repo, as_csv=as_csv, high_risk=high_risk, since=since
        ),
    )


@main.command("pull-requests")
@click.argument("name_filter", metavar="[FILTER]", required=False)
@click.option("-m", "--mine", is_flag=True, default=False, help="Only pull requests I authored")
@click.option(
    "-i",
    "--involved",
    is_flag=True,
    default=False,
    help="Only pull requests assigned to me or awaiting my review",
)
@click.option("-p", "--pending", is_flag=True, default=False, help="Only pull requests without a decision")
@click.option("-r", "--repo", default=None, help="Only this repository")
@click.option(
    "-d",
    "--days",
    type=click.IntRange(min=0),
    default=None,
    help="Only pull requests open at least this many days",
)
@click.option(
    "-a",
    "--approve",
    is_flag=False,
    flag_value=INTERACTIVE,
    default=None,
    callback=_validate_approve,
    metavar="N",
    help="Approve pull request N (needs --repo); without N choose interactively",
)
@click.option(
    "--latest-review-wins",
    is_flag=True,
    default=False,
    help="Status from each reviewer's latest decision instead of any approval",
)
@click.pass_obj
def pull_requests(
    app: AppContext,
    name_filter: str | None,
    mine: bool,
    involved: bool,
    pending: bool,
    repo: str | None,
    days: int | None,
    approve: int | str | None,
    latest_review_wins: bool,
) -> None:
    """List open pull requests with their review status, or approve one.

    FILTER keeps repositories whose name contains it.
    """
    from .orchestrator import run_pull_requests

    interactive = approve == INTERACTIVE
    number = None if interactive else approve
    if number is not None and not repo:
        raise ConfigError(
            "--repo flag is required when approving a specific pull request",
            ctx=click.get_current_context(),
        )

    policy = ReviewPolicy.LATEST_WINS if latest_review_wins else ReviewPolicy.APPROVAL_WINS
    _run(
        app,
        lambda token: run_pull_requests(
            app.settings,
            token,
            name_filter=name_filter,
            repo=repo,
            mine=mine,
            involved=involved,
            pending=pending,
            days=days,
            approve_number=number,
            interactive_approve=interactive,
            policy=policy,
        ),
    )


@main.command("pr-metrics")
@click.option("-r", "--repo", default=None, help="Only this repository")
@click.option(
    "-l", "--limit", type=click.IntRange(min=1), default=None, help="Max pull requests per repository"
)
@click.option(
    "-t",
    "--timeframe",
    type=click.Choice(list(TIMEFRAMES)),
    default="1m",
    show_default=True,
    help="Analysis window",
)
@click.option("-u", "--user", default=None, help="Only this author / reviewer")
@click.option("--use-cache", is_flag=True, default=False, help="Cache API responses for an hour")
@click.pass_obj
def pr_metrics(
    app: AppContext,
    repo: str | None,
    limit: int | None,
    timeframe: str,
    user: str | None,
    use_cache: bool,
) -> None:
    """Pull request and review velocity metrics."""
    from .orchestrator import run_pr_metrics

    _run(
        app,
        lambda token: run_pr_metrics(
            app.settings,
            token,
            timeframe=timeframe,
            repo=repo,
            limit=limit,
            user=user,
            use_cache=use_cache,
        ),
    )


if __name__ == "__main__":  # pragma: no cover
    main()
