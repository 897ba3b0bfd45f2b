"""Interactive selection of a pull request to approve."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

import click

from .errors import GhReportsError
from .models import PullRequest
from .renderer import render_approval_candidates


def parse_selection(raw: str, count: int) -> int:
    """Turn a one-based answer into a list index, rejecting anything out of range."""
    try:
        choice = int(raw.strip())
    except ValueError:
        raise GhReportsError(f"Invalid selection {raw!r}: expected a number") from None
    if not 1 <= choice <= count:
        raise GhReportsError(f"Invalid selection {choice}: expected 1-{count}")
    return choice - 1


def choose_pull_request(
    candidates: Sequence[PullRequest], now: datetime | None = None
) -> PullRequest:
    render_approval_candidates(candidates, now)
    raw = click.prompt(
        f"Select a pull request to approve [1-{len(candidates)}]",
        default="",
        show_default=False,
    )
    return candidates[parse_selection(raw, len(candidates))]
