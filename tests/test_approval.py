"""Tests for interactive approval selection."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from gh_reports.approval import choose_pull_request, parse_selection
from gh_reports.errors import GhReportsError
from gh_reports.models import PullRequest

CREATED = datetime(2024, 6, 1, tzinfo=timezone.utc)


def _pr(number: int) -> PullRequest:
    return PullRequest(
        number=number,
        title=f"Change {number}",
        author="alice",
        created_at=CREATED,
        url=f"https://github.com/acme/api/pull/{number}",
        repo="acme/api",
    )


def test_parse_selection_is_one_based():
    assert parse_selection("1", 3) == 0
    assert parse_selection(" 3 ", 3) == 2


@pytest.mark.parametrize("raw", ["0", "4", "-1", "", "two"])
def test_parse_selection_rejects(raw):
    with pytest.raises(GhReportsError, match="Invalid selection"):
        parse_selection(raw, 3)


def test_choose_pull_request(capsys):
    candidates = [_pr(10), _pr(11)]
    with patch("gh_reports.approval.click.prompt", return_value="2") as prompt:
        chosen = choose_pull_request(candidates, now=CREATED)
    assert chosen.number == 11
    assert "[1-2]" in prompt.call_args.args[0]
    out = capsys.readouterr().out
    assert "#10" in out
    assert "#11" in out
