"""Error types raised by gh-reports."""

from __future__ import annotations

import click


class GhReportsError(Exception):
    """Base class for errors reported to the user as ``Error: <message>``."""


class PreconditionError(GhReportsError):
    """A required tool or credential is missing. Raised before any network call."""


class RepositoryNotFoundError(GhReportsError):
    def __init__(self, full_name: str) -> None:
        super().__init__(f"Repository {full_name} not found or inaccessible")
        self.full_name = full_name


class ConfigError(click.UsageError):
    """Invalid combination of command-line flags."""

    exit_code = 1
