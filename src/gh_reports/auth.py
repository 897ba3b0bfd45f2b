"""Credential lookup: an explicit token, or the GitHub CLI session."""

from __future__ import annotations

import logging
import shutil
import subprocess

from .errors import PreconditionError

logger = logging.getLogger(__name__)


def resolve_token(token: str | None = None) -> str:
    """Return an API token, asking ``gh auth token`` when none was given.

    Raises PreconditionError when ``gh`` is not installed or not logged in.
    """
    if token:
        return token

    gh = shutil.which("gh")
    if gh is None:
        raise PreconditionError(
            "GitHub CLI (gh) is required but not installed, and no --token or "
            "$GITHUB_TOKEN was given. Install it from https://cli.github.com/"
        )

    result = subprocess.run(
        [gh, "auth", "token"], capture_output=True, text=True, check=False
    )
    found = result.stdout.strip()
    if result.returncode != 0 or not found:
        logger.debug("gh auth token failed: %s", result.stderr.strip())
        raise PreconditionError("GitHub CLI is not authenticated. Run 'gh auth login' first.")
    logger.debug("Using token from gh CLI session")
    return found
