"""Issue-tracker and review-thread interfaces.

Titles and comments go through the ``gh`` CLI by default. When a token is
available (``GH_TOKEN``/``GITHUB_TOKEN``) and the repository slug is known,
the REST API is used directly through httpx instead.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

import httpx

from merge_check.core.git import run_command
from merge_check.models import MergeReport
from merge_check.report import format_branch_report_markdown

__all__ = [
    "CommentPoster",
    "GhCliClient",
    "GitHubApiClient",
    "github_token",
    "make_github_client",
    "post_report",
]

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


def github_token(cli_token: str | None = None) -> str | None:
    """Return sanitized GitHub token (cli arg takes precedence) or None."""
    return ((cli_token or os.getenv("GH_TOKEN") or os.getenv("GITHUB_TOKEN") or "").strip()) or None


class CommentPoster(Protocol):
    def post_comment(self, external_ref_id: int, body: str) -> bool:
        """Post ``body`` on the review thread; return False on failure."""
        ...


class GhCliClient:
    """Tracker access through the ``gh`` command line tool."""

    def __init__(self, repo_root: Path, timeout: float = 10) -> None:
        self.repo_root = repo_root
        self.timeout = timeout

    def fetch_title(self, item_id: int) -> str | None:
        result = run_command(
            ["gh", "issue", "view", str(item_id), "--json", "title", "--jq", ".title"],
            cwd=self.repo_root,
            timeout=self.timeout,
        )
        title = result.stdout.strip()
        if not result.ok or not title:
            return None
        return title

    def post_comment(self, external_ref_id: int, body: str) -> bool:
        result = run_command(
            ["gh", "pr", "comment", str(external_ref_id), "--body", body],
            cwd=self.repo_root,
            timeout=60,
        )
        if not result.ok:
            logger.error("Failed to post comment on PR #%s: %s", external_ref_id, result.stderr.strip())
        return result.ok


class GitHubApiClient:
    """Tracker access through the GitHub REST API."""

    def __init__(
        self,
        repo_slug: str,
        token: str,
        base_url: str = GITHUB_API_URL,
        client: httpx.Client | None = None,
    ) -> None:
        self.repo_slug = repo_slug
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=10.0,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
            },
        )

    def close(self) -> None:
        self._client.close()

    def fetch_title(self, item_id: int) -> str | None:
        try:
            response = self._client.get(f"/repos/{self.repo_slug}/issues/{item_id}")
        except httpx.HTTPError as exc:
            logger.debug("Title lookup for #%s failed: %s", item_id, exc)
            return None
        if not response.is_success:
            return None
        title = response.json().get("title")
        return title.strip() if isinstance(title, str) and title.strip() else None

    def post_comment(self, external_ref_id: int, body: str) -> bool:
        # PR conversation comments live on the issues endpoint.
        try:
            response = self._client.post(
                f"/repos/{self.repo_slug}/issues/{external_ref_id}/comments",
                json={"body": body},
            )
        except httpx.HTTPError as exc:
            logger.error("Failed to post comment on PR #%s: %s", external_ref_id, exc)
            return False
        if not response.is_success:
            logger.error(
                "Failed to post comment on PR #%s: HTTP %s %s",
                external_ref_id,
                response.status_code,
                response.text[:200],
            )
            return False
        return True


def make_github_client(repo_root: Path, repo_slug: str | None = None) -> GhCliClient | GitHubApiClient:
    token = github_token()
    if token and repo_slug:
        return GitHubApiClient(repo_slug, token)
    return GhCliClient(repo_root)


def post_report(report: MergeReport, poster: CommentPoster) -> dict[int, bool]:
    """Post each item's scoped report to its review thread.

    Items without an external reference are skipped. Failures are logged and
    reported in the returned mapping, never raised.
    """
    outcomes: dict[int, bool] = {}
    for branch in report.branches:
        if branch.external_ref_id is None:
            continue
        body = format_branch_report_markdown(report, branch.item_id)
        try:
            outcomes[branch.item_id] = poster.post_comment(branch.external_ref_id, body)
        except Exception as exc:
            logger.error("Posting report for #%s raised: %s", branch.item_id, exc)
            outcomes[branch.item_id] = False
    return outcomes
