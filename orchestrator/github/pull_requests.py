# =============================================================================
# AI PULL REQUEST AGENT - PULL REQUEST RECONCILER
# =============================================================================
"""
Pull Request Reconciler

Ensures exactly one open pull request exists for a branch.

Flow:
    1. Look for an open PR with head "owner:branch"; reuse it if found
    2. Otherwise create one
    3. If creation fails because a PR already exists (a concurrent run
       won the race), look again with head "owner:branch", then "branch",
       then scan every open PR for head.ref == branch
    4. If nothing is found, the original creation error propagates

The body is written by an AI model from the prompt and the change summary.

Usage:
    reconciler = PullRequestReconciler(client, owner="acme")
    pr = reconciler.reconcile(title, body, head="feat/x", base="main")
    print(pr.url, pr.created)
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from agents.base.llm_client import LLMClient, LLMResponse
from orchestrator.git.working_tree import ChangeSummary
from orchestrator.github.client import GitHubAPIError, GitHubClient


logger = logging.getLogger(__name__)


ALREADY_EXISTS_MARKER = "already exists"
TITLE_PREFIX = "AI-Generated Changes: "
TITLE_PROMPT_CHARS = 50

PR_DESCRIPTION_PROMPT = """You are writing the description of a GitHub pull request.

The changes were generated automatically from this request:
{user_prompt}

Files changed ({total_files}):
{changes_text}

Write a concise pull request description in Markdown with:
- a "## Summary" section explaining what the change does and why
- a "## Changes" section listing the notable changes per file
- a "## Notes" section with anything a reviewer should check

Reply with the description only."""


@dataclass
class PullRequest:
    """An open pull request for a branch."""
    number: int
    url: str
    head: str
    created: bool = False

    @classmethod
    def from_api(cls, data: dict, created: bool = False) -> "PullRequest":
        return cls(
            number=data["number"],
            url=data["html_url"],
            head=(data.get("head") or {}).get("ref", ""),
            created=created,
        )


def build_title(prompt: str) -> str:
    """``AI-Generated Changes: <first 50 chars>`` plus ``...`` when cut."""
    suffix = "..." if len(prompt) > TITLE_PROMPT_CHARS else ""
    return f"{TITLE_PREFIX}{prompt[:TITLE_PROMPT_CHARS]}{suffix}"


def render_changes_text(summary: ChangeSummary) -> str:
    """One ``status: path`` line per changed file."""
    return "\n".join(f"{change.status.value}: {change.path}" for change in summary.changes)


def generate_description(
    llm: LLMClient,
    original_prompt: str,
    summary: ChangeSummary,
    max_tokens: int = 1024,
) -> LLMResponse:
    """
    Ask the AI model for a pull request body.

    Raises:
        LLMError: If the completion call fails
    """
    prompt = PR_DESCRIPTION_PROMPT.format(
        user_prompt=original_prompt,
        total_files=summary.total_files,
        changes_text=render_changes_text(summary) or "(no file changes)",
    )
    logger.info("Generating pull request description...")
    return llm.complete(prompt=prompt, max_tokens=max_tokens)


# =============================================================================
# RECONCILER CLASS
# =============================================================================

class PullRequestReconciler:
    """Finds or creates the open pull request for a branch."""

    def __init__(self, client: GitHubClient, owner: str):
        self.client = client
        self.owner = owner

    def find_open(self, branch: str) -> Optional[PullRequest]:
        """Open PR whose head is ``owner:branch``, or None."""
        return self._first(self.client.list_pulls(state="open", head=f"{self.owner}:{branch}"))

    def reconcile(self, title: str, body: str, head: str, base: str) -> PullRequest:
        """
        Return the open pull request for ``head``, creating it if needed.

        Args:
            title: Title used when creating
            body: Body used when creating
            head: Branch with the changes
            base: Branch to merge into

        Returns:
            PullRequest with ``created`` set when this call opened it

        Raises:
            GitHubAPIError: If no pull request could be created or found
        """
        existing = self.find_open(head)
        if existing:
            logger.info(f"PR already exists for branch '{head}': {existing.url}")
            return existing

        try:
            created = self.client.create_pull(title=title, body=body, head=head, base=base)
        except GitHubAPIError as e:
            if ALREADY_EXISTS_MARKER not in str(e).lower():
                raise
            logger.info(f"PR already exists for branch '{head}', fetching existing PR...")
            found = self._find_after_conflict(head)
            if found:
                return found
            raise

        pr = PullRequest.from_api(created, created=True)
        logger.info(f"Created PR #{pr.number}: {pr.url}")
        return pr

    def _find_after_conflict(self, branch: str) -> Optional[PullRequest]:
        for head_format in (f"{self.owner}:{branch}", branch):
            try:
                found = self._first(self.client.list_pulls(state="open", head=head_format))
            except GitHubAPIError as e:
                logger.warning(f"Listing PRs with head {head_format} failed: {e}")
                continue
            if found:
                logger.info(f"Found existing PR: {found.url}")
                return found

        try:
            all_open = self.client.list_pulls(state="open", per_page=100)
        except GitHubAPIError as e:
            logger.warning(f"Listing open PRs failed: {e}")
            return None

        for data in all_open:
            if (data.get("head") or {}).get("ref") == branch:
                pr = PullRequest.from_api(data)
                logger.info(f"Found existing PR by manual search: {pr.url}")
                return pr
        return None

    @staticmethod
    def _first(pulls: List[dict]) -> Optional[PullRequest]:
        return PullRequest.from_api(pulls[0]) if pulls else None
