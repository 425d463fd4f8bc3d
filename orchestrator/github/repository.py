# =============================================================================
# AI PULL REQUEST AGENT - REPOSITORY OPERATIONS
# =============================================================================
"""
Repository Operations

Identifies the target repository from its URL and performs the
repository-level calls a workflow needs before cloning:

    - parse_github_url / is_valid_github_url: URL -> owner and name
    - validate_github_token: one GET /user liveness check
    - resolve_default_branch: repository default branch, "main" if unknown
    - create_branch: new branch from the head of a base branch
    - get_branches: branch listing (name, protected, head sha)

Usage:
    identity = parse_github_url("https://github.com/acme/widgets.git")
    # RepositoryIdentity(host="github.com", owner="acme", name="widgets")

    with GitHubClient(token=token, repo=identity.full_name) as client:
        base = resolve_default_branch(client)
        create_branch(client, "feat/add-health-check", base)
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from orchestrator.github.client import GitHubAPIError, GitHubClient


logger = logging.getLogger(__name__)


GITHUB_URL_PATTERN = re.compile(
    r"^https://(?P<host>[\w.-]+(?::\d+)?)/"
    r"(?P<owner>[\w.-]+)/"
    r"(?P<name>[\w.-]+?)(?:\.git)?/?$"
)

DEFAULT_BRANCH_FALLBACK = "main"


# =============================================================================
# REPOSITORY IDENTITY
# =============================================================================

@dataclass(frozen=True)
class RepositoryIdentity:
    """Host, owner and name of a GitHub repository."""
    host: str
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def clone_url(self) -> str:
        return f"https://{self.host}/{self.owner}/{self.name}.git"


def is_valid_github_url(url: Optional[str]) -> bool:
    """True when ``url`` looks like https://<host>/<owner>/<repo>[.git]."""
    return bool(url) and GITHUB_URL_PATTERN.match(url.strip()) is not None


def parse_github_url(url: Optional[str]) -> Optional[RepositoryIdentity]:
    """
    Parse a repository URL.

    Args:
        url: https URL, optionally ending in ``.git`` or ``/``

    Returns:
        RepositoryIdentity, or None when the URL does not match
    """
    if not url:
        return None

    match = GITHUB_URL_PATTERN.match(url.strip())
    if not match:
        return None

    name = match.group("name")
    if not name or name in (".", ".."):
        return None

    return RepositoryIdentity(
        host=match.group("host"),
        owner=match.group("owner"),
        name=name,
    )


# =============================================================================
# TOKEN VALIDATION
# =============================================================================

def validate_github_token(client: GitHubClient) -> bool:
    """
    Check that the client's token is accepted by GitHub.

    Makes exactly one GET /user call. Any failure (rejected token,
    network error) yields False.
    """
    try:
        user = client.get_authenticated_user()
    except GitHubAPIError as e:
        logger.warning(f"GitHub token validation failed: {e}")
        return False

    logger.debug(f"GitHub token belongs to {user.get('login', 'unknown')}")
    return True


# =============================================================================
# BRANCH OPERATIONS
# =============================================================================

def resolve_default_branch(client: GitHubClient, fallback: str = DEFAULT_BRANCH_FALLBACK) -> str:
    """Return the repository's default branch, or ``fallback`` when unknown."""
    try:
        repository = client.get_repository()
    except GitHubAPIError as e:
        logger.warning(f"Could not detect default branch, using {fallback}: {e}")
        return fallback

    return repository.get("default_branch") or fallback


def create_branch(client: GitHubClient, branch_name: str, from_branch: str) -> str:
    """
    Create ``branch_name`` at the head commit of ``from_branch``.

    Args:
        client: Client bound to the repository
        branch_name: New branch name
        from_branch: Existing branch to start from

    Returns:
        Sha the new branch points at

    Raises:
        GitHubAPIError: If the base branch is missing or the ref can't be created
    """
    base = client.get_branch(from_branch)
    sha = base["commit"]["sha"]

    client.create_ref(branch_name, sha)
    logger.info(f"Branch '{branch_name}' created from {from_branch} at {sha[:7]}")
    return sha


def get_branches(client: GitHubClient) -> List[Dict[str, Any]]:
    """
    List up to 100 branches as ``{name, protected, sha}`` dictionaries.

    Raises:
        GitHubAPIError: If the listing fails
    """
    return [
        {
            "name": branch.get("name"),
            "protected": branch.get("protected", False),
            "sha": (branch.get("commit") or {}).get("sha"),
        }
        for branch in client.list_branches(per_page=100)
    ]
