# =============================================================================
# AI PULL REQUEST AGENT - GITHUB INTEGRATION PACKAGE
# =============================================================================
"""
GitHub Integration Package

This package provides GitHub API integration for the workflow.

Components:
    - GitHubClient: Low-level API client
    - repository: URL parsing, token validation, branch operations
    - PullRequestReconciler: find-or-create of the branch's pull request

Usage:
    from orchestrator.github import GitHubClient, parse_github_url

    identity = parse_github_url("https://github.com/acme/widgets")
    client = GitHubClient(token="ghp_xxx", repo=identity.full_name)
"""

from orchestrator.github.client import (
    GitHubClient,
    GitHubAPIError,
    NotFoundError,
    AuthenticationError,
    GitHubValidationError,
)

from orchestrator.github.repository import (
    RepositoryIdentity,
    create_branch,
    get_branches,
    is_valid_github_url,
    parse_github_url,
    resolve_default_branch,
    validate_github_token,
)

from orchestrator.github.pull_requests import (
    PullRequest,
    PullRequestReconciler,
    build_title,
    generate_description,
    render_changes_text,
)

__all__ = [
    # Client
    "GitHubClient",
    # Client Exceptions
    "GitHubAPIError",
    "NotFoundError",
    "AuthenticationError",
    "GitHubValidationError",
    # Repository
    "RepositoryIdentity",
    "create_branch",
    "get_branches",
    "is_valid_github_url",
    "parse_github_url",
    "resolve_default_branch",
    "validate_github_token",
    # Pull Requests
    "PullRequest",
    "PullRequestReconciler",
    "build_title",
    "generate_description",
    "render_changes_text",
]
