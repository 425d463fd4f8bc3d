# =============================================================================
# AI PULL REQUEST AGENT - GITHUB API CLIENT
# =============================================================================
"""
GitHub API Client

Low-level client for the GitHub REST endpoints used by a workflow:
users, repositories, branches, git refs and pull requests.

Features:
    - Token authentication
    - Typed errors for 401 / 404 / 422 responses
    - Optional retry on 5xx responses (disabled by default)
    - Request logging

Usage:
    with GitHubClient(token="ghp_xxx", repo="owner/repo") as client:
        repo = client.get_repository()
        client.create_ref("feat/add-health-check", sha)
"""

import logging
from typing import Any, List, Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class GitHubAPIError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(self, message: str, status_code: int = None, response: dict = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response or {}

    def __str__(self):
        if self.status_code:
            return f"[{self.status_code}] {super().__str__()}"
        return super().__str__()


class NotFoundError(GitHubAPIError):
    """Raised when resource is not found."""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class AuthenticationError(GitHubAPIError):
    """Raised when authentication fails."""

    def __init__(self, message: str):
        super().__init__(message, status_code=401)


class GitHubValidationError(GitHubAPIError):
    """
    Raised on 422 Unprocessable Entity.

    The detail messages GitHub returns in ``errors`` (for example
    "A pull request already exists for acme:feat/x.") are folded into
    the exception text.
    """

    def __init__(self, message: str, errors: list = None):
        self.errors = errors or []
        details = [
            e.get("message", "") if isinstance(e, dict) else str(e)
            for e in self.errors
        ]
        details = [d for d in details if d]
        if details:
            message = f"{message}: {'; '.join(details)}"
        super().__init__(message, status_code=422)


# =============================================================================
# GITHUB CLIENT CLASS
# =============================================================================

class GitHubClient:
    """
    Low-level GitHub API client.

    Attributes:
        token: GitHub API token
        repo: Repository in owner/repo format (None for user-level calls)
        base_url: GitHub API base URL
        session: HTTP session for requests

    A client is built per workflow execution and closed when it ends.
    """

    DEFAULT_BASE_URL = "https://api.github.com"
    DEFAULT_TIMEOUT = 30
    DEFAULT_RETRY_COUNT = 0
    DEFAULT_BACKOFF_FACTOR = 0.5

    def __init__(
        self,
        token: str = None,
        repo: str = None,
        base_url: str = None,
        timeout: int = None,
        retry_count: int = None,
        backoff_factor: float = None,
    ):
        """
        Initialize GitHub client.

        Args:
            token: GitHub API token
            repo: Repository name in owner/repo format
            base_url: API base URL (default: github.com)
            timeout: Request timeout in seconds
            retry_count: Number of retries on 5xx responses
            backoff_factor: Backoff multiplier for retries

        Raises:
            ValueError: If token is missing or repo is malformed
        """
        self.token = token
        self.repo = repo
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.retry_count = retry_count if retry_count is not None else self.DEFAULT_RETRY_COUNT
        self.backoff_factor = backoff_factor or self.DEFAULT_BACKOFF_FACTOR

        if not self.token:
            raise ValueError("GitHub token required. Pass the token parameter.")

        if self.repo is not None and "/" not in self.repo:
            raise ValueError(
                f"Invalid repository format: {self.repo}. "
                "Expected format: owner/repo"
            )

        self._session = self._create_session()

        logger.debug(f"GitHubClient initialized for {self.repo or 'user'}")

    def _create_session(self) -> requests.Session:
        """Create configured HTTP session."""
        session = requests.Session()

        session.headers.update({
            "Authorization": f"token {self.token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "AI-Pull-Request-Agent/1.0",
        })

        retry_strategy = Retry(
            total=self.retry_count,
            backoff_factor=self.backoff_factor,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["GET"],
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        return session

    def _repo_endpoint(self, suffix: str = "") -> str:
        if not self.repo:
            raise ValueError("Repository required for this call (format: owner/repo)")
        return f"/repos/{self.repo}{suffix}"

    # =========================================================================
    # USER OPERATIONS
    # =========================================================================

    def get_authenticated_user(self) -> dict:
        """
        Get the user the token belongs to.

        Raises:
            AuthenticationError: If the token is rejected
        """
        return self._request("GET", "/user")

    # =========================================================================
    # REPOSITORY OPERATIONS
    # =========================================================================

    def get_repository(self) -> dict:
        """Get repository information (includes ``default_branch``)."""
        return self._request("GET", self._repo_endpoint())

    def get_branch(self, branch: str) -> dict:
        """
        Get a branch with its head commit.

        Args:
            branch: Branch name

        Returns:
            Branch data; the head sha is at ``["commit"]["sha"]``

        Raises:
            NotFoundError: If the branch doesn't exist
        """
        endpoint = self._repo_endpoint(f"/branches/{quote(branch, safe='')}")
        return self._request("GET", endpoint)

    def list_branches(self, per_page: int = 100, page: int = 1) -> List[dict]:
        """
        List repository branches.

        Args:
            per_page: Results per page (max 100)
            page: Page number

        Returns:
            List of branch dictionaries
        """
        params = {"per_page": min(per_page, 100), "page": page}
        return self._request("GET", self._repo_endpoint("/branches"), params=params)

    def create_ref(self, branch: str, sha: str) -> dict:
        """
        Create ``refs/heads/<branch>`` pointing at a commit.

        Raises:
            GitHubValidationError: If the ref already exists
        """
        data = {"ref": f"refs/heads/{branch}", "sha": sha}
        return self._request("POST", self._repo_endpoint("/git/refs"), data=data)

    # =========================================================================
    # PULL REQUEST OPERATIONS
    # =========================================================================

    def list_pulls(
        self,
        state: str = "open",
        head: str = None,
        base: str = None,
        per_page: int = 30,
        page: int = 1,
    ) -> List[dict]:
        """
        List pull requests.

        Args:
            state: "open", "closed", or "all"
            head: Filter by head, as "owner:branch"
            base: Filter by base branch
            per_page: Results per page (max 100)
            page: Page number

        Returns:
            List of pull request dictionaries
        """
        params = {"state": state, "per_page": min(per_page, 100), "page": page}
        if head:
            params["head"] = head
        if base:
            params["base"] = base

        return self._request("GET", self._repo_endpoint("/pulls"), params=params)

    def create_pull(self, title: str, body: str, head: str, base: str) -> dict:
        """
        Open a pull request.

        Args:
            title: Pull request title
            body: Pull request body (markdown)
            head: Branch with the changes
            base: Branch to merge into

        Returns:
            Created pull request data

        Raises:
            GitHubValidationError: If a pull request already exists for head
        """
        data = {"title": title, "body": body, "head": head, "base": base}
        return self._request("POST", self._repo_endpoint("/pulls"), data=data)

    # =========================================================================
    # HTTP METHODS
    # =========================================================================

    def _request(
        self,
        method: str,
        endpoint: str,
        data: dict = None,
        params: dict = None,
    ) -> Any:
        """
        Make authenticated API request.

        Handles:
        - Authentication headers
        - Error responses
        - Transport failures
        """
        url = f"{self.base_url}{endpoint}"

        logger.debug(f"GitHub API: {method} {endpoint}")

        try:
            response = self._session.request(
                method=method,
                url=url,
                json=data,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise GitHubAPIError(f"Request timed out: {method} {endpoint}")
        except requests.exceptions.ConnectionError as e:
            raise GitHubAPIError(f"Connection error: {e}")
        except requests.exceptions.RequestException as e:
            raise GitHubAPIError(f"Request failed: {e}")

        if response.status_code >= 400:
            self._handle_error(response)

        # Return empty dict for 204 No Content
        if response.status_code == 204:
            return {}

        return response.json()

    def _handle_error(self, response: requests.Response) -> None:
        """
        Handle error response from API.

        Raises appropriate exception based on status code.
        """
        status_code = response.status_code

        try:
            error_data = response.json()
            message = error_data.get("message", response.text)
            errors = error_data.get("errors", [])
        except ValueError:
            error_data = {}
            message = response.text
            errors = []

        logger.error(f"GitHub API error [{status_code}]: {message}")

        if status_code == 401:
            raise AuthenticationError(
                "Authentication failed. Check your GitHub token."
            )

        if status_code == 404:
            raise NotFoundError(f"Resource not found: {message}")

        if status_code == 422:
            raise GitHubValidationError(message, errors)

        raise GitHubAPIError(message, status_code, error_data)

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - close session."""
        self.close()

    def close(self):
        """Close the HTTP session."""
        if self._session:
            self._session.close()
            logger.debug("GitHubClient session closed")
