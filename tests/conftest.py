"""Shared fakes for the GitHub API, AI completions and the working tree."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import structlog
import structlog.contextvars

from agents.base.llm_client import (
    AIProvider,
    BaseLLMProvider,
    LLMClient,
    LLMMessage,
    LLMResponse,
)
from agents.codegen.invoker import CodeGenerationError
from orchestrator.git.working_tree import (
    ChangeStatus,
    ChangeSummary,
    FileChange,
    GitError,
)
from orchestrator.github.client import (
    AuthenticationError,
    GitHubValidationError,
    NotFoundError,
)


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


# =============================================================================
# GITHUB
# =============================================================================

class FakeGitHubClient:
    """In-memory stand-in for GitHubClient that records every call."""

    def __init__(
        self,
        owner: str = "acme",
        repo: str = "widgets",
        default_branch: str = "main",
        token_valid: bool = True,
        branches: Optional[Dict[str, str]] = None,
    ):
        self.owner = owner
        self.repo = f"{owner}/{repo}"
        self.default_branch = default_branch
        self.token_valid = token_valid
        self.branches = branches if branches is not None else {default_branch: "a" * 40}
        self.pulls: List[Dict[str, Any]] = []
        self.calls: List[tuple] = []
        self.closed = False
        self.fail_create_ref = False
        self.fail_repository = False
        # Simulates a PR opened by someone else between lookup and create
        self.race_pull: Optional[Dict[str, Any]] = None
        self.hide_race_pull_from_head_filter = False

    def get_authenticated_user(self) -> dict:
        self.calls.append(("GET", "/user"))
        if not self.token_valid:
            raise AuthenticationError("Authentication failed. Check your GitHub token.")
        return {"login": "octocat"}

    def get_repository(self) -> dict:
        self.calls.append(("GET", f"/repos/{self.repo}"))
        if self.fail_repository:
            raise NotFoundError("Resource not found: Not Found")
        return {"full_name": self.repo, "default_branch": self.default_branch}

    def get_branch(self, branch: str) -> dict:
        self.calls.append(("GET", f"/repos/{self.repo}/branches/{branch}"))
        if branch not in self.branches:
            raise NotFoundError("Resource not found: Branch not found")
        return {"name": branch, "commit": {"sha": self.branches[branch]}}

    def list_branches(self, per_page: int = 100, page: int = 1) -> List[dict]:
        self.calls.append(("GET", f"/repos/{self.repo}/branches"))
        return [
            {"name": name, "protected": name == self.default_branch, "commit": {"sha": sha}}
            for name, sha in self.branches.items()
        ]

    def create_ref(self, branch: str, sha: str) -> dict:
        self.calls.append(("POST", f"/repos/{self.repo}/git/refs", branch))
        if self.fail_create_ref or branch in self.branches:
            raise GitHubValidationError(
                "Validation Failed", [{"message": "Reference already exists"}]
            )
        self.branches[branch] = sha
        return {"ref": f"refs/heads/{branch}", "object": {"sha": sha}}

    def list_pulls(
        self,
        state: str = "open",
        head: str = None,
        base: str = None,
        per_page: int = 30,
        page: int = 1,
    ) -> List[dict]:
        self.calls.append(("GET", f"/repos/{self.repo}/pulls", head))
        pulls = [p for p in self.pulls if p["state"] == state]
        if head is None:
            return pulls
        if self.hide_race_pull_from_head_filter:
            pulls = [p for p in pulls if p is not self.race_pull]
        if ":" in head:
            owner, ref = head.split(":", 1)
            return [p for p in pulls if owner == self.owner and p["head"]["ref"] == ref]
        return [p for p in pulls if p["head"]["ref"] == head]

    def create_pull(self, title: str, body: str, head: str, base: str) -> dict:
        self.calls.append(("POST", f"/repos/{self.repo}/pulls", head))
        if self.race_pull is not None and self.race_pull not in self.pulls:
            self.pulls.append(self.race_pull)
        if any(p["head"]["ref"] == head and p["state"] == "open" for p in self.pulls):
            raise GitHubValidationError(
                "Validation Failed",
                [{"message": f"A pull request already exists for {self.owner}:{head}."}],
            )
        pull = make_pull(len(self.pulls) + 1, head, title=title, body=body, base=base)
        self.pulls.append(pull)
        return pull

    def close(self) -> None:
        self.closed = True

    def count(self, method: str, suffix: str) -> int:
        return sum(1 for call in self.calls if call[0] == method and call[1].endswith(suffix))


def make_pull(number: int, head: str, title: str = "t", body: str = "b", base: str = "main") -> dict:
    return {
        "number": number,
        "html_url": f"https://github.com/acme/widgets/pull/{number}",
        "state": "open",
        "title": title,
        "body": body,
        "head": {"ref": head},
        "base": {"ref": base},
    }


# =============================================================================
# AI
# =============================================================================

class ScriptedProvider(BaseLLMProvider):
    """Returns queued replies in order; an Exception in the queue is raised."""

    def __init__(self, replies: List[Any]):
        self.replies = list(replies)
        self.prompts: List[List[LLMMessage]] = []

    def complete(self, messages, max_tokens=1024, temperature=0.7) -> LLMResponse:
        self.prompts.append(messages)
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(content=reply, model="fake-model", tokens_input=10, tokens_output=5)

    def get_model_name(self) -> str:
        return "fake-model"


def scripted_llm(*replies: Any, kind: AIProvider = AIProvider.ANTHROPIC) -> LLMClient:
    return LLMClient.from_provider(ScriptedProvider(list(replies)), kind)


class FakeInvoker:
    """Stands in for CodeGenerationInvoker; writes files into the tree."""

    def __init__(self, files: Optional[Dict[str, str]] = None, error: Exception = None):
        self.files = files if files is not None else {"health.py": "def health():\n    return 'ok'\n"}
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    def invoke(self, provider, api_key, prompt, working_directory, model=None) -> LLMResponse:
        self.calls.append({
            "provider": provider,
            "api_key": api_key,
            "prompt": prompt,
            "cwd": Path(working_directory),
            "model": model,
        })
        if self.error is not None:
            raise self.error
        for name, content in self.files.items():
            (Path(working_directory) / name).write_text(content)
        return LLMResponse(content="done", model="claude", tokens_input=100, tokens_output=20)


# =============================================================================
# WORKING TREE
# =============================================================================

class FakeWorkingTree:
    """Working tree double that records the lifecycle calls."""

    def __init__(self, root: Path, clone_error: Exception = None, push_error: Exception = None):
        self.root = root
        self.path: Optional[Path] = None
        self.clone_error = clone_error
        self.push_error = push_error
        self.cloned: Optional[tuple] = None
        self.commits: List[tuple] = []
        self.disposed = 0

    def clone(self, repository_url: str, branch_name: str, credential: str) -> Path:
        self.cloned = (repository_url, branch_name, credential)
        self.path = self.root / branch_name.replace("/", "-")
        self.path.mkdir(parents=True, exist_ok=True)
        if self.clone_error is not None:
            raise self.clone_error
        return self.path

    def commit_and_push(self, message: str, branch_name: str) -> bool:
        if self.push_error is not None:
            raise self.push_error
        self.commits.append((message, branch_name))
        return True

    def get_change_summary(self) -> ChangeSummary:
        return ChangeSummary(changes=[
            FileChange(path=p.name, status=ChangeStatus.NEW_FILE)
            for p in sorted(self.path.iterdir())
        ])

    def dispose(self) -> None:
        self.disposed += 1


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def github() -> FakeGitHubClient:
    return FakeGitHubClient()


@pytest.fixture
def isolated_logging():
    """Restore the root logger and structlog after setup_logging() ran."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def git_remote(tmp_path: Path) -> str:
    """Bare repository with a ``main`` branch holding one commit."""
    remote = tmp_path / "remote.git"
    seed = tmp_path / "seed"

    def git(*args, cwd):
        subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)

    git("init", "--bare", str(remote), cwd=tmp_path)
    git("init", str(seed), cwd=tmp_path)
    git("symbolic-ref", "HEAD", "refs/heads/main", cwd=seed)
    (seed / "README.md").write_text("# widgets\n")
    (seed / "old.txt").write_text("obsolete\n")
    git("add", "-A", cwd=seed)
    git(
        "-c", "user.name=Seed", "-c", "user.email=seed@example.com",
        "-c", "commit.gpgsign=false",
        "commit", "-m", "initial", cwd=seed,
    )
    git("push", str(remote), "HEAD:refs/heads/main", cwd=seed)
    git("push", str(remote), "HEAD:refs/heads/feat/existing", cwd=seed)
    return str(remote)


__all__ = [
    "CodeGenerationError",
    "FakeGitHubClient",
    "FakeInvoker",
    "FakeWorkingTree",
    "GitError",
    "make_pull",
    "requires_git",
    "scripted_llm",
]
