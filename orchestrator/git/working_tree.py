# =============================================================================
# AI PULL REQUEST AGENT - WORKING TREE MANAGER
# =============================================================================
"""
Working Tree Manager

Owns the scratch clone used by one workflow execution.

Lifecycle:
    UNBOUND --clone()--> CLONED --commit_and_push()--> CLONED ... --dispose()--> DISPOSED

    - One clone per manager; a second clone() raises WorkingTreeStateError
    - The scratch directory is unique per execution, even for equal branch names
    - The credential is embedded in the remote URL only for the clone and
      push commands; origin is stored without it
    - dispose() is idempotent and never raises

Usage:
    tree = WorkingTreeManager({"root": "/tmp"})
    try:
        tree.clone("https://github.com/acme/widgets", "feat/x", token)
        ...  # edit files in tree.path
        tree.commit_and_push("AI Update: ...", "feat/x")
        summary = tree.get_change_summary()
    finally:
        tree.dispose()
"""

import logging
import os
import re
import shutil
import subprocess
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from monitoring.logger import redact_secrets


logger = logging.getLogger(__name__)


# =============================================================================
# DATA STRUCTURES
# =============================================================================

class WorkingTreeState(Enum):
    UNBOUND = "unbound"
    CLONED = "cloned"
    DISPOSED = "disposed"


class ChangeStatus(Enum):
    """Status of a changed path, as shown in pull request descriptions."""
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    NEW_FILE = "new file"


@dataclass
class FileChange:
    path: str
    status: ChangeStatus


@dataclass
class ChangeSummary:
    """Changed paths of a working tree."""
    changes: List[FileChange] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return len(self.changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalFiles": self.total_files,
            "changes": [
                {"path": c.path, "status": c.status.value} for c in self.changes
            ],
        }


# =============================================================================
# EXCEPTIONS
# =============================================================================

class GitError(Exception):
    """A git command failed or timed out."""

    def __init__(self, message: str, command: str = "", stderr: str = ""):
        super().__init__(message)
        self.command = command
        self.stderr = stderr


class WorkingTreeStateError(Exception):
    """An operation was called in the wrong lifecycle state."""


# =============================================================================
# HELPERS
# =============================================================================

_UNSAFE_DIR_CHARS = re.compile(r"[^A-Za-z0-9._-]")

INDEX_STATUS = {
    "A": ChangeStatus.ADDED,
    "M": ChangeStatus.MODIFIED,
    "R": ChangeStatus.MODIFIED,
    "C": ChangeStatus.MODIFIED,
    "D": ChangeStatus.DELETED,
}


def authenticated_url(repository_url: str, credential: Optional[str]) -> str:
    """Embed the credential in an https URL; other URLs are returned unchanged."""
    parts = urlsplit(repository_url)
    if parts.scheme != "https" or not credential:
        return repository_url
    host = parts.netloc.rsplit("@", 1)[-1]
    netloc = f"x-access-token:{quote(credential, safe='')}@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def classify_status(index: str) -> ChangeStatus:
    """
    Map the index column of a porcelain entry to a ChangeStatus.

    Only the index state is consulted; an entry with no index state
    (blank or untracked) is a new file whatever its work-tree state.
    """
    return INDEX_STATUS.get(index, ChangeStatus.NEW_FILE)


def parse_porcelain(output: str) -> List[FileChange]:
    """Parse ``git status --porcelain -z`` output."""
    changes = []
    entries = output.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:
            continue
        index, path = entry[0], entry[3:]
        if index in ("R", "C"):
            # -z puts the source path of a rename or copy in the next entry
            i += 1
        changes.append(FileChange(path=path, status=classify_status(index)))
    return changes


# =============================================================================
# WORKING TREE MANAGER CLASS
# =============================================================================

class WorkingTreeManager:
    """
    Scratch clone of one branch, removed on dispose().

    Configuration:
        root: Parent of the ``github-repos`` scratch area (default: temp dir)
        clone_depth: History depth of the clone (default: 1)
        git_timeout: Seconds allowed per git command (default: 300)
        author_name / author_email: Commit identity
    """

    DEFAULT_CONFIG = {
        "root": None,
        "clone_depth": 1,
        "git_timeout": 300,
        "author_name": "AI Pull Request Agent",
        "author_email": "ai-pr-agent@users.noreply.github.com",
    }

    def __init__(self, config: Dict[str, Any] = None):
        self.config = {**self.DEFAULT_CONFIG, **(config or {})}
        self.state = WorkingTreeState.UNBOUND
        self.path: Optional[Path] = None
        self._remote_url: Optional[str] = None
        self._credential: Optional[str] = None
        self._committed_summary: Optional[ChangeSummary] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def clone(self, repository_url: str, branch_name: str, credential: str) -> Path:
        """
        Clone a single branch into a fresh scratch directory.

        Args:
            repository_url: Credential-free repository URL
            branch_name: Branch to check out
            credential: Token used for this clone and the later push

        Returns:
            Path of the working tree

        Raises:
            WorkingTreeStateError: If this manager already cloned or was disposed
            GitError: If the clone fails
        """
        if self.state is not WorkingTreeState.UNBOUND or self.path is not None:
            raise WorkingTreeStateError(
                f"clone() called on a working tree in state {self.state.value}"
            )

        scratch_root = Path(self.config["root"] or tempfile.gettempdir()) / "github-repos"
        scratch_root.mkdir(parents=True, exist_ok=True)
        safe_branch = _UNSAFE_DIR_CHARS.sub("-", branch_name)[:40] or "branch"
        self.path = Path(tempfile.mkdtemp(prefix=f"{safe_branch}-", dir=scratch_root))

        self._remote_url = repository_url
        self._credential = credential

        logger.info(f"Cloning branch {branch_name} into {self.path}")
        self._git(
            "clone",
            "--branch", branch_name,
            "--single-branch",
            "--depth", str(self.config["clone_depth"]),
            authenticated_url(repository_url, credential),
            str(self.path),
            cwd=self.path.parent,
        )
        self._git("remote", "set-url", "origin", repository_url)
        self._git("config", "user.name", self.config["author_name"])
        self._git("config", "user.email", self.config["author_email"])

        self.state = WorkingTreeState.CLONED
        return self.path

    def dispose(self) -> None:
        """Remove the scratch directory. Safe to call any number of times."""
        if self.state is WorkingTreeState.DISPOSED:
            return
        self.state = WorkingTreeState.DISPOSED
        self._credential = None

        if self.path is None:
            return
        try:
            if self.path.exists():
                shutil.rmtree(self.path)
                logger.info(f"Temporary files cleaned up: {self.path}")
        except OSError as e:
            logger.error(f"Error during cleanup of {self.path}: {e}")

    def __enter__(self) -> "WorkingTreeManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.dispose()

    # =========================================================================
    # CHANGES
    # =========================================================================

    def get_change_summary(self) -> ChangeSummary:
        """
        Summarise the changes of the working tree.

        A clean tree after a commit reports what that commit contained.
        """
        self._require_cloned("get_change_summary")
        output = self._git("status", "--porcelain=v1", "-z", "--untracked-files=all")
        changes = parse_porcelain(output)
        if not changes and self._committed_summary is not None:
            return self._committed_summary
        return ChangeSummary(changes=changes)

    def commit_and_push(self, message: str, branch_name: str) -> bool:
        """
        Stage everything, commit and push to ``branch_name`` on origin.

        Returns:
            True when a commit was pushed, False when there was nothing to commit

        Raises:
            GitError: If staging, committing or pushing fails
        """
        self._require_cloned("commit_and_push")
        output = self._git("status", "--porcelain=v1", "-z", "--untracked-files=all")
        changes = parse_porcelain(output)

        if not changes:
            logger.warning("No changes detected to commit")
            return False

        for change in changes:
            logger.info(f"  {change.status.value}: {change.path}")

        self._git("add", "-A")
        self._git("-c", "commit.gpgsign=false", "commit", "-m", message)
        self._git(
            "push",
            authenticated_url(self._remote_url, self._credential),
            f"HEAD:refs/heads/{branch_name}",
        )

        self._committed_summary = ChangeSummary(changes=changes)
        logger.info(f"Total files committed: {len(changes)}")
        return True

    # =========================================================================
    # GIT
    # =========================================================================

    def _require_cloned(self, operation: str) -> None:
        if self.state is not WorkingTreeState.CLONED:
            raise WorkingTreeStateError(
                f"{operation}() requires a cloned working tree (state: {self.state.value})"
            )

    def _git(self, *args: str, cwd: Optional[Path] = None) -> str:
        """Run a git command in the working tree and return its stdout."""
        secrets = [self._credential] if self._credential else []
        command = redact_secrets(" ".join(("git",) + args), extra=secrets)
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}

        try:
            result = subprocess.run(
                ["git", *args],
                cwd=cwd or self.path,
                env=env,
                capture_output=True,
                text=True,
                timeout=self.config["git_timeout"],
            )
        except subprocess.TimeoutExpired:
            raise GitError(
                f"{command} timed out after {self.config['git_timeout']} seconds",
                command=command,
            )
        except OSError as e:
            raise GitError(f"Failed to run {command}: {e}", command=command) from e

        if result.returncode != 0:
            stderr = redact_secrets(result.stderr.strip(), extra=secrets)
            logger.error(f"{command} failed: {stderr}")
            raise GitError(f"{command} failed: {stderr}", command=command, stderr=stderr)

        return result.stdout
