"""
Local git operations: the per-execution scratch working tree.
"""

from orchestrator.git.working_tree import (
    ChangeStatus,
    ChangeSummary,
    FileChange,
    GitError,
    WorkingTreeManager,
    WorkingTreeState,
    WorkingTreeStateError,
)

__all__ = [
    "ChangeStatus",
    "ChangeSummary",
    "FileChange",
    "GitError",
    "WorkingTreeManager",
    "WorkingTreeState",
    "WorkingTreeStateError",
]
