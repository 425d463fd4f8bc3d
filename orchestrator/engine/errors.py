# =============================================================================
# AI PULL REQUEST AGENT - WORKFLOW ERRORS
# =============================================================================
"""
Workflow Errors

Every failure inside a workflow execution is raised as a subclass of
WorkflowError. Each error records the WorkflowState in which it occurred,
so the caller can tell a rejected request from a failed push.

Hierarchy:
    WorkflowError
    ├── ValidationError       request rejected before any remote call
    ├── CredentialError       AI key unrecognised or GitHub token rejected
    ├── BranchCreationError   remote branch could not be created
    ├── CloneError            repository could not be cloned
    ├── GenerationError       code generation CLI failed or timed out
    ├── PushError             commit or push failed
    ├── PullRequestError      pull request could not be created or found
    └── AICompletionError     AI completion request failed
"""

from enum import Enum
from typing import Optional


class WorkflowState(str, Enum):
    """Steps of a workflow execution."""
    VALIDATING = "validating"
    BRANCH_RESOLUTION = "branch_resolution"
    CLONING = "cloning"
    GENERATING = "generating"
    COMMITTING = "committing"
    RECONCILING_PR = "reconciling_pr"
    DONE = "done"
    FAILED = "failed"


class WorkflowError(Exception):
    """Base exception for workflow failures."""

    default_state: WorkflowState = WorkflowState.FAILED

    def __init__(self, message: str, state: Optional[WorkflowState] = None):
        super().__init__(message)
        self.message = message
        self.state = state or self.default_state


class ValidationError(WorkflowError):
    """The request is missing a field or carries a malformed value."""
    default_state = WorkflowState.VALIDATING


class CredentialError(WorkflowError):
    """The AI key has no known provider or the GitHub token was rejected."""
    default_state = WorkflowState.VALIDATING


class BranchCreationError(WorkflowError):
    """The feature branch could not be created on the remote."""
    default_state = WorkflowState.BRANCH_RESOLUTION


class CloneError(WorkflowError):
    """The repository could not be cloned into a working tree."""
    default_state = WorkflowState.CLONING


class GenerationError(WorkflowError):
    """The code generation tool exited abnormally or timed out."""
    default_state = WorkflowState.GENERATING


class PushError(WorkflowError):
    """Staging, committing or pushing the changes failed."""
    default_state = WorkflowState.COMMITTING


class PullRequestError(WorkflowError):
    """No pull request could be created or found for the branch."""
    default_state = WorkflowState.RECONCILING_PR


class AICompletionError(WorkflowError):
    """An AI completion request failed."""
