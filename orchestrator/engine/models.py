# =============================================================================
# AI PULL REQUEST AGENT - WORKFLOW MODELS
# =============================================================================
"""
Workflow Models

Request and result types for a single workflow execution.

Usage:
    request = WorkflowRequest(
        prompt="Add a health check endpoint",
        api_key="sk-ant-...",
        repository_url="https://github.com/acme/api",
        github_token="ghp_...",
    )
    result = orchestrator.execute(request)
    print(json.dumps(result.to_dict()))
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from agents.codegen.attachments import AttachedFile


@dataclass
class WorkflowRequest:
    """
    One change request against one repository.

    Attributes:
        prompt: Natural-language description of the change
        api_key: AI provider key (empty to use the configured default)
        repository_url: https URL of the GitHub repository
        github_token: Token with push and pull request permissions
        target_branch: Existing branch to reuse; None to create a new one
        attached_files: Uploaded files, in upload order
        model: Optional model override for code generation
    """
    prompt: str
    api_key: Optional[str]
    repository_url: str
    github_token: str
    target_branch: Optional[str] = None
    attached_files: List[AttachedFile] = field(default_factory=list)
    model: Optional[str] = None


@dataclass
class WorkflowSuccess:
    """A pull request exists for the generated changes."""
    pull_request_url: str
    branch_name: str
    pull_request_number: int
    repository_name: str
    repository_owner: str
    processed_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    message: str = "Pull request created successfully!"

    success = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "message": self.message,
            "data": {
                "pullRequestUrl": self.pull_request_url,
                "branchName": self.branch_name,
                "pullRequestNumber": self.pull_request_number,
                "processedAt": self.processed_at,
                "repositoryName": self.repository_name,
                "repositoryOwner": self.repository_owner,
            },
        }


@dataclass
class WorkflowFailure:
    """The execution stopped; message is safe to show to the caller."""
    message: str
    state: Optional[str] = None

    success = False

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "message": self.message, "data": {}}


WorkflowResult = Union[WorkflowSuccess, WorkflowFailure]
