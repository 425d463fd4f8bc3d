# =============================================================================
# AI PULL REQUEST AGENT - ORCHESTRATOR ENGINE PACKAGE
# =============================================================================
"""
Orchestrator Engine Package

This package contains the workflow that turns a prompt into a pull request:

1. errors: the WorkflowError taxonomy and the WorkflowState steps
2. models: WorkflowRequest and the WorkflowSuccess / WorkflowFailure results
3. workflow: the WorkflowOrchestrator that sequences the steps

Usage:
    from orchestrator.engine import (
        WorkflowRequest,
        create_workflow_orchestrator,
    )

    orchestrator = create_workflow_orchestrator(config)
    result = orchestrator.execute(WorkflowRequest(...))
"""

from orchestrator.engine.errors import (
    # States
    WorkflowState,
    # Exceptions
    WorkflowError,
    ValidationError,
    CredentialError,
    BranchCreationError,
    CloneError,
    GenerationError,
    PushError,
    PullRequestError,
    AICompletionError,
)

from orchestrator.engine.models import (
    WorkflowRequest,
    WorkflowResult,
    WorkflowSuccess,
    WorkflowFailure,
)

from orchestrator.engine.workflow import (
    WorkflowOrchestrator,
    create_workflow_orchestrator,
)

__all__ = [
    # States
    "WorkflowState",
    # Exceptions
    "WorkflowError",
    "ValidationError",
    "CredentialError",
    "BranchCreationError",
    "CloneError",
    "GenerationError",
    "PushError",
    "PullRequestError",
    "AICompletionError",
    # Models
    "WorkflowRequest",
    "WorkflowResult",
    "WorkflowSuccess",
    "WorkflowFailure",
    # Orchestrator
    "WorkflowOrchestrator",
    "create_workflow_orchestrator",
]
