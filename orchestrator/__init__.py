# =============================================================================
# AI PULL REQUEST AGENT - ORCHESTRATOR PACKAGE
# =============================================================================
"""
Orchestrator Package

This package contains the workflow that turns a natural-language prompt
into a pull request on a GitHub repository:

1. Validating the request and the credentials
2. Creating (or reusing) a branch
3. Cloning the branch into a scratch working tree
4. Running the AI code generation tool in that tree
5. Committing and pushing the result
6. Opening (or reusing) a pull request with an AI-written description

Package Structure:
    - main.py: CLI entry point and configuration loading
    - engine/: Workflow orchestrator, models and errors
    - github/: GitHub API integration
    - git/: Local working tree management

Usage:
    ```python
    from orchestrator.engine import WorkflowRequest, create_workflow_orchestrator

    orchestrator = create_workflow_orchestrator(config)
    result = orchestrator.execute(WorkflowRequest(...))
    ```

For detailed configuration, see config/orchestrator.yaml
"""

__version__ = "0.1.0"
__author__ = "AI Pull Request Agent"

__all__ = [
    "engine",
    "git",
    "github",
]
