# =============================================================================
# AI PULL REQUEST AGENT - TEST PACKAGE
# =============================================================================
"""
Test Package

Test Structure:
    tests/
    ├── conftest.py              # Fakes for GitHub, AI calls and the working tree
    ├── test_workflow.py         # End-to-end workflow with fakes
    ├── test_working_tree.py     # Clone, commit and push against a local bare repo
    ├── test_github_client.py    # HTTP error mapping
    ├── test_pull_requests.py    # Pull request reconciliation
    └── ...

Running Tests:
    pytest tests/ -v

Tests marked by ``requires_git`` are skipped when git is not installed.
"""
