# =============================================================================
# AI PULL REQUEST AGENT - AGENTS PACKAGE
# =============================================================================
"""
Agents Package

The AI-facing parts of the workflow. Each one talks to a model or to a
model-driven tool; none of them touches GitHub or git.

Package Structure:
    agents/
    ├── __init__.py          # This file
    ├── base/                # Provider classification and completion client
    ├── branch_namer.py      # Branch names from prompts
    └── codegen/             # Prompt attachments and the code generation CLI
"""

__version__ = "0.1.0"

__all__ = [
    "base",
    "branch_namer",
    "codegen",
]
