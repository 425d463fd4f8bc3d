# =============================================================================
# AI PULL REQUEST AGENT - AGENT BASE PACKAGE
# =============================================================================
"""
Agent Base Package

Shared AI infrastructure used by the branch namer, the code generation
invoker and the pull request describer:

    - AIProvider / classify_api_key: provider selection from the key prefix
    - LLMClient: per-request completion client
    - LLMResponse: content plus token usage
"""

from .llm_client import (
    AIProvider,
    AVAILABLE_MODELS,
    LLMClient,
    LLMError,
    LLMMessage,
    LLMResponse,
    classify_api_key,
    create_llm_client,
    estimate_tokens,
)


__all__ = [
    "AIProvider",
    "AVAILABLE_MODELS",
    "LLMClient",
    "LLMError",
    "LLMMessage",
    "LLMResponse",
    "classify_api_key",
    "create_llm_client",
    "estimate_tokens",
]
