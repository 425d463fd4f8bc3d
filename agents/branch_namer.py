# =============================================================================
# AI PULL REQUEST AGENT - BRANCH NAMER
# =============================================================================
"""
Branch Namer

Derives a conventional branch name (``feat/...``, ``fix/...``) for a
change request, either from an AI suggestion or from the prompt text.

Normalization rules:
    - lower-case
    - every character outside ``[a-z0-9-/]`` becomes ``-``
    - a ``feat/`` prefix is added unless an allowed prefix is present
    - at most 50 characters

Applying the normalization to its own output returns the same name.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from agents.base.llm_client import LLMClient, LLMError, LLMResponse


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

ALLOWED_PREFIXES = (
    "feat/", "fix/", "chore/", "docs/", "style/", "refactor/", "test/", "perf/",
)
DEFAULT_PREFIX = "feat/"
MAX_BRANCH_LENGTH = 50
FALLBACK_BRANCH = "feat/ai-update"

_DISALLOWED = re.compile(r"[^a-z0-9\-/]")
_REPEATED_SLASH = re.compile(r"/{2,}")
_WORD = re.compile(r"[a-z0-9]+")

BRANCH_NAMING_PROMPT = """You are naming a git branch for a code change.

Change request:
{user_prompt}

Rules:
- Start with one of: feat/, fix/, chore/, docs/, style/, refactor/, test/, perf/
- Use lowercase words separated by hyphens after the prefix
- Keep the whole name under 50 characters
- Reply with the branch name only, no quotes or explanation

Example: feat/add-health-check-endpoint"""


# =============================================================================
# NORMALIZATION
# =============================================================================

def normalize_branch_name(raw: str) -> str:
    """
    Normalize text into a branch name.

    Args:
        raw: AI output or any candidate name

    Returns:
        Normalized name, or "" when nothing usable follows the prefix
    """
    name = (raw or "").strip().lower()
    name = _DISALLOWED.sub("-", name)
    name = _REPEATED_SLASH.sub("/", name).strip("/")

    if not name.startswith(ALLOWED_PREFIXES):
        name = DEFAULT_PREFIX + name

    name = name[:MAX_BRANCH_LENGTH].rstrip("/")

    if not _has_stem(name):
        return ""
    return name


def _has_stem(name: str) -> bool:
    for prefix in ALLOWED_PREFIXES:
        if name.startswith(prefix):
            return bool(name[len(prefix):].strip("-/"))
    return False


def name_from_prompt(prompt: str, max_words: int = 6) -> str:
    """Deterministic branch name built from the first words of the prompt."""
    words = _WORD.findall((prompt or "").lower())[:max_words]
    if not words:
        return FALLBACK_BRANCH
    return normalize_branch_name("-".join(words)) or FALLBACK_BRANCH


# =============================================================================
# BRANCH NAMER CLASS
# =============================================================================

@dataclass
class BranchSuggestion:
    name: str
    response: Optional[LLMResponse] = None


class BranchNamer:
    """
    Produces branch names for workflow executions.

    Configuration:
        max_tokens: Token budget for the AI suggestion (default: 50)
        temperature: Sampling temperature (default: 0.1)
    """

    DEFAULT_CONFIG = {
        "max_tokens": 50,
        "temperature": 0.1,
    }

    def __init__(self, config: dict = None):
        self.config = {**self.DEFAULT_CONFIG, **(config or {})}

    def build_prompt(self, user_prompt: str) -> str:
        """Render the naming prompt for a change request."""
        return BRANCH_NAMING_PROMPT.format(user_prompt=user_prompt.strip())

    def derive(self, prompt: str, llm: Optional[LLMClient] = None) -> BranchSuggestion:
        """
        Derive a branch name for a change request.

        Args:
            prompt: The user's change request
            llm: Client for the AI suggestion; None for a prompt-based name

        Returns:
            BranchSuggestion with a normalized name and the AI response, if any
        """
        response = None
        if llm is not None:
            try:
                response = llm.complete(
                    prompt=self.build_prompt(prompt),
                    max_tokens=self.config["max_tokens"],
                    temperature=self.config["temperature"],
                )
                name = normalize_branch_name(_first_line(response.content))
                if name:
                    logger.info(f"Generated branch name: {name}")
                    return BranchSuggestion(name=name, response=response)
                logger.warning("AI branch suggestion was empty, using prompt-based name")
            except LLMError as e:
                logger.warning(f"Branch name generation failed, using prompt-based name: {e}")

        name = name_from_prompt(prompt)
        logger.info(f"Derived branch name from prompt: {name}")
        return BranchSuggestion(name=name, response=response)

    def derive_name(self, prompt: str, llm: Optional[LLMClient] = None) -> str:
        """Branch name only; see derive()."""
        return self.derive(prompt, llm).name


def _first_line(text: str) -> str:
    """Models sometimes add a trailing explanation; keep the first non-empty line."""
    for line in (text or "").splitlines():
        line = line.strip().strip("`'\"")
        if line:
            return line
    return ""
