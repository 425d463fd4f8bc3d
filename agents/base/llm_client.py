# =============================================================================
# AI PULL REQUEST AGENT - LLM CLIENT
# =============================================================================
"""
LLM Client Module

This module provides a unified interface for the two AI providers the
agent supports (Anthropic and OpenAI). It handles:
1. Provider classification from the API key prefix
2. One explicit client per request and credential
3. Request/response formatting
4. Token usage reporting

Provider selection happens once: ``classify_api_key`` turns the key into
an ``AIProvider`` and that value is passed to everything downstream.

Usage:
    provider = classify_api_key(api_key)
    client = LLMClient(provider, api_key=api_key, model="gpt-4.1-mini")
    response = client.complete(
        prompt="Suggest a branch name for: add health check",
        max_tokens=50,
        temperature=0.1,
    )
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import anthropic
import openai


logger = logging.getLogger(__name__)


# =============================================================================
# PROVIDER CLASSIFICATION
# =============================================================================

class AIProvider(Enum):
    """AI provider a credential belongs to."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    UNKNOWN = "unknown"


ANTHROPIC_KEY_PREFIX = "sk-ant-"
OPENAI_KEY_PREFIX = "sk-"

# Models offered to callers, per provider (first entry is the default)
AVAILABLE_MODELS: Dict[AIProvider, List[str]] = {
    AIProvider.ANTHROPIC: [
        "claude-sonnet-4-20250514",
        "claude-opus-4-20250514",
        "claude-3-5-haiku-20241022",
    ],
    AIProvider.OPENAI: [
        "gpt-4.1-mini",
        "gpt-4.1",
        "gpt-4o",
        "o4-mini",
    ],
}


def classify_api_key(api_key: Optional[str]) -> AIProvider:
    """
    Classify an AI API key by its prefix.

    Anthropic keys also start with ``sk-``, so the Anthropic prefix has
    to be checked first.

    Args:
        api_key: Raw API key (may be None)

    Returns:
        AIProvider.ANTHROPIC, AIProvider.OPENAI or AIProvider.UNKNOWN
    """
    if not api_key:
        return AIProvider.UNKNOWN
    key = api_key.strip()
    if key.startswith(ANTHROPIC_KEY_PREFIX):
        return AIProvider.ANTHROPIC
    if key.startswith(OPENAI_KEY_PREFIX):
        return AIProvider.OPENAI
    return AIProvider.UNKNOWN


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass
class LLMResponse:
    """
    Standardized response from an AI call.

    Attributes:
        content: Generated text content
        model: Model (or tool) used for generation
        tokens_input: Input tokens used (0 when not reported)
        tokens_output: Output tokens generated (0 when not reported)
        finish_reason: Why generation stopped (stop, length, etc.)
    """
    content: str
    model: str
    tokens_input: int = 0
    tokens_output: int = 0
    finish_reason: str = "stop"

    @property
    def total_tokens(self) -> int:
        """Total tokens used."""
        return self.tokens_input + self.tokens_output


@dataclass
class LLMMessage:
    """A message in a conversation (system, user or assistant)."""
    role: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for provider APIs."""
        return {"role": self.role, "content": self.content}


class LLMError(Exception):
    """Raised when a completion call fails."""
    pass


# =============================================================================
# BASE LLM PROVIDER
# =============================================================================

class BaseLLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Each provider (Anthropic, OpenAI) implements this interface.
    """

    @abstractmethod
    def complete(
        self,
        messages: List[LLMMessage],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        Generate a completion.

        Args:
            messages: Conversation messages
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Returns:
            LLMResponse with generated content
        """
        pass

    @abstractmethod
    def get_model_name(self) -> str:
        """Get the model name being used."""
        pass


# =============================================================================
# ANTHROPIC PROVIDER
# =============================================================================

class AnthropicProvider(BaseLLMProvider):
    """
    Anthropic Claude API provider.
    """

    DEFAULT_MODEL = AVAILABLE_MODELS[AIProvider.ANTHROPIC][0]

    def __init__(
        self,
        api_key: str,
        model: str = None,
        timeout: float = 60.0,
        base_url: str = None,
    ):
        """
        Initialize Anthropic provider.

        Args:
            api_key: Anthropic API key
            model: Model to use (default: claude-sonnet-4-20250514)
            timeout: Request timeout in seconds
            base_url: Optional custom base URL
        """
        if not api_key:
            raise ValueError("Anthropic API key not provided")

        self.model = model or self.DEFAULT_MODEL
        self.client = anthropic.Anthropic(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    def complete(
        self,
        messages: List[LLMMessage],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate completion using Claude."""
        # Extract system message if present
        system = None
        conversation = []

        for msg in messages:
            if msg.role == "system":
                system = msg.content
            else:
                conversation.append(msg.to_dict())

        create_kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": conversation,
        }

        if system:
            create_kwargs["system"] = system

        response = self.client.messages.create(**create_kwargs)

        content = ""
        for block in response.content or []:
            if getattr(block, "type", None) == "text":
                content = block.text
                break

        usage = response.usage
        return LLMResponse(
            content=content,
            model=response.model,
            tokens_input=usage.input_tokens if usage else 0,
            tokens_output=usage.output_tokens if usage else 0,
            finish_reason=response.stop_reason or "stop",
        )

    def get_model_name(self) -> str:
        return self.model


# =============================================================================
# OPENAI PROVIDER
# =============================================================================

class OpenAIProvider(BaseLLMProvider):
    """
    OpenAI GPT API provider.
    """

    DEFAULT_MODEL = AVAILABLE_MODELS[AIProvider.OPENAI][0]

    def __init__(
        self,
        api_key: str,
        model: str = None,
        timeout: float = 60.0,
        base_url: str = None,
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Model to use (default: gpt-4.1-mini)
            timeout: Request timeout in seconds
            base_url: Optional custom base URL (for Azure, etc.)
        """
        if not api_key:
            raise ValueError("OpenAI API key not provided")

        self.model = model or self.DEFAULT_MODEL
        self.client = openai.OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    def complete(
        self,
        messages: List[LLMMessage],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate completion using GPT."""
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[msg.to_dict() for msg in messages],
            max_completion_tokens=max_tokens,
            temperature=temperature,
        )

        choice = response.choices[0]
        content = choice.message.content or ""

        return LLMResponse(
            content=content,
            model=response.model,
            tokens_input=response.usage.prompt_tokens if response.usage else 0,
            tokens_output=response.usage.completion_tokens if response.usage else 0,
            finish_reason=choice.finish_reason or "stop",
        )

    def get_model_name(self) -> str:
        return self.model


# =============================================================================
# LLM CLIENT (MAIN INTERFACE)
# =============================================================================

class LLMClient:
    """
    Unified LLM client bound to one provider and one credential.

    A new client is built for every workflow execution; nothing is
    cached across requests.

    Usage:
        client = LLMClient(AIProvider.ANTHROPIC, api_key="sk-ant-...")

        response = client.complete(
            prompt="Describe these changes",
            system="You write pull request descriptions.",
        )
    """

    PROVIDERS = {
        AIProvider.ANTHROPIC: AnthropicProvider,
        AIProvider.OPENAI: OpenAIProvider,
    }

    def __init__(
        self,
        provider: AIProvider,
        api_key: str,
        model: str = None,
        timeout: float = 60.0,
        **kwargs
    ):
        """
        Initialize LLM client.

        Args:
            provider: Classified provider of ``api_key``
            api_key: API key for the provider
            model: Model to use (provider default when None)
            timeout: Request timeout in seconds
            **kwargs: Additional provider-specific options

        Raises:
            ValueError: If the provider is unknown
        """
        provider_class = self.PROVIDERS.get(provider)
        if not provider_class:
            raise ValueError(f"Unsupported LLM provider: {provider.value}")

        self.provider = provider
        self._provider = provider_class(
            api_key=api_key, model=model, timeout=timeout, **kwargs
        )

        # Metrics tracking
        self._total_tokens_input = 0
        self._total_tokens_output = 0
        self._call_count = 0

    @classmethod
    def from_provider(cls, provider: BaseLLMProvider, kind: AIProvider) -> "LLMClient":
        """Wrap an already-built provider (used for tests and custom backends)."""
        client = cls.__new__(cls)
        client.provider = kind
        client._provider = provider
        client._total_tokens_input = 0
        client._total_tokens_output = 0
        client._call_count = 0
        return client

    def complete(
        self,
        prompt: str,
        system: str = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        Generate a simple completion.

        Args:
            prompt: User prompt
            system: Optional system prompt
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Returns:
            LLMResponse with generated content
        """
        messages = []
        if system:
            messages.append(LLMMessage("system", system))
        messages.append(LLMMessage("user", prompt))

        return self.chat(messages, max_tokens, temperature)

    def chat(
        self,
        messages: List[LLMMessage],
        max_tokens: int = 1024,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        Generate a chat completion.

        Raises:
            LLMError: If the provider call fails
        """
        start_time = time.time()

        try:
            response = self._provider.complete(
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except Exception as e:
            logger.error(f"LLM call failed ({self.provider.value}): {e}")
            raise LLMError(f"{self.provider.value} API error: {e}") from e

        self._call_count += 1
        self._total_tokens_input += response.tokens_input
        self._total_tokens_output += response.tokens_output

        duration = time.time() - start_time
        logger.debug(
            f"LLM call completed: {response.tokens_input}+{response.tokens_output} "
            f"tokens in {duration:.2f}s"
        )

        return response

    def get_model(self) -> str:
        """Get the current model name."""
        return self._provider.get_model_name()

    def get_metrics(self) -> Dict[str, Any]:
        """Get accumulated metrics."""
        return {
            "call_count": self._call_count,
            "total_tokens_input": self._total_tokens_input,
            "total_tokens_output": self._total_tokens_output,
            "total_tokens": self._total_tokens_input + self._total_tokens_output,
            "provider": self.provider.value,
            "model": self.get_model(),
        }


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def create_llm_client(
    api_key: str,
    model: str = None,
    config: Optional[Dict[str, Any]] = None,
) -> LLMClient:
    """
    Factory function to create an LLM client for a credential.

    Args:
        api_key: AI API key; its prefix selects the provider
        model: Model override (falls back to the configured default)
        config: ``llm`` configuration section

    Returns:
        Configured LLMClient

    Raises:
        ValueError: If the key belongs to no known provider
    """
    config = config or {}
    provider = classify_api_key(api_key)
    if provider is AIProvider.UNKNOWN:
        raise ValueError("Unrecognised AI API key format")

    default_model = config.get(f"{provider.value}_model")
    return LLMClient(
        provider,
        api_key=api_key.strip(),
        model=model or default_model,
        timeout=config.get("timeout", 60),
    )


def estimate_tokens(text: str) -> int:
    """
    Estimate token count for text (~4 characters per token).

    Used where a tool does not report usage.
    """
    if not text:
        return 0
    return (len(text) + 3) // 4
