"""LLM adapters for the analysis stages.

Provides a base interface, concrete adapters for the OpenAI and Anthropic
chat APIs, and a deterministic mock for testing. Every provider failure is
converted into ``ModelError`` so callers never inspect provider payloads.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional

from app.config import LLMSettings
from app.errors import ModelError

logger = logging.getLogger(__name__)

ANTHROPIC_MODELS = ("claude-opus-4-5", "claude-sonnet-4-5", "claude-haiku-4-5")
OPENAI_MODELS = ("gpt-4", "gpt-4-turbo", "gpt-3.5-turbo")
SUPPORTED_MODELS = ANTHROPIC_MODELS + OPENAI_MODELS

DEFAULT_SYSTEM_PROMPT = (
    "You are an expert SEO analyst. Always answer with a single valid JSON "
    "object and no surrounding text."
)


@dataclass(frozen=True)
class GenerationOptions:
    """Per-call generation parameters.

    Attributes:
        temperature: Sampling temperature.
        max_tokens: Completion token budget.
        system_prompt: Optional system instruction.
        stage: Stage label, used for logging and by the mock adapter.
    """

    temperature: float = 0.7
    max_tokens: int = 4096
    system_prompt: Optional[str] = DEFAULT_SYSTEM_PROMPT
    stage: Optional[str] = None


@dataclass(frozen=True)
class LLMResponse:
    text: str
    model: str
    tokens_used: Optional[int] = None


class BaseLLMAdapter(ABC):
    """Abstract base for all LLM adapters."""

    model: str = "unknown"

    @abstractmethod
    def generate(self, prompt: str, options: GenerationOptions) -> LLMResponse:
        """Send a prompt to the LLM and return its text.

        Args:
            prompt: The fully formatted prompt string.
            options: Temperature, token budget and system prompt.

        Returns:
            The model response.

        Raises:
            ModelError: On any provider-side failure or an empty response.
        """


class OpenAILLMAdapter(BaseLLMAdapter):
    """Adapter for OpenAI-compatible chat completion APIs."""

    def __init__(
        self,
        model: str = "gpt-4-turbo",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[object] = None,
    ) -> None:
        """Initialise the OpenAI adapter.

        Args:
            model: Model identifier.
            api_key: OpenAI API key.
            base_url: Optional base URL for OpenAI-compatible endpoints.
            client: Pre-built client, mainly for tests.
        """
        if client is None:
            from openai import OpenAI

            if not api_key:
                raise ModelError("OPENAI_API_KEY is not set", provider="openai")
            client_kwargs: dict = {"api_key": api_key}
            if base_url:
                client_kwargs["base_url"] = base_url
            client = OpenAI(**client_kwargs)

        self._client = client
        self.model = model

    def generate(self, prompt: str, options: GenerationOptions) -> LLMResponse:
        """Call the OpenAI chat completion API.

        Args:
            prompt: The fully formatted prompt string.
            options: Generation parameters.

        Returns:
            The model response with total token usage when reported.
        """
        from openai import OpenAIError

        messages = []
        if options.system_prompt:
            messages.append({"role": "system", "content": options.system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                stream=False,
            )
        except OpenAIError as exc:
            raise ModelError(f"OpenAI API error: {exc}", provider="openai") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ModelError("No content in OpenAI response", provider="openai")

        usage = getattr(response, "usage", None)
        return LLMResponse(
            text=content,
            model=self.model,
            tokens_used=getattr(usage, "total_tokens", None),
        )


class AnthropicLLMAdapter(BaseLLMAdapter):
    """Adapter for the Anthropic Messages API."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-5",
        api_key: Optional[str] = None,
        client: Optional[object] = None,
    ) -> None:
        if client is None:
            import anthropic

            if not api_key:
                raise ModelError("ANTHROPIC_API_KEY is not set", provider="anthropic")
            client = anthropic.Anthropic(api_key=api_key)

        self._client = client
        self.model = model

    def generate(self, prompt: str, options: GenerationOptions) -> LLMResponse:
        """Call the Anthropic messages API.

        Args:
            prompt: The fully formatted prompt string.
            options: Generation parameters.

        Returns:
            The text of the first content block.
        """
        import anthropic

        kwargs: dict = {
            "model": self.model,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if options.system_prompt:
            kwargs["system"] = options.system_prompt

        try:
            message = self._client.messages.create(**kwargs)
        except anthropic.AnthropicError as exc:
            raise ModelError(f"Anthropic API error: {exc}", provider="anthropic") from exc

        blocks = getattr(message, "content", None) or []
        first = blocks[0] if blocks else None
        if first is None or getattr(first, "type", "text") != "text":
            raise ModelError("Unexpected response type from Claude", provider="anthropic")

        usage = getattr(message, "usage", None)
        tokens_used = None
        if usage is not None:
            tokens_used = (getattr(usage, "input_tokens", 0) or 0) + (
                getattr(usage, "output_tokens", 0) or 0
            )
        return LLMResponse(text=first.text, model=self.model, tokens_used=tokens_used)


# ---------------------------------------------------------------------------
# Fixed mock responses used for local testing, keyed by stage label.
# ---------------------------------------------------------------------------
_MOCK_RESPONSES: Dict[str, dict] = {
    "intent": {
        "intent": "commercial",
        "userGoal": "Compare options before choosing a product.",
        "buyerStage": "consideration",
        "confidence": 80,
        "reasoning": "Mock classification for testing purposes.",
    },
    "page": {
        "strengths": [
            {
                "description": "Comparison table summarising the options.",
                "selector": "table.comparison, .comparison-table",
                "selectorFallback": "table",
            }
        ],
        "contentType": "comparison",
        "keyElements": ["comparison table", "FAQ"],
        "targetAudience": "Shoppers researching options",
        "contentDepth": "comprehensive",
        "notes": "Mock page analysis.",
    },
    "patterns": {
        "commonPatterns": [
            {
                "pattern": "Side-by-side comparison tables",
                "frequency": "4/5",
                "importance": "high",
                "examples": ["Feature matrix"],
            }
        ],
        "contentLength": {
            "average": 2200,
            "range": "1500 - 3000 words",
            "recommendation": "2000-2500 words",
        },
        "commonElements": ["FAQ", "tables"],
        "contentStructure": "Intro, comparison, FAQ.",
        "mustHaveElements": ["Comparison table"],
    },
    "content_origin": {
        "aiLikelihood": 20,
        "assessment": "likely_human",
        "signals": ["Specific first-hand details"],
        "confidence": 60,
        "reasoning": "Mock content origin assessment.",
    },
    "recommendations": {
        "criticalGaps": ["No comparison table"],
        "recommendations": [
            {
                "priority": "HIGH",
                "category": "content",
                "title": "Add a comparison table",
                "description": "Summarise the leading options in a table.",
                "reasoning": "Four of five top pages include one.",
                "effort": "medium",
            }
        ],
        "quickWins": ["Add FAQ schema"],
        "contentStrategy": "Lead with a comparison, then answer common questions.",
        "technicalSEO": ["Add Article structured data"],
    },
}


class MockLLMAdapter(BaseLLMAdapter):
    """Deterministic adapter that returns a fixed valid JSON response per stage.

    Used for local testing and CI pipelines where no LLM API is available.
    """

    model = "mock"

    def generate(self, prompt: str, options: GenerationOptions) -> LLMResponse:
        """Return the canned JSON for ``options.stage``.

        Args:
            prompt: Ignored - present only to satisfy the interface.
            options: Only ``stage`` is read.

        Returns:
            A response whose text validates against that stage's schema.
        """
        payload = _MOCK_RESPONSES.get(options.stage or "")
        if payload is None:
            raise ModelError(f"No mock response for stage '{options.stage}'", provider="mock")
        return LLMResponse(text=json.dumps(payload, indent=2), model=self.model, tokens_used=0)


def build_adapter(model_id: str, settings: LLMSettings) -> BaseLLMAdapter:
    """Instantiate the adapter for a requested model id.

    ``LLM_ADAPTER=mock`` forces the mock regardless of model id.

    Raises:
        ModelError: If the model id is unsupported or its provider key is missing.
    """
    if settings.adapter == "mock":
        return MockLLMAdapter()
    if model_id in ANTHROPIC_MODELS:
        return AnthropicLLMAdapter(model=model_id, api_key=settings.anthropic_api_key)
    if model_id in OPENAI_MODELS:
        return OpenAILLMAdapter(
            model=model_id,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        )
    raise ModelError(f"Unsupported model: {model_id}")
