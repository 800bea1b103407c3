"""LiteLLM client wrapper with token accounting and API key validation.

Every model call in distill (summaries, intent classification, compression)
routes through :func:`complete`. Retries are disabled by default here: the
pipeline orchestrator owns retry policy.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

import litellm

from distill.errors import InvocationError, NoTextContent

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "google": "GOOGLE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "groq": "GROQ_API_KEY",
    "together_ai": "TOGETHERAI_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}


@dataclass
class Completion:
    """Text output of one model call plus its token usage."""

    text: str
    model: str
    input_tokens: int
    output_tokens: int


def provider_of(model: str) -> str:
    return model.split("/")[0].lower() if "/" in model else "openai"


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Args:
        model: LiteLLM model string in 'provider/model' format.

    Raises:
        EnvironmentError: If the required key is missing from environment.
    """
    provider = provider_of(model)
    env_var = _PROVIDER_ENV.get(provider, f"{provider.upper()}_API_KEY")

    if env_var is None:
        return

    if not os.getenv(env_var):
        raise EnvironmentError(
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable."
        )


def complete(
    model: str,
    prompt: str,
    *,
    system: str | None = None,
    max_tokens: int = 2048,
    temperature: float = 0.0,
    timeout: float | None = None,
    num_retries: int = 0,
) -> Completion:
    """Call litellm.completion() once and return the first text block with usage.

    Args:
        model: LiteLLM model string (provider/model format).
        prompt: User message content.
        system: Optional system prompt.
        max_tokens: Maximum output tokens.
        temperature: Sampling temperature (0 = deterministic).
        timeout: Provider timeout in seconds.
        num_retries: LiteLLM-level retries; 0 leaves retry policy to the caller.

    Raises:
        NoTextContent: The response carried no text block.
        InvocationError: Any provider failure (timeout, rate limit, bad response).
    """
    messages: list[dict] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})

    try:
        response = litellm.completion(
            model=model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
            timeout=timeout,
            num_retries=num_retries,
        )
    except Exception as exc:
        raise InvocationError(f"{type(exc).__name__}: {exc}") from exc

    try:
        message = response.choices[0].message
    except (AttributeError, IndexError, TypeError) as exc:
        raise InvocationError(f"Malformed completion response: {exc}") from exc

    text = _first_text_block(message.content)
    if text is None:
        raise NoTextContent()

    usage = getattr(response, "usage", None)
    return Completion(
        text=text,
        model=getattr(response, "model", None) or model,
        input_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
        output_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
    )


def _first_text_block(content: object) -> str | None:
    """Plain string content, or the first ``{"type": "text"}`` part of a list."""
    if isinstance(content, str):
        return content if content.strip() else None
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text" and block.get("text"):
                return block["text"]
    return None
