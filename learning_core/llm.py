"""
LLM provider abstraction using LiteLLM.

Single-shot completions for grading; the provider is any LiteLLM model
string (e.g. "anthropic/claude-sonnet-4-6", "gemini/gemini-1.5-pro").
"""

import os

from litellm import acompletion


# Default provider - can be overridden per-call or via environment
DEFAULT_PROVIDER = os.environ.get("LLM_PROVIDER", "anthropic/claude-sonnet-4-6")


async def complete(
    messages: list[dict],
    system: str,
    response_format: dict | None = None,
    provider: str | None = None,
    max_tokens: int = 1024,
) -> str:
    """
    Run a non-streaming completion and return the response text.

    Args:
        messages: List of {"role": "user"|"assistant", "content": str}
        system: System prompt
        response_format: Optional structured-output schema (OpenAI format)
        provider: Model string, defaults to LLM_PROVIDER
        max_tokens: Maximum tokens in response
    """
    kwargs = {
        "model": provider or DEFAULT_PROVIDER,
        "messages": [{"role": "system", "content": system}] + messages,
        "max_tokens": max_tokens,
    }
    if response_format:
        kwargs["response_format"] = response_format

    response = await acompletion(**kwargs)
    return response.choices[0].message.content or ""
