"""LLM client wrapper around litellm.

Provides a unified interface for calling any LLM model supported by litellm,
either as one blocking call or as a stream of text deltas.
"""

from collections.abc import AsyncIterator

from litellm import acompletion, completion

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class LlmClient:
    """Wrapper for LLM API calls via litellm."""

    def __init__(self, model: str | None = None):
        self.model = model or DEFAULT_MODEL

    def _messages(self, system: str, user: str) -> list[dict]:
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]

    def call(self, system: str, user: str) -> str:
        """Send a system+user message to the LLM and return the response text."""
        response = completion(model=self.model, messages=self._messages(system, user))
        return response.choices[0].message.content

    async def astream(self, system: str, user: str) -> AsyncIterator[str]:
        """Yield the response text as it arrives."""
        response = await acompletion(
            model=self.model,
            messages=self._messages(system, user),
            stream=True,
        )
        async for chunk in response:
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta
