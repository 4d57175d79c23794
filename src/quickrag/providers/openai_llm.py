"""OpenAI chat model provider.

Works against the OpenAI API or any compatible endpoint (set base_url in
extra_params, e.g. a local Ollama server).
"""

from collections.abc import AsyncIterator
from typing import Any, Optional

import openai
import tiktoken
from openai import AsyncOpenAI

from quickrag.observability.logging import get_logger
from quickrag.providers.base import LLMProvider, ProviderConfig, ProviderError
from quickrag.providers.openai import client_kwargs, resolve_api_key, wrap_openai_error

logger = get_logger(__name__)

DEFAULT_MODEL = "gpt-3.5-turbo-0125"
FALLBACK_ENCODING = "cl100k_base"


class OpenAILLMProvider(LLMProvider):
    """Chat model provider using the OpenAI chat completions API."""

    def __init__(self, config: ProviderConfig) -> None:
        """Initialize the provider.

        Raises:
            ProviderError: If the API key is missing or client initialization fails
        """
        super().__init__(config)
        self.model_name = config.model_name or DEFAULT_MODEL
        self._encoding: Optional[tiktoken.Encoding] = None
        api_key = resolve_api_key(config.api_key)

        try:
            self.client = AsyncOpenAI(**client_kwargs(config, api_key))
        except openai.OpenAIError as e:
            raise ProviderError(
                message=f"Failed to initialize OpenAI client: {e}",
                provider="openai",
                original_error=e,
            ) from e

        logger.info(
            "openai_llm_provider_initialized",
            model_name=self.model_name,
            base_url=config.extra_params.get("base_url"),
        )

    def _request(
        self,
        prompt: str,
        system_prompt: Optional[str],
        max_tokens: Optional[int],
        temperature: float,
    ) -> dict[str, Any]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload: dict[str, Any] = {
            "model": self.model_name,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens
        return payload

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.0,
    ) -> str:
        try:
            response = await self.client.chat.completions.create(
                **self._request(prompt, system_prompt, max_tokens, temperature)
            )
        except openai.OpenAIError as e:
            raise wrap_openai_error(e, "generate completion") from e

        if response.usage:
            logger.debug(
                "openai_completion_generated",
                model=self.model_name,
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
            )
        return response.choices[0].message.content or ""

    async def stream(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.0,
    ) -> AsyncIterator[str]:
        try:
            response = await self.client.chat.completions.create(
                stream=True,
                **self._request(prompt, system_prompt, max_tokens, temperature),
            )
            async for event in response:
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    yield delta
        except openai.OpenAIError as e:
            raise wrap_openai_error(e, "stream completion") from e

    def count_tokens(self, text: str) -> int:
        if self._encoding is None:
            try:
                self._encoding = tiktoken.encoding_for_model(self.model_name)
            except KeyError:
                self._encoding = tiktoken.get_encoding(FALLBACK_ENCODING)
        return len(self._encoding.encode(text, disallowed_special=()))

    async def close(self) -> None:
        """Close the OpenAI client connection."""
        await self.client.close()
