"""Deterministic offline providers.

FakeEmbeddingProvider hashes words into a fixed-size bag-of-words vector, so
texts sharing words land close together. FakeLLMProvider replays scripted
answers or echoes the question back. Both need no network and no model
download, which makes them the "mock" provider type for demos and tests.
"""

import asyncio
import hashlib
import math
import re
from collections.abc import AsyncIterator
from typing import Optional

from quickrag.observability.logging import get_logger
from quickrag.providers.base import EmbeddingProvider, LLMProvider, ProviderConfig, ProviderError

logger = get_logger(__name__)

DEFAULT_DIMENSION = 256
_WORD_RE = re.compile(r"\w+")


def _tokenize(text: str) -> list[str]:
    return _WORD_RE.findall(text.lower())


class FakeEmbeddingProvider(EmbeddingProvider):
    """Hashed bag-of-words embeddings, L2-normalized."""

    def __init__(self, config: Optional[ProviderConfig] = None) -> None:
        config = config or ProviderConfig(provider_type="mock", model_name="fake-embedding")
        super().__init__(config)
        self.model_name = config.model_name
        self._dimension = int(config.extra_params.get("dimension", DEFAULT_DIMENSION))
        self.calls = 0

    def _embed(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for word in _tokenize(text):
            digest = hashlib.md5(word.encode("utf-8")).digest()
            vector[int.from_bytes(digest[:4], "big") % self._dimension] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            # Text without word characters still gets a valid unit vector.
            vector[0] = 1.0
            return vector
        return [v / norm for v in vector]

    async def embed_text(self, text: str) -> list[float]:
        if not text or not text.strip():
            raise ProviderError(message="Cannot embed empty text", provider="mock")
        self.calls += 1
        return self._embed(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        for i, text in enumerate(texts):
            if not text or not text.strip():
                raise ProviderError(message=f"Cannot embed empty text at index {i}", provider="mock")
        if texts:
            self.calls += 1
        return [self._embed(text) for text in texts]

    def get_dimension(self) -> int:
        return self._dimension

    def get_max_tokens(self) -> int:
        return 8191


class FakeLLMProvider(LLMProvider):
    """Chat model stand-in.

    With responses it returns them in turn (cycling); otherwise it answers
    with a fixed sentence quoting the question found in the prompt.
    """

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        responses: Optional[list[str]] = None,
    ) -> None:
        config = config or ProviderConfig(provider_type="mock", model_name="fake-llm")
        super().__init__(config)
        self.model_name = config.model_name
        self.responses = list(responses if responses is not None else config.extra_params.get("responses", []))
        self.prompts: list[str] = []
        self._next = 0

    def _answer(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.responses:
            answer = self.responses[self._next % len(self.responses)]
            self._next += 1
            return answer
        match = re.search(r"Question:\s*(.+?)\s*(?:\n|$)", prompt)
        question = match.group(1) if match else prompt.strip()[:80]
        return f"This is a fake answer to: {question}"

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.0,
    ) -> str:
        return self._answer(prompt)

    async def stream(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: float = 0.0,
    ) -> AsyncIterator[str]:
        answer = self._answer(prompt)
        for piece in re.findall(r"\S+\s*", answer):
            await asyncio.sleep(0)
            yield piece

    def count_tokens(self, text: str) -> int:
        return len(_tokenize(text))
