"""Embedding and language model capabilities, with Ollama-backed implementations."""
from typing import AsyncIterator, Callable, List, Optional, Protocol, Sequence

import structlog

from uicopilot import config
from uicopilot.llm_client import OllamaClient, ollama_client

logger = structlog.get_logger()


class EmbeddingProvider(Protocol):
    """Maps text to fixed-dimension vectors."""

    async def embed(self, text: str) -> List[float]:
        ...

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        ...


class LanguageModel(Protocol):
    """Produces text for a prompt, optionally token by token."""

    async def complete(
        self,
        prompt: str,
        streaming: bool = False,
        on_token: Optional[Callable[[str], None]] = None,
    ) -> str:
        ...

    def stream(self, prompt: str) -> AsyncIterator[str]:
        ...


class OllamaEmbeddings:
    """Embedding provider backed by an Ollama embedding model."""

    def __init__(self, client: OllamaClient = None, model: str = None):
        self.client = client or ollama_client
        self.model = model or config.EMBEDDING_MODEL

    async def embed(self, text: str) -> List[float]:
        """Embed one text.

        Raises:
            RuntimeError: If Ollama returns an empty embedding
        """
        response = await self.client.embeddings(prompt=text, model=self.model)
        embedding = response.get("embedding", [])

        if not embedding:
            raise RuntimeError("Empty embedding returned from Ollama")

        return embedding

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Embed several texts in one request, preserving order.

        Raises:
            RuntimeError: If the response doesn't hold one embedding per text
        """
        if not texts:
            return []

        response = await self.client.embed(list(texts), model=self.model)
        embeddings = response.get("embeddings", [])

        if len(embeddings) != len(texts) or any(not e for e in embeddings):
            raise RuntimeError(
                f"Expected {len(texts)} embeddings from Ollama, got {len(embeddings)}"
            )

        return embeddings


class OllamaChatModel:
    """Language model backed by an Ollama chat model.

    Temperature and length limits are chosen by whoever builds the model.
    """

    def __init__(
        self,
        client: OllamaClient = None,
        model: str = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self.client = client or ollama_client
        self.model = model or config.CHAT_MODEL
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _messages(self, prompt: str):
        return [{"role": "user", "content": prompt}]

    async def complete(
        self,
        prompt: str,
        streaming: bool = False,
        on_token: Optional[Callable[[str], None]] = None,
    ) -> str:
        """Generate the full answer for ``prompt``.

        With ``streaming`` set, ``on_token`` is called for each token as it
        arrives and the concatenation is returned.
        """
        if streaming:
            parts = []
            async for token in self.stream(prompt):
                if on_token is not None:
                    on_token(token)
                parts.append(token)
            return "".join(parts)

        response = await self.client.chat(
            self._messages(prompt),
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        return response.get("message", {}).get("content", "")

    def stream(self, prompt: str) -> AsyncIterator[str]:
        """Stream tokens for ``prompt`` in generation order."""
        return self.client.chat_stream(
            self._messages(prompt),
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
