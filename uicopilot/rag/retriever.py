"""Retriever for semantic search over the indexed corpus.

Handles:
- Query embedding generation
- Top-K vector search
- Context formatting for the prompt
- Lazy, single-flight construction of the shared retriever
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

import structlog

from uicopilot import config
from uicopilot.errors import RetrievalInitError
from uicopilot.rag.documents import Document
from uicopilot.rag.providers import EmbeddingProvider
from uicopilot.rag.store import VectorStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class RetrievalResult:
    """A retrieved document and its cosine similarity to the query."""

    document: Document
    score: float

    @property
    def source(self) -> str:
        """Get a formatted source string for display."""
        source = str(self.document.metadata.get("source") or self.document.id)
        heading_context = self.document.metadata.get("heading_context")
        if heading_context:
            return f"{source} > {heading_context}"
        return source


class Retriever:
    """Semantic retriever for the RAG pipeline."""

    def __init__(
        self,
        vector_store: VectorStore,
        embedder: EmbeddingProvider,
        top_k: int = None,
    ):
        """Initialize the retriever.

        Args:
            vector_store: Loaded vector store
            embedder: Embedding provider used for queries
            top_k: Number of results to retrieve (default from config)
        """
        self.vector_store = vector_store
        self.embedder = embedder
        self.top_k = top_k or config.RETRIEVAL_TOP_K

    async def retrieve(self, query: str, top_k: Optional[int] = None) -> List[RetrievalResult]:
        """Retrieve the documents most similar to ``query``.

        Args:
            query: Query text
            top_k: Number of results to return (overrides default)

        Returns:
            At most top_k results, best first

        Raises:
            RuntimeError: If embedding or search fails
        """
        top_k = top_k or self.top_k

        logger.info("retrieval_started", query_length=len(query), top_k=top_k)

        try:
            query_embedding = await self.embedder.embed(query)
            hits = await self.vector_store.similarity_search(query_embedding, top_k)
        except Exception as e:
            logger.error(
                "retrieval_failed",
                error=str(e),
                error_type=type(e).__name__,
                query_preview=query[:100],
            )
            raise RuntimeError(f"Retrieval failed: {e}") from e

        results = [RetrievalResult(document=doc, score=score) for doc, score in hits]
        results.sort(key=lambda r: r.score, reverse=True)
        results = results[:top_k]

        logger.info(
            "retrieval_completed",
            results_returned=len(results),
            top_score=results[0].score if results else None,
        )

        return results

    @staticmethod
    def format_context(results: List[RetrievalResult], max_chars: int = None) -> str:
        """Format retrieved documents as prompt context, bounded by ``max_chars``.

        Args:
            results: Retrieval results, best first
            max_chars: Maximum total characters of context to return

        Returns:
            Context string; empty if nothing was retrieved
        """
        max_chars = max_chars or config.MAX_CONTEXT_CHARS

        context_parts = []
        total_chars = 0

        for result in results:
            chunk_text = result.document.content.strip() + "\n"

            # Check if adding this would exceed max_chars
            if total_chars + len(chunk_text) > max_chars:
                # Try to fit a truncated version
                remaining = max_chars - total_chars
                if remaining > 200:  # Only add if we have meaningful space
                    context_parts.append(chunk_text[:remaining] + "...\n")
                break

            context_parts.append(chunk_text)
            total_chars += len(chunk_text) + 1

        context = "\n".join(context_parts)

        logger.debug(
            "context_formatted",
            num_chunks=len(context_parts),
            total_chars=len(context),
        )

        return context


RetrieverFactory = Callable[[], Awaitable[Retriever]]


class RetrieverHandle:
    """Application-scoped, lazily built retriever.

    Concurrent first callers share one construction; a failed construction
    is not cached, so a later request builds again.
    """

    def __init__(self, factory: RetrieverFactory):
        self._factory = factory
        self._retriever: Optional[Retriever] = None
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._retriever is not None

    async def get(self) -> Retriever:
        """Return the shared retriever, building it on first use.

        Raises:
            RetrievalInitError: If the vector store is unreachable or empty
        """
        if self._retriever is not None:
            return self._retriever

        async with self._lock:
            if self._retriever is None:
                try:
                    self._retriever = await self._factory()
                except RetrievalInitError:
                    raise
                except Exception as e:
                    logger.error(
                        "retriever_init_failed",
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    raise RetrievalInitError(f"Vector store unavailable: {e}") from e

                logger.info("retriever_initialized", top_k=self._retriever.top_k)

        return self._retriever

    def reset(self) -> None:
        """Drop the cached retriever; the next ``get`` rebuilds it."""
        self._retriever = None


def default_retriever_factory(
    vector_store: VectorStore, embedder: EmbeddingProvider, top_k: int = None
) -> RetrieverFactory:
    """Build a factory that loads ``vector_store`` and refuses an empty one."""

    async def factory() -> Retriever:
        if await vector_store.count() == 0:
            await vector_store.load()

        if await vector_store.count() == 0:
            raise RetrievalInitError("Vector store is empty; run ingestion first")

        return Retriever(vector_store=vector_store, embedder=embedder, top_k=top_k)

    return factory
