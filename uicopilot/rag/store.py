"""Vector store contract.

A store persists IndexRecords of one fixed embedding dimension and answers
top-K similarity queries. The first insert into an empty store fixes the
dimension; ``delete_all`` releases it.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from uicopilot.rag.documents import Document, IndexRecord


class VectorStore(ABC):
    """Abstract vector store used by ingestion (writes) and retrieval (reads)."""

    dimension: Optional[int] = None

    @abstractmethod
    async def load(self) -> None:
        """Connect to the existing collection.

        Raises:
            FileNotFoundError: If the collection doesn't exist
            RuntimeError: If it cannot be opened
        """

    @abstractmethod
    async def delete_all(self) -> int:
        """Remove every record. Returns the number removed."""

    @abstractmethod
    async def insert_batch(self, records: Sequence[IndexRecord]) -> None:
        """Insert records; all of them or none.

        Raises:
            ValueError: If any embedding dimension differs from the store's
        """

    @abstractmethod
    async def similarity_search(
        self, query_vector: Sequence[float], k: int
    ) -> List[Tuple[Document, float]]:
        """Return at most ``k`` documents, most similar first, with cosine scores."""

    @abstractmethod
    async def count(self) -> int:
        """Number of stored records."""

    async def record_ingest_run(self, stats: Dict[str, Any]) -> None:
        """Persist a summary of the run that produced the current contents."""
        return None


def validate_dimensions(
    records: Sequence[IndexRecord], dimension: Optional[int]
) -> Optional[int]:
    """Check that records share one dimension, matching ``dimension`` if set.

    Returns:
        The dimension of the batch (or ``dimension`` for an empty batch)

    Raises:
        ValueError: On any mismatch
    """
    if not records:
        return dimension

    expected = dimension if dimension is not None else records[0].dimension
    if expected == 0:
        raise ValueError("Embeddings must not be empty")

    for record in records:
        if record.dimension != expected:
            raise ValueError(
                f"Embedding dimension mismatch: expected {expected}, "
                f"got {record.dimension} for record {record.id}"
            )

    return expected


def normalize_rows(vectors: np.ndarray) -> np.ndarray:
    """L2-normalise each row so inner product equals cosine similarity."""
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return vectors / norms
