"""In-process vector store backed by a numpy matrix."""
from typing import List, Optional, Sequence, Tuple

import numpy as np
import structlog

from uicopilot.rag.documents import Document, IndexRecord
from uicopilot.rag.store import VectorStore, normalize_rows, validate_dimensions

logger = structlog.get_logger()


class MemoryVectorStore(VectorStore):
    """Exact cosine search over records held in memory."""

    def __init__(self):
        self.dimension: Optional[int] = None
        self._records: List[IndexRecord] = []
        self._matrix: Optional[np.ndarray] = None

    async def load(self) -> None:
        # Nothing to connect to
        return None

    async def delete_all(self) -> int:
        removed = len(self._records)
        self._records = []
        self._matrix = None
        self.dimension = None
        logger.info("memory_store_cleared", removed=removed)
        return removed

    async def insert_batch(self, records: Sequence[IndexRecord]) -> None:
        if not records:
            return

        dimension = validate_dimensions(records, self.dimension)

        vectors = normalize_rows(
            np.array([r.embedding for r in records], dtype=np.float32)
        )
        if self._matrix is None:
            self._matrix = vectors
        else:
            self._matrix = np.vstack([self._matrix, vectors])

        self._records.extend(records)
        self.dimension = dimension

        logger.info("memory_store_inserted", count=len(records), total=len(self._records))

    async def similarity_search(
        self, query_vector: Sequence[float], k: int
    ) -> List[Tuple[Document, float]]:
        if self._matrix is None or k <= 0:
            return []

        query = np.array([query_vector], dtype=np.float32)
        if query.shape[1] != self.dimension:
            raise ValueError(
                f"Query dimension mismatch: expected {self.dimension}, "
                f"got {query.shape[1]}"
            )

        scores = self._matrix @ normalize_rows(query)[0]
        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")[:k]

        return [(self._records[i].to_document(), float(scores[i])) for i in order]

    async def count(self) -> int:
        return len(self._records)
