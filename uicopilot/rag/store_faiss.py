"""FAISS vector store for semantic search.

Handles:
- Named collections persisted under the index directory
- Cosine similarity via inner product over normalised vectors
- Record content and metadata in SQLite, keyed by FAISS position
"""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import faiss
import numpy as np
import structlog

from uicopilot import config, db
from uicopilot.rag.documents import Document, IndexRecord
from uicopilot.rag.store import VectorStore, validate_dimensions

logger = structlog.get_logger()


class FAISSVectorStore(VectorStore):
    """FAISS-based vector store with SQLite record storage."""

    def __init__(
        self,
        collection: str = None,
        index_dir: Path = None,
        embedding_model: str = None,
    ):
        """Initialize the FAISS vector store.

        Args:
            collection: Collection name (default from config)
            index_dir: Directory to store index, metadata and records (default from config)
            embedding_model: Embedding model name, recorded alongside the index
        """
        self.collection = collection or config.COLLECTION_NAME
        self.index_dir = Path(index_dir or config.INDEX_DIR)
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL

        self.index_path = self.index_dir / f"{self.collection}.index"
        self.metadata_path = self.index_dir / f"{self.collection}.json"
        self.db_path = self.index_dir / f"{self.collection}.sqlite"

        self.index: Optional[faiss.Index] = None
        self.dimension: Optional[int] = None
        self.metadata: Dict[str, Any] = {}

        logger.info(
            "faiss_store_initialized",
            collection=self.collection,
            index_dir=str(self.index_dir),
        )

    @classmethod
    async def from_existing(
        cls, collection: str = None, index_dir: Path = None, embedding_model: str = None
    ) -> "FAISSVectorStore":
        """Open an existing named collection."""
        store = cls(collection=collection, index_dir=index_dir, embedding_model=embedding_model)
        await store.load()
        return store

    async def load(self) -> None:
        """Load the collection from disk.

        Raises:
            FileNotFoundError: If index files don't exist
            RuntimeError: If loading fails or index and records disagree
        """
        if not self.index_path.exists():
            raise FileNotFoundError(f"Index not found: {self.index_path}")

        if not self.metadata_path.exists():
            raise FileNotFoundError(f"Metadata not found: {self.metadata_path}")

        try:
            with open(self.metadata_path, "r") as f:
                self.metadata = json.load(f)
        except (OSError, ValueError) as e:
            raise RuntimeError(f"Failed to load metadata: {e}") from e

        try:
            self.index = faiss.read_index(str(self.index_path))
        except RuntimeError as e:
            raise RuntimeError(f"Failed to load FAISS index: {e}") from e

        self.dimension = self.metadata.get("embedding_dimension") or self.index.d

        db.init_database(self.db_path)
        record_count = db.get_record_count(self.db_path)
        if record_count != self.index.ntotal:
            raise RuntimeError(
                f"Collection {self.collection} is inconsistent: "
                f"{self.index.ntotal} vectors but {record_count} records"
            )

        stored_model = self.metadata.get("embedding_model")
        if stored_model and stored_model != self.embedding_model:
            logger.warning(
                "embedding_model_changed",
                stored_model=stored_model,
                current_model=self.embedding_model,
            )

        logger.info(
            "faiss_index_loaded",
            collection=self.collection,
            dimension=self.dimension,
            vector_count=self.index.ntotal,
        )

    async def save_index(self) -> None:
        """Save FAISS index and metadata to disk.

        Raises:
            RuntimeError: If save fails
        """
        self.index_dir.mkdir(parents=True, exist_ok=True)

        self.metadata = {
            "collection": self.collection,
            "embedding_model": self.embedding_model,
            "embedding_dimension": self.dimension,
            "index_type": "IndexFlatIP",
            "vector_count": self.index.ntotal if self.index is not None else 0,
        }

        try:
            if self.index is not None:
                faiss.write_index(self.index, str(self.index_path))
            with open(self.metadata_path, "w") as f:
                json.dump(self.metadata, f, indent=2)
        except (OSError, RuntimeError) as e:
            raise RuntimeError(f"Failed to save FAISS index: {e}") from e

        logger.info(
            "faiss_index_saved",
            index_path=str(self.index_path),
            vector_count=self.metadata["vector_count"],
        )

    async def delete_all(self) -> int:
        """Clear the collection, on disk and in memory."""
        logger.warning("clearing_collection", collection=self.collection)

        removed = self.index.ntotal if self.index is not None else 0

        self.index = None
        self.dimension = None

        if self.index_path.exists():
            self.index_path.unlink()
            logger.info("deleted_existing_index", path=str(self.index_path))

        if self.metadata_path.exists():
            self.metadata_path.unlink()

        db.init_database(self.db_path)
        removed = max(removed, db.clear_records(self.db_path))

        return removed

    async def insert_batch(self, records: Sequence[IndexRecord]) -> None:
        """Add records to the index and the record table, then persist.

        Raises:
            ValueError: On embedding dimension mismatch
        """
        if not records:
            return

        dimension = validate_dimensions(records, self.dimension)

        vectors = np.array([r.embedding for r in records], dtype=np.float32)
        faiss.normalize_L2(vectors)

        if self.index is None:
            self.index = faiss.IndexFlatIP(dimension)
            self.dimension = dimension
            logger.info("faiss_index_created", dimension=dimension, index_type="IndexFlatIP")

        start_id = self.index.ntotal
        self.index.add(vectors)

        db.init_database(self.db_path)
        try:
            db.insert_records(self.db_path, records, first_vector_id=start_id)
        except Exception:
            # Keep vectors and records aligned
            self.index.remove_ids(np.arange(start_id, self.index.ntotal, dtype=np.int64))
            raise

        await self.save_index()

        logger.info(
            "vectors_added",
            count=len(records),
            total_vectors=self.index.ntotal,
        )

    async def similarity_search(
        self, query_vector: Sequence[float], k: int
    ) -> List[Tuple[Document, float]]:
        """Search for the documents most similar to ``query_vector``.

        Raises:
            ValueError: On query dimension mismatch
        """
        if self.index is None or self.index.ntotal == 0 or k <= 0:
            return []

        query = np.array([query_vector], dtype=np.float32)

        if query.shape[1] != self.dimension:
            raise ValueError(
                f"Query dimension mismatch: expected {self.dimension}, "
                f"got {query.shape[1]}"
            )

        faiss.normalize_L2(query)

        # Ensure we don't request more results than we have
        k = min(k, self.index.ntotal)
        scores, indices = self.index.search(query, k)

        hits = [
            (int(vector_id), float(score))
            for vector_id, score in zip(indices[0].tolist(), scores[0].tolist())
            if vector_id != -1
        ]
        rows = db.get_records_by_vector_ids(self.db_path, [vector_id for vector_id, _ in hits])

        results = []
        for vector_id, score in hits:
            row = rows.get(vector_id)
            if row is None:
                logger.warning("vector_id_without_record", vector_id=vector_id)
                continue
            results.append(
                (
                    Document(id=row["record_id"], content=row["content"], metadata=row["metadata"]),
                    score,
                )
            )

        logger.debug("vector_search_completed", top_k=k, results_found=len(results))

        return results

    async def count(self) -> int:
        return self.index.ntotal if self.index is not None else 0

    async def record_ingest_run(self, stats: Dict[str, Any]) -> None:
        """Store a summary of the ingestion run that produced this collection."""
        db.init_database(self.db_path)
        db.insert_ingest_run(
            self.db_path,
            embedding_model=self.embedding_model,
            embedding_dimension=self.dimension,
            total_documents=stats.get("documents", 0),
            metadata=stats,
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the vector store."""
        if self.index is None:
            return {
                "initialized": False,
                "collection": self.collection,
                "vector_count": 0,
                "dimension": None,
            }

        return {
            "initialized": True,
            "collection": self.collection,
            "vector_count": self.index.ntotal,
            "dimension": self.dimension,
            "embedding_model": self.embedding_model,
            "index_exists_on_disk": self.index_path.exists(),
        }
