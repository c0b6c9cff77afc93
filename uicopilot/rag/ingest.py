"""Ingest pipeline: full refresh of the vector store from the content tree.

Orchestrates:
- File discovery
- Markdown splitting and annotation
- Whole-file UI examples
- Synthetic icon catalog documents
- Embedding generation and store replacement
"""
import asyncio
import dataclasses
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog

from uicopilot import config
from uicopilot.errors import IngestError, IngestInProgressError
from uicopilot.rag.catalog import build_icon_documents, load_icon_catalog
from uicopilot.rag.documents import Document, IndexRecord, make_document_id
from uicopilot.rag.md_parser import MarkdownParser
from uicopilot.rag.providers import EmbeddingProvider, OllamaEmbeddings
from uicopilot.rag.scanner import SourceFile, scan_corpus
from uicopilot.rag.splitter import MarkdownSplitter, chunk_stats
from uicopilot.rag.store import VectorStore
from uicopilot.rag.store_faiss import FAISSVectorStore

logger = structlog.get_logger()


class IngestPipeline:
    """Pipeline that rebuilds the whole index from the current corpus snapshot.

    Runs are not reentrant: a second ``ingest()`` while one is active is
    rejected. Reads are not blocked, so queries during a run may see a
    transiently empty or partial store.
    """

    def __init__(
        self,
        embedder: Optional[EmbeddingProvider] = None,
        vector_store: Optional[VectorStore] = None,
        content_dir: Path = None,
        catalog_path: Optional[Path] = config.ICON_CATALOG_PATH,
        chunk_size: int = None,
        chunk_overlap: int = None,
        batch_size: int = None,
    ):
        """Initialize the ingest pipeline.

        Args:
            embedder: Embedding provider (default: Ollama)
            vector_store: Store to replace (default: FAISS collection from config)
            content_dir: Content tree root (default from config)
            catalog_path: Iconify JSON icon set, or None to skip icons
            chunk_size: Chunk size in characters (default from config)
            chunk_overlap: Chunk overlap in characters (default from config)
            batch_size: Number of texts per embedding request
        """
        self.embedder = embedder or OllamaEmbeddings()
        self.vector_store = vector_store or FAISSVectorStore()
        self.content_dir = Path(content_dir or config.CONTENT_DIR)
        self.catalog_path = Path(catalog_path) if catalog_path else None
        self.batch_size = batch_size or config.EMBED_BATCH_SIZE

        self.parser = MarkdownParser()
        self.splitter = MarkdownSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap)

        self._lock = asyncio.Lock()
        self.stats = self._new_stats()

        logger.info(
            "ingest_pipeline_initialized",
            content_dir=str(self.content_dir),
            catalog_path=str(self.catalog_path) if self.catalog_path else None,
            chunk_size=self.splitter.chunk_size,
            chunk_overlap=self.splitter.chunk_overlap,
        )

    @staticmethod
    def _new_stats() -> Dict[str, Any]:
        return {
            "files_scanned": 0,
            "markdown_files": 0,
            "example_files": 0,
            "chunks_created": 0,
            "catalog_entries": 0,
            "documents": 0,
            "embeddings_generated": 0,
            "documents_removed": 0,
        }

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def _run_stage(self, stage: str, func: Callable, *args):
        """Run one synchronous stage, turning its failure into IngestError."""
        try:
            return func(*args)
        except IngestError:
            raise
        except Exception as e:
            logger.error(
                "ingest_stage_failed",
                stage=stage,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise IngestError(f"Ingestion failed during {stage}: {e}", stage=stage) from e

    def _source_name(self, path: Path) -> str:
        try:
            return path.relative_to(self.content_dir).as_posix()
        except ValueError:
            return path.as_posix()

    def scan_sources(self) -> List[SourceFile]:
        """Discover all recognised files in the content tree.

        Raises:
            FileNotFoundError: If the content directory doesn't exist
        """
        files = list(scan_corpus(self.content_dir))
        self.stats["files_scanned"] = len(files)

        logger.info(
            "source_files_discovered",
            count=len(files),
            content_dir=str(self.content_dir),
        )

        return files

    def split_markdown(self, files: Sequence[SourceFile]) -> List[Document]:
        """Split every markdown file into annotated chunks."""
        documents = []

        for source_file in files:
            if source_file.kind != "markdown":
                continue

            if not source_file.content.strip():
                logger.warning("empty_source_file", path=str(source_file.path))
                continue

            source = self._source_name(source_file.path)
            parsed = self.parser.parse_text(source_file.content, source_file.path)
            chunks = self.splitter.split(
                source_file.content, {"source": source, "kind": "markdown"}
            )

            for chunk in chunks:
                annotations = self.parser.get_metadata_for_chunk(
                    parsed, chunk.metadata["char_start"]
                )
                documents.append(
                    dataclasses.replace(chunk, metadata={**chunk.metadata, **annotations})
                )

            self.stats["markdown_files"] += 1
            logger.debug("markdown_file_split", source=source, **chunk_stats(chunks))

        self.stats["chunks_created"] = len(documents)
        return documents

    def load_examples(self, files: Sequence[SourceFile]) -> List[Document]:
        """Load UI template examples as whole documents (never split)."""
        documents = []

        for source_file in files:
            if source_file.kind != "example":
                continue

            if not source_file.content.strip():
                logger.warning("empty_source_file", path=str(source_file.path))
                continue

            source = self._source_name(source_file.path)
            documents.append(
                Document(
                    id=make_document_id(source),
                    content=source_file.content,
                    metadata={"source": source, "kind": "example"},
                )
            )

        self.stats["example_files"] = len(documents)
        return documents

    def build_catalog(self) -> List[Document]:
        """Synthesise one document per icon catalog entry."""
        if self.catalog_path is None:
            return []

        if not self.catalog_path.exists():
            logger.warning("icon_catalog_missing", path=str(self.catalog_path))
            return []

        catalog = load_icon_catalog(self.catalog_path)
        documents = build_icon_documents(catalog, source=self.catalog_path.name)

        self.stats["catalog_entries"] = len(documents)
        return documents

    async def generate_embeddings(
        self,
        texts: List[str],
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> List[List[float]]:
        """Generate embeddings in batches.

        Raises:
            RuntimeError: If the provider returns the wrong number of vectors
        """
        embeddings: List[List[float]] = []

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            batch_embeddings = await self.embedder.embed_batch(batch)

            if len(batch_embeddings) != len(batch):
                raise RuntimeError(
                    f"Embedding provider returned {len(batch_embeddings)} vectors "
                    f"for {len(batch)} texts"
                )

            embeddings.extend(batch_embeddings)
            self.stats["embeddings_generated"] = len(embeddings)

            if progress_callback:
                progress_callback(len(embeddings), len(texts))

            logger.debug(
                "embeddings_batch_generated",
                batch_size=len(batch),
                total_so_far=len(embeddings),
            )

        return embeddings

    async def replace_store(
        self,
        documents: Sequence[Document],
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> None:
        """Delete everything in the store, then embed and insert ``documents``.

        A failure after the delete leaves the store empty until the next run.
        """
        try:
            self.stats["documents_removed"] = await self.vector_store.delete_all()

            embeddings = await self.generate_embeddings(
                [doc.content for doc in documents], progress_callback
            )
            records = [
                IndexRecord.from_document(doc, embedding)
                for doc, embedding in zip(documents, embeddings)
            ]
            await self.vector_store.insert_batch(records)

        except Exception as e:
            logger.error(
                "ingest_stage_failed",
                stage="replace",
                error=str(e),
                error_type=type(e).__name__,
                documents=len(documents),
            )
            raise IngestError(f"Ingestion failed during replace: {e}", stage="replace") from e

    async def ingest(
        self, progress_callback: Optional[Callable[[int, int], None]] = None
    ) -> Dict[str, Any]:
        """Rebuild the store from the current corpus.

        Args:
            progress_callback: Optional callback function(embedded, total)

        Returns:
            Dictionary with ingestion statistics

        Raises:
            IngestInProgressError: If another run is active
            IngestError: If any stage fails (not retried)
        """
        if self._lock.locked():
            logger.warning("ingest_already_running")
            raise IngestInProgressError()

        async with self._lock:
            self.stats = self._new_stats()
            logger.info("ingest_started", content_dir=str(self.content_dir))

            files = self._run_stage("scan", self.scan_sources)
            markdown_docs = self._run_stage("split", self.split_markdown, files)
            example_docs = self._run_stage("examples", self.load_examples, files)
            catalog_docs = self._run_stage("catalog", self.build_catalog)

            documents = markdown_docs + example_docs + catalog_docs
            self.stats["documents"] = len(documents)

            if not documents:
                logger.warning("no_documents_found", content_dir=str(self.content_dir))

            await self.replace_store(documents, progress_callback)

            try:
                await self.vector_store.record_ingest_run(dict(self.stats))
            except Exception as e:
                # The index itself is complete at this point
                logger.warning("ingest_run_record_failed", error=str(e))

            logger.info("ingest_completed", stats=self.stats)

            return dict(self.stats)

