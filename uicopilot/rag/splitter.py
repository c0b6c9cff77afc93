"""Markdown-aware text splitting with overlap for the RAG pipeline.

Implements character-based chunking to avoid tokenizer dependencies. Chunks
are exact slices of the input, so the original text can always be rebuilt
from their positions.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog

from uicopilot import config
from uicopilot.rag.documents import Document, make_document_id

logger = structlog.get_logger()

# (separator, offset of the cut relative to the separator start, min fraction of window)
BOUNDARIES = [
    ("\n#", 1, 0.7),     # before a markdown heading
    ("\n\n", 2, 0.7),    # paragraph / fenced block break
    ("\n", 1, 0.7),
    (". ", 2, 0.7),
    ("! ", 2, 0.7),
    ("? ", 2, 0.7),
    (" ", 1, 0.8),
]


@dataclass
class TextChunk:
    """Represents a chunk of text with position information."""

    content: str
    char_start: int
    char_end: int
    chunk_index: int


class MarkdownSplitter:
    """Character-based splitter that prefers markdown structure for cut points."""

    def __init__(
        self,
        chunk_size: int = None,
        chunk_overlap: int = None,
    ):
        """Initialize the splitter.

        Args:
            chunk_size: Maximum chunk size in characters (default from config)
            chunk_overlap: Overlap between chunks in characters (default from config)
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap

        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")

        if self.chunk_overlap < 0 or self.chunk_overlap >= self.chunk_size:
            raise ValueError(
                f"Overlap ({self.chunk_overlap}) must be non-negative and less than "
                f"chunk size ({self.chunk_size})"
            )

    def chunk_text(self, text: str) -> List[TextChunk]:
        """Split text into overlapping chunks.

        Args:
            text: Text to chunk

        Returns:
            List of TextChunk objects, in text order
        """
        text_length = len(text)

        # Short text is a single chunk, even when empty
        if text_length <= self.chunk_size:
            return [
                TextChunk(
                    content=text,
                    char_start=0,
                    char_end=text_length,
                    chunk_index=0,
                )
            ]

        chunks = []
        chunk_index = 0
        start = 0

        while True:
            end = min(start + self.chunk_size, text_length)

            # Only adjust windows that stop before the end of the text
            if end < text_length:
                end = start + self._find_cut(text[start:end])

            chunks.append(
                TextChunk(
                    content=text[start:end],
                    char_start=start,
                    char_end=end,
                    chunk_index=chunk_index,
                )
            )

            if end >= text_length:
                break

            # Move to next chunk with overlap
            next_start = end - self.chunk_overlap
            if next_start <= start:
                next_start = end
            start = next_start
            chunk_index += 1

        logger.debug(
            "text_chunked",
            text_length=text_length,
            chunk_count=len(chunks),
            avg_chunk_size=sum(len(c.content) for c in chunks) // len(chunks),
        )

        return chunks

    def _find_cut(self, window: str) -> int:
        """Return how many characters of ``window`` to keep.

        The cut must land past the overlap so the next window starts after
        this one.
        """
        for separator, offset, min_fraction in BOUNDARIES:
            position = window.rfind(separator)
            if position == -1:
                continue

            cut = position + offset
            if cut > len(window) * min_fraction and cut > self.chunk_overlap:
                return cut

        return len(window)

    def split(
        self, content: str, base_metadata: Optional[Mapping[str, Any]] = None
    ) -> List[Document]:
        """Split content into chunk documents.

        Each chunk carries ``base_metadata`` plus its index and character span.
        """
        base_metadata = dict(base_metadata or {})
        source = base_metadata.get("source", "")

        documents = []
        for chunk in self.chunk_text(content):
            metadata = dict(base_metadata)
            metadata.update(
                chunk_index=chunk.chunk_index,
                char_start=chunk.char_start,
                char_end=chunk.char_end,
            )
            documents.append(
                Document(
                    id=make_document_id(source, chunk.chunk_index, chunk.content),
                    content=chunk.content,
                    metadata=metadata,
                )
            )

        return documents


def split(
    content: str,
    chunk_size: int,
    overlap: int,
    base_metadata: Optional[Mapping[str, Any]] = None,
) -> List[Document]:
    """Split content into bounded, overlapping chunks (convenience function)."""
    splitter = MarkdownSplitter(chunk_size=chunk_size, chunk_overlap=overlap)
    return splitter.split(content, base_metadata)


def merge_chunks(chunks: Sequence[Document]) -> str:
    """Rebuild the original text from ordered chunks, dropping the overlaps.

    Args:
        chunks: Chunk documents produced by ``split`` for one text, in order

    Returns:
        The reconstructed text
    """
    if not chunks:
        return ""

    parts = [chunks[0].content]
    previous_end = chunks[0].metadata["char_end"]

    for chunk in chunks[1:]:
        overlap = previous_end - chunk.metadata["char_start"]
        parts.append(chunk.content[overlap:])
        previous_end = chunk.metadata["char_end"]

    return "".join(parts)


def chunk_stats(chunks: Sequence[Document]) -> Dict[str, int]:
    """Get statistics about a set of chunks.

    Args:
        chunks: Chunk documents

    Returns:
        Dictionary with chunk statistics
    """
    if not chunks:
        return {
            "chunk_count": 0,
            "total_chars": 0,
            "avg_chunk_size": 0,
            "min_chunk_size": 0,
            "max_chunk_size": 0,
        }

    chunk_sizes = [len(c.content) for c in chunks]

    return {
        "chunk_count": len(chunks),
        "total_chars": sum(chunk_sizes),
        "avg_chunk_size": sum(chunk_sizes) // len(chunks),
        "min_chunk_size": min(chunk_sizes),
        "max_chunk_size": max(chunk_sizes),
    }
