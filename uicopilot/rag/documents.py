"""Document and index record types shared by ingestion and retrieval."""
import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

Scalar = Optional[Union[str, int, float, bool]]


@dataclass(frozen=True)
class Document:
    """A passage of text with scalar metadata."""

    id: str
    content: str
    metadata: Dict[str, Scalar] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize in the shape clients receive in ``sourceDocs``."""
        return {
            "id": self.id,
            "pageContent": self.content,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class IndexRecord:
    """A document together with its embedding, as persisted by a vector store."""

    id: str
    embedding: Tuple[float, ...]
    content: str
    metadata: Dict[str, Scalar] = field(default_factory=dict)

    @property
    def dimension(self) -> int:
        return len(self.embedding)

    @classmethod
    def from_document(cls, document: Document, embedding) -> "IndexRecord":
        return cls(
            id=document.id,
            embedding=tuple(float(x) for x in embedding),
            content=document.content,
            metadata=dict(document.metadata),
        )

    def to_document(self) -> Document:
        return Document(id=self.id, content=self.content, metadata=dict(self.metadata))


def make_document_id(*parts: Any) -> str:
    """Build a stable id from the given parts."""
    digest = hashlib.sha1()
    for part in parts:
        digest.update(str(part).encode("utf-8"))
        digest.update(b"\x00")
    return digest.hexdigest()
