"""Pytest configuration and fixtures for the copilot test suite."""
import asyncio
import hashlib
import json
import re
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from uicopilot.rag.ingest import IngestPipeline
from uicopilot.rag.store_memory import MemoryVectorStore

EMBEDDING_DIMENSION = 64

_WORDS = re.compile(r"[a-z0-9]+")


class FakeEmbeddings:
    """Deterministic hashed bag-of-words embeddings."""

    def __init__(self, dimension: int = EMBEDDING_DIMENSION, fail: bool = False, delay: float = 0.0):
        self.dimension = dimension
        self.fail = fail
        self.delay = delay
        self.calls: List[Sequence[str]] = []

    def vector(self, text: str) -> List[float]:
        vector = [0.0] * self.dimension
        vector[0] = 0.01  # never all zeros
        for word in _WORDS.findall(text.lower()):
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16)
            vector[1 + bucket % (self.dimension - 1)] += 1.0
        return vector

    async def embed(self, text: str) -> List[float]:
        self.calls.append([text])
        if self.fail:
            raise RuntimeError("embedding service down")
        return self.vector(text)

    async def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("embedding service down")
        return [self.vector(text) for text in texts]


class ScriptedLLM:
    """Language model double that emits fixed tokens and records prompts."""

    def __init__(self, tokens: Sequence[str] = ("X", " is", " Y"), fail_after: Optional[int] = None):
        self.tokens = list(tokens)
        self.fail_after = fail_after
        self.prompts: List[str] = []
        self.closed = False

    async def stream(self, prompt: str):
        self.prompts.append(prompt)
        try:
            for i, token in enumerate(self.tokens):
                if self.fail_after is not None and i >= self.fail_after:
                    raise RuntimeError("model crashed")
                yield token
        finally:
            self.closed = True

    async def complete(self, prompt: str, streaming: bool = False, on_token=None) -> str:
        parts = []
        async for token in self.stream(prompt):
            if on_token is not None:
                on_token(token)
            parts.append(token)
        return "".join(parts)


@pytest.fixture
def embedder() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def memory_store() -> MemoryVectorStore:
    return MemoryVectorStore()


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    """Small content tree with markdown docs and a UI example."""
    root = tmp_path / "ui"
    (root / "components").mkdir(parents=True)
    (root / "examples").mkdir()

    (root / "components" / "button.md").write_text(
        "---\ntitle: Button\ntags: [form, action]\n---\n"
        "# Button\n\nUse UButton for actions.\n\n## Sizes\n\nPass size=\"sm\" for a small button.\n",
        encoding="utf-8",
    )
    (root / "components" / "card.md").write_text(
        "# Card\n\nUCard groups content with a header and footer slot.\n",
        encoding="utf-8",
    )
    (root / "examples" / "pricing.vue").write_text(
        "<template>\n  <UCard>\n    <h2>Pricing</h2>\n  </UCard>\n</template>\n",
        encoding="utf-8",
    )

    return root


@pytest.fixture
def icon_catalog(tmp_path: Path) -> Path:
    """Tiny Iconify icon set."""
    path = tmp_path / "heroicons.json"
    path.write_text(
        json.dumps(
            {
                "prefix": "heroicons",
                "info": {"name": "HeroIcons", "license": {"title": "MIT"}},
                "icons": {
                    "academic-cap": {"body": "<path/>"},
                    "arrow-up": {"body": "<path/>"},
                },
                "aliases": {"arrow-top": {"parent": "arrow-up"}},
            }
        ),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def pipeline(embedder, memory_store, content_dir) -> IngestPipeline:
    return IngestPipeline(
        embedder=embedder,
        vector_store=memory_store,
        content_dir=content_dir,
        catalog_path=None,
        chunk_size=200,
        chunk_overlap=20,
        batch_size=2,
    )
