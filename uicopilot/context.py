"""Application-scoped collaborators shared by the web app and scripts."""
from dataclasses import dataclass

from uicopilot import config
from uicopilot.llm_client import OllamaClient
from uicopilot.rag.chat import ChatOrchestrator
from uicopilot.rag.ingest import IngestPipeline
from uicopilot.rag.providers import (
    EmbeddingProvider,
    LanguageModel,
    OllamaChatModel,
    OllamaEmbeddings,
)
from uicopilot.rag.retriever import RetrieverHandle, default_retriever_factory
from uicopilot.rag.store import VectorStore
from uicopilot.rag.store_faiss import FAISSVectorStore


@dataclass
class AppContext:
    """Everything a request needs; the vector store is shared by reads and ingestion."""

    client: OllamaClient
    embedder: EmbeddingProvider
    llm: LanguageModel
    vector_store: VectorStore
    retriever_handle: RetrieverHandle
    ingest_pipeline: IngestPipeline
    orchestrator: ChatOrchestrator


def build_context(
    client: OllamaClient = None,
    embedder: EmbeddingProvider = None,
    llm: LanguageModel = None,
    condense_llm: LanguageModel = None,
    vector_store: VectorStore = None,
    **pipeline_options,
) -> AppContext:
    """Wire the default collaborators, replacing any that are passed in."""
    client = client or OllamaClient()
    embedder = embedder or OllamaEmbeddings(client=client)
    llm = llm or OllamaChatModel(
        client=client,
        temperature=config.CHAT_TEMPERATURE,
        max_tokens=config.CHAT_MAX_TOKENS,
    )
    condense_llm = condense_llm or OllamaChatModel(
        client=client, model=config.CONDENSE_MODEL, temperature=0.0
    )
    vector_store = vector_store or FAISSVectorStore()

    retriever_handle = RetrieverHandle(
        default_retriever_factory(vector_store, embedder, top_k=config.RETRIEVAL_TOP_K)
    )

    return AppContext(
        client=client,
        embedder=embedder,
        llm=llm,
        vector_store=vector_store,
        retriever_handle=retriever_handle,
        ingest_pipeline=IngestPipeline(
            embedder=embedder, vector_store=vector_store, **pipeline_options
        ),
        orchestrator=ChatOrchestrator(
            retriever_handle=retriever_handle,
            llm=llm,
            condense_llm=condense_llm,
            preview_path=config.PREVIEW_FILE,
        ),
    )
