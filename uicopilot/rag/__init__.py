"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Content discovery and markdown splitting
- Icon catalog documents
- Embedding and language model providers
- Vector stores (FAISS on disk, numpy in memory)
- Full-refresh ingestion and file watching
- Semantic retrieval, prompt composition and chat orchestration
"""
