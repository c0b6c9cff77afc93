"""Application configuration with sensible defaults."""
import os
from pathlib import Path

# Paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = BASE_DIR / "data"
CONTENT_DIR = Path(os.getenv("CONTENT_DIR", str(DATA_DIR / "ui")))
INDEX_DIR = Path(os.getenv("INDEX_DIR", str(DATA_DIR / "index")))

# Supplementary icon catalog (Iconify JSON). Empty string disables it.
_icon_catalog = os.getenv("ICON_CATALOG_PATH", str(DATA_DIR / "icons" / "heroicons.json"))
ICON_CATALOG_PATH = Path(_icon_catalog) if _icon_catalog else None

# Ensure data directory exists
DATA_DIR.mkdir(exist_ok=True)

# Vector store
COLLECTION_NAME = os.getenv("COLLECTION_NAME", "documents")

# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_TIMEOUT = float(os.getenv("OLLAMA_TIMEOUT", "60.0"))
CHAT_MODEL = os.getenv("CHAT_MODEL", "gemma3:12b")
CONDENSE_MODEL = os.getenv("CONDENSE_MODEL", CHAT_MODEL)
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "mxbai-embed-large:latest")
CHAT_TEMPERATURE = float(os.getenv("CHAT_TEMPERATURE", "0.4"))
CHAT_MAX_TOKENS = int(os.getenv("CHAT_MAX_TOKENS", "2500"))

# RAG parameters (character-based to avoid tokenizer inconsistencies)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "3000"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "200"))
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "7"))
MAX_CONTEXT_CHARS = int(os.getenv("MAX_CONTEXT_CHARS", "16000"))
EMBED_BATCH_SIZE = int(os.getenv("EMBED_BATCH_SIZE", "32"))

# Chat behaviour
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "120.0"))  # whole stream
MAX_QUESTION_CHARS = int(os.getenv("MAX_QUESTION_CHARS", "4000"))
CONDENSE_QUESTION = os.getenv("CONDENSE_QUESTION", "false").lower() in ("1", "true", "yes")

# Last generated answer is mirrored here for a live preview page (disabled if unset)
_preview_file = os.getenv("PREVIEW_FILE", "")
PREVIEW_FILE = Path(_preview_file) if _preview_file else None

# Content watcher
WATCH_CONTENT = os.getenv("WATCH_CONTENT", "false").lower() in ("1", "true", "yes")
WATCH_DEBOUNCE_SECONDS = float(os.getenv("WATCH_DEBOUNCE_SECONDS", "2.0"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
