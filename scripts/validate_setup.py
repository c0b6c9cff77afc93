#!/usr/bin/env python
"""Check that the copilot can run: dependencies, content, Ollama models and the index.

Exits non-zero when any check fails. Warnings do not affect the exit code.
"""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"

REQUIRED_MODULES = {
    "quart": "web app and SSE",
    "hypercorn": "ASGI server",
    "httpx": "Ollama HTTP calls",
    "pydantic": "request bodies",
    "structlog": "logging",
    "numpy": "in-memory vectors",
    "faiss": "persistent index",
    "yaml": "markdown frontmatter",
    "watchdog": "content watcher",
}


class Report:
    """Collects check outcomes and prints them as they arrive."""

    def __init__(self):
        self.failures = []
        self.warnings = []

    def heading(self, title):
        bar = "-" * 50
        print(f"\n{BLUE}{bar}\n{title}\n{bar}{RESET}")

    def ok(self, msg):
        print(f"  {GREEN}ok{RESET}    {msg}")

    def note(self, msg):
        print(f"        {msg}")

    def warn(self, msg):
        print(f"  {YELLOW}warn{RESET}  {msg}")
        self.warnings.append(msg)

    def fail(self, msg):
        print(f"  {RED}fail{RESET}  {msg}")
        self.failures.append(msg)


def check_modules(report: Report) -> bool:
    report.heading("Python packages")
    if sys.version_info < (3, 10):
        report.fail(f"Python {sys.version.split()[0]} is older than 3.10")

    missing = False
    for module_name, purpose in REQUIRED_MODULES.items():
        try:
            __import__(module_name)
        except ImportError as e:
            report.fail(f"{module_name} ({purpose}): {e}")
            missing = True
        else:
            report.ok(f"{module_name} ({purpose})")
    return not missing


def check_content(report: Report, config) -> None:
    report.heading("Content")
    report.note(f"content dir:  {config.CONTENT_DIR}")
    report.note(f"index dir:    {config.INDEX_DIR} (collection '{config.COLLECTION_NAME}')")
    report.note(f"chunking:     {config.CHUNK_SIZE} chars, {config.CHUNK_OVERLAP} overlap")

    if config.CONTENT_DIR.is_dir():
        report.ok("content directory found")
    else:
        report.fail(f"content directory not found: {config.CONTENT_DIR}")

    if config.ICON_CATALOG_PATH is None:
        report.note("icon catalog disabled")
    elif config.ICON_CATALOG_PATH.exists():
        report.ok(f"icon catalog found: {config.ICON_CATALOG_PATH.name}")
    else:
        report.warn(f"icon catalog not found: {config.ICON_CATALOG_PATH}")


async def check_ollama(report: Report, config) -> None:
    from uicopilot.llm_client import OllamaClient

    report.heading(f"Ollama at {config.OLLAMA_BASE_URL}")
    client = OllamaClient(timeout=5.0)

    try:
        installed = set(await client.list_models())
    except Exception as e:
        report.fail(f"unreachable ({e}); is `ollama serve` running?")
        return

    report.ok(f"reachable, {len(installed)} models installed")
    for role, model in (("chat", config.CHAT_MODEL), ("embedding", config.EMBEDDING_MODEL)):
        if model in installed:
            report.ok(f"{role} model {model}")
        else:
            report.fail(f"{role} model {model} not installed (ollama pull {model})")

    try:
        vector = (await client.embeddings("ping", model=config.EMBEDDING_MODEL)).get("embedding")
    except Exception as e:
        report.fail(f"embedding request failed: {e}")
        return

    if vector:
        report.ok(f"embeddings have {len(vector)} dimensions")
    else:
        report.fail("embedding response had no vector")


async def check_index(report: Report) -> None:
    from uicopilot.rag.store_faiss import FAISSVectorStore

    store = FAISSVectorStore()
    report.heading(f"Index '{store.collection}'")

    try:
        await store.load()
    except FileNotFoundError:
        report.warn("not built yet; run scripts/reindex.py")
        return
    except Exception as e:
        report.fail(f"could not be loaded: {e}")
        return

    report.ok(f"{store.get_stats()['vector_count']} vectors")


async def main() -> Report:
    report = Report()

    if check_modules(report):
        from uicopilot import config

        check_content(report, config)
        await check_ollama(report, config)
        await check_index(report)

    report.heading("Result")
    if report.failures:
        print(f"{RED}{len(report.failures)} check(s) failed{RESET}")
        for failure in report.failures:
            print(f"  - {failure}")
    else:
        print(f"{GREEN}Ready{RESET}")
    if report.warnings:
        print(f"{YELLOW}{len(report.warnings)} warning(s){RESET}")

    return report


if __name__ == "__main__":
    result = asyncio.run(main())
    sys.exit(1 if result.failures else 0)
