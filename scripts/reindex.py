#!/usr/bin/env python
"""Rebuild the UI copilot index from the content tree.

Every run is a full refresh: the collection is emptied and refilled from the
current markdown docs, UI examples and icon catalog.

Usage:
    python scripts/reindex.py                     # Rebuild the default collection
    python scripts/reindex.py --content-dir docs  # Index another content tree
    python scripts/reindex.py --no-icons          # Skip the icon catalog
"""
import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from uicopilot import config
from uicopilot.errors import IngestError
from uicopilot.rag.ingest import IngestPipeline
from uicopilot.rag.store_faiss import FAISSVectorStore

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self):
        self.start_time = None

    def start(self, message: str):
        """Start progress reporting."""
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int):
        """Update the embedding progress bar."""
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        print(f"\r  [{bar}] {percentage:5.1f}% ({current}/{total})", end="", flush=True)

    def finish(self, stats: dict, store: FAISSVectorStore):
        """Finish progress reporting."""
        print("\n")  # New line after progress bar
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print("  Indexing Complete!")
        print(f"{'=' * 60}\n")
        print(f"  📁 Files scanned:        {stats['files_scanned']}")
        print(f"  📝 Markdown chunks:      {stats['chunks_created']} from {stats['markdown_files']} files")
        print(f"  🧩 UI examples:          {stats['example_files']}")
        print(f"  🎨 Icon entries:         {stats['catalog_entries']}")
        print(f"  🗑️  Documents removed:    {stats['documents_removed']}")
        print(f"  🧮 Embeddings generated: {stats['embeddings_generated']}")
        print(f"  ⏱️  Time elapsed:         {elapsed_seconds:.1f}s")

        if stats["documents"] > 0 and elapsed_seconds > 0:
            rate = stats["documents"] / elapsed_seconds
            print(f"  ⚡ Indexing rate:        {rate:.1f} documents/sec")

        print(f"\n{'=' * 60}\n")

        if stats["documents"] > 0:
            print(f"✅ Index ready at: {store.index_path}")
            print(f"✅ Records at: {store.db_path}\n")
        else:
            print("⚠️  Warning: no documents were found; the collection is empty.\n")


async def main():
    """Main entry point for reindex script."""
    parser = argparse.ArgumentParser(
        description="Rebuild the UI copilot index (full refresh)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/reindex.py                     # Rebuild the default collection
  python scripts/reindex.py --content-dir docs  # Index another content tree
  python scripts/reindex.py --no-icons          # Skip the icon catalog
        """,
    )

    parser.add_argument(
        "--content-dir",
        type=Path,
        default=None,
        help=f"Content directory (default: {config.CONTENT_DIR})",
    )

    parser.add_argument(
        "--collection",
        default=None,
        help=f"Collection name (default: {config.COLLECTION_NAME})",
    )

    parser.add_argument(
        "--no-icons",
        action="store_true",
        help="Don't add documents for the icon catalog",
    )

    args = parser.parse_args()

    progress = ProgressReporter()

    try:
        # Display configuration
        print("\n📋 Configuration:")
        print(f"   Content directory: {args.content_dir or config.CONTENT_DIR}")
        print(f"   Icon catalog:      {None if args.no_icons else config.ICON_CATALOG_PATH}")
        print(f"   Collection:        {args.collection or config.COLLECTION_NAME}")
        print(f"   Embedding model:   {config.EMBEDDING_MODEL}")
        print(f"   Chunk size:        {config.CHUNK_SIZE} chars")
        print(f"   Chunk overlap:     {config.CHUNK_OVERLAP} chars")

        store = FAISSVectorStore(collection=args.collection)
        pipeline = IngestPipeline(
            vector_store=store,
            content_dir=args.content_dir,
            catalog_path=None if args.no_icons else config.ICON_CATALOG_PATH,
        )

        progress.start("Rebuilding Index")

        stats = await pipeline.ingest(progress_callback=progress.update)

        progress.finish(stats, store)

    except KeyboardInterrupt:
        print("\n\n⚠️  Indexing cancelled by user.\n")
        sys.exit(1)

    except IngestError as e:
        print(f"\n❌ Error during {e.stage}: {e.message}\n")
        sys.exit(1)

    except Exception as e:
        print(f"\n❌ Error: {e}\n")
        logger.error("reindex_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
