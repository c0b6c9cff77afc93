"""File watcher for automatic re-ingestion.

Monitors the content tree and, once changes settle, runs one full-refresh
ingestion. Per-file updates are not attempted; every run rebuilds the index.
"""
import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Optional

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from uicopilot import config
from uicopilot.errors import IngestError, IngestInProgressError
from uicopilot.rag.ingest import IngestPipeline
from uicopilot.rag.scanner import DEFAULT_EXTENSIONS

logger = structlog.get_logger()


class ContentChangeHandler(FileSystemEventHandler):
    """Debounces content changes into full re-ingestion runs."""

    def __init__(
        self,
        ingest_pipeline: IngestPipeline,
        loop: asyncio.AbstractEventLoop,
        debounce_seconds: float = 2.0,
        on_ingested: Optional[Callable[[dict], Awaitable[None]]] = None,
    ):
        """Initialize the handler.

        Args:
            ingest_pipeline: Pipeline to run on changes
            loop: Event loop the pipeline runs on (events arrive on watchdog's thread)
            debounce_seconds: Quiet period before re-ingesting
            on_ingested: Coroutine function called with the stats of each run
        """
        super().__init__()
        self.ingest_pipeline = ingest_pipeline
        self.loop = loop
        self.debounce_seconds = debounce_seconds
        self.on_ingested = on_ingested

        self._last_change_time: Optional[float] = None
        self._pending = None
        self._shutdown = False

    def on_any_event(self, event: FileSystemEvent):
        if event.is_directory or event.event_type in ("opened", "closed", "closed_no_write"):
            return

        paths = [event.src_path, getattr(event, "dest_path", "") or ""]
        if not any(Path(p).suffix.lower() in DEFAULT_EXTENSIONS for p in paths if p):
            return

        logger.info("content_changed", path=event.src_path, event_type=event.event_type)
        self.loop.call_soon_threadsafe(self._schedule)

    def _schedule(self):
        """Record a change; runs on the event loop thread."""
        self._last_change_time = self.loop.time()

        if self._pending is None or self._pending.done():
            self._pending = self.loop.create_task(self._debounced_ingest())

    async def _debounced_ingest(self):
        """Wait for changes to settle, then rebuild the index."""
        while not self._shutdown:
            await asyncio.sleep(self.debounce_seconds)

            # More changes came in during the wait
            if self.loop.time() - self._last_change_time < self.debounce_seconds:
                continue

            try:
                stats = await self.ingest_pipeline.ingest()
            except IngestInProgressError:
                logger.info("reingest_deferred_run_in_progress")
                self._last_change_time = self.loop.time()
                continue
            except IngestError as e:
                logger.error("reingest_failed", error=str(e), stage=e.stage)
                return

            logger.info("reingest_completed", documents=stats["documents"])
            if self.on_ingested is not None:
                await self.on_ingested(stats)
            return

    def shutdown(self):
        """Cancel any pending re-ingestion."""
        self._shutdown = True
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()


class ContentWatcher:
    """Watcher for the content tree."""

    def __init__(
        self,
        ingest_pipeline: IngestPipeline,
        content_dir: Optional[Path] = None,
        debounce_seconds: float = None,
        on_ingested: Optional[Callable[[dict], Awaitable[None]]] = None,
    ):
        self.ingest_pipeline = ingest_pipeline
        self.content_dir = Path(content_dir or ingest_pipeline.content_dir)
        self.debounce_seconds = debounce_seconds or config.WATCH_DEBOUNCE_SECONDS
        self.on_ingested = on_ingested

        self.event_handler: Optional[ContentChangeHandler] = None
        self.observer = None

    def start(self):
        """Start watching; must be called from the running event loop."""
        if self.observer is not None:
            logger.warning("watcher_already_started")
            return

        self.event_handler = ContentChangeHandler(
            ingest_pipeline=self.ingest_pipeline,
            loop=asyncio.get_running_loop(),
            debounce_seconds=self.debounce_seconds,
            on_ingested=self.on_ingested,
        )

        self.observer = Observer()
        self.observer.schedule(self.event_handler, str(self.content_dir), recursive=True)
        self.observer.start()

        logger.info("content_watcher_started", content_dir=str(self.content_dir))

    def stop(self):
        """Stop watching for file changes."""
        if self.observer is None:
            return

        self.observer.stop()
        self.observer.join(timeout=5.0)
        self.event_handler.shutdown()

        self.observer = None
        self.event_handler = None

        logger.info("content_watcher_stopped")

    def is_alive(self) -> bool:
        return self.observer is not None and self.observer.is_alive()
