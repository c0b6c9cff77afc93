"""Tests for debounced re-ingestion on content changes."""
import asyncio

from watchdog.events import DirModifiedEvent, FileModifiedEvent, FileMovedEvent

from uicopilot.errors import IngestError, IngestInProgressError
from uicopilot.rag.watcher import ContentChangeHandler, ContentWatcher


class CountingPipeline:
    def __init__(self, failures=()):
        self.failures = list(failures)
        self.runs = 0

    async def ingest(self):
        self.runs += 1
        if self.failures:
            raise self.failures.pop(0)
        return {"documents": 4}


def _handler(pipeline, on_ingested=None):
    return ContentChangeHandler(
        ingest_pipeline=pipeline,
        loop=asyncio.get_running_loop(),
        debounce_seconds=0.05,
        on_ingested=on_ingested,
    )


async def test_burst_of_changes_triggers_one_run():
    pipeline = CountingPipeline()
    handler = _handler(pipeline)

    for _ in range(5):
        handler.on_any_event(FileModifiedEvent("/content/button.md"))
        await asyncio.sleep(0.01)
    await asyncio.sleep(0.3)

    assert pipeline.runs == 1


async def test_unrelated_files_are_ignored():
    pipeline = CountingPipeline()
    handler = _handler(pipeline)

    handler.on_any_event(FileModifiedEvent("/content/notes.txt"))
    handler.on_any_event(DirModifiedEvent("/content/components"))
    await asyncio.sleep(0.2)

    assert pipeline.runs == 0


async def test_rename_to_markdown_counts():
    pipeline = CountingPipeline()
    handler = _handler(pipeline)

    handler.on_any_event(FileMovedEvent("/content/draft.tmp", "/content/card.md"))
    await asyncio.sleep(0.2)

    assert pipeline.runs == 1


async def test_run_in_progress_is_retried():
    pipeline = CountingPipeline(failures=[IngestInProgressError()])
    handler = _handler(pipeline)

    handler.on_any_event(FileModifiedEvent("/content/card.vue"))
    await asyncio.sleep(0.4)

    assert pipeline.runs == 2


async def test_failed_run_is_not_retried():
    pipeline = CountingPipeline(failures=[IngestError("embed failed", stage="replace")])
    handler = _handler(pipeline)

    handler.on_any_event(FileModifiedEvent("/content/card.md"))
    await asyncio.sleep(0.3)

    assert pipeline.runs == 1


async def test_on_ingested_receives_stats():
    received = []

    async def on_ingested(stats):
        received.append(stats)

    handler = _handler(CountingPipeline(), on_ingested=on_ingested)

    handler.on_any_event(FileModifiedEvent("/content/card.md"))
    await asyncio.sleep(0.2)

    assert received == [{"documents": 4}]


async def test_shutdown_cancels_pending_run():
    pipeline = CountingPipeline()
    handler = _handler(pipeline)

    handler.on_any_event(FileModifiedEvent("/content/card.md"))
    await asyncio.sleep(0)
    handler.shutdown()
    await asyncio.sleep(0.2)

    assert pipeline.runs == 0


async def test_watcher_start_and_stop(tmp_path):
    watcher = ContentWatcher(CountingPipeline(), content_dir=tmp_path, debounce_seconds=0.05)

    watcher.start()
    assert watcher.is_alive()

    watcher.stop()
    assert not watcher.is_alive()
