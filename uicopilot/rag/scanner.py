"""Corpus scanner: recursive discovery of source documents on the content tree."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping

import structlog

logger = structlog.get_logger()

# Extension -> document kind
DEFAULT_EXTENSIONS: Mapping[str, str] = {
    ".md": "markdown",
    ".vue": "example",
}


@dataclass(frozen=True)
class SourceFile:
    """A recognised file and its raw text."""

    path: Path
    content: str
    kind: str


def scan_corpus(
    root: Path, extensions: Mapping[str, str] = DEFAULT_EXTENSIONS
) -> Iterator[SourceFile]:
    """Discover every recognised file under ``root``.

    The root is checked immediately; the walk itself is lazy and depth-first,
    visiting directory entries in sorted order so runs are reproducible.
    Hidden files and directories are ignored.

    Args:
        root: Content tree root
        extensions: Mapping of lowercase extension to document kind

    Returns:
        Iterator of SourceFile

    Raises:
        FileNotFoundError: If root doesn't exist
        NotADirectoryError: If root is not a directory
    """
    root = Path(root)

    if not root.exists():
        raise FileNotFoundError(f"Content directory not found: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Content root is not a directory: {root}")

    logger.info("corpus_scan_started", root=str(root), extensions=sorted(extensions))

    return _walk(root, extensions)


def _walk(directory: Path, extensions: Mapping[str, str]) -> Iterator[SourceFile]:
    try:
        entries = sorted(os.scandir(directory), key=lambda e: e.name)
    except OSError as e:
        logger.warning("source_directory_unreadable", path=str(directory), error=str(e))
        return

    for entry in entries:
        if entry.name.startswith("."):
            continue

        path = Path(entry.path)

        if entry.is_dir(follow_symlinks=False):
            yield from _walk(path, extensions)
            continue

        kind = extensions.get(path.suffix.lower())
        if kind is None:
            continue

        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(
                "source_file_unreadable",
                path=str(path),
                error=str(e),
                error_type=type(e).__name__,
            )
            continue

        yield SourceFile(path=path, content=content, kind=kind)
