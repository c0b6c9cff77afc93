"""Markdown annotation for chunk metadata.

Handles:
- YAML frontmatter parsing
- Heading hierarchy extraction
- Per-chunk heading breadcrumbs

Positions are relative to the full file text, front matter included, because
chunks are cut from the full text.
"""
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import structlog
import yaml

logger = structlog.get_logger()

# Front matter fields copied onto chunks
FRONTMATTER_FIELDS = ("title", "description", "category", "tags")


@dataclass
class Heading:
    """Represents a markdown heading with hierarchy."""

    level: int  # 1-6 for h1-h6
    text: str
    char_position: int


@dataclass
class MarkdownDocument:
    """Parsed markdown document with content and metadata."""

    path: Optional[Path]
    content: str
    frontmatter: Dict[str, Any]
    headings: List[Heading]
    body_start: int


class MarkdownParser:
    """Parser for markdown documents with frontmatter support."""

    # Regex for YAML frontmatter (must be at start of file)
    FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*(?:\n|$)", re.DOTALL)

    # Regex for markdown headings
    HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)\s*#*$", re.MULTILINE)

    # Fenced code blocks, whose '#' lines are not headings
    FENCE_PATTERN = re.compile(r"^(```|~~~).*?^\1", re.DOTALL | re.MULTILINE)

    def parse_text(self, content: str, path: Optional[Path] = None) -> MarkdownDocument:
        """Parse markdown text.

        Args:
            content: Full markdown text
            path: Originating file, for logging

        Returns:
            MarkdownDocument with front matter and headings
        """
        frontmatter, body_start = self._parse_frontmatter(content, path)
        headings = self._extract_headings(content, body_start)

        logger.debug(
            "markdown_parsed",
            path=str(path) if path else None,
            has_frontmatter=bool(frontmatter),
            heading_count=len(headings),
        )

        return MarkdownDocument(
            path=path,
            content=content,
            frontmatter=frontmatter,
            headings=headings,
            body_start=body_start,
        )

    def _parse_frontmatter(
        self, content: str, path: Optional[Path]
    ) -> Tuple[Dict[str, Any], int]:
        """Extract YAML frontmatter.

        Returns:
            Tuple of (frontmatter_dict, offset where the body starts)
        """
        match = self.FRONTMATTER_PATTERN.match(content)

        if not match:
            return {}, 0

        yaml_content = match.group(1)
        try:
            frontmatter = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            logger.warning(
                "frontmatter_parse_error",
                path=str(path) if path else None,
                error=str(e),
                yaml_preview=yaml_content[:100],
            )
            frontmatter = None

        if not isinstance(frontmatter, dict):
            frontmatter = {}

        return frontmatter, match.end()

    def _extract_headings(self, content: str, body_start: int) -> List[Heading]:
        """Extract all markdown headings outside front matter and code fences."""
        fenced = [
            (m.start(), m.end())
            for m in self.FENCE_PATTERN.finditer(content, body_start)
        ]

        headings = []
        for match in self.HEADING_PATTERN.finditer(content, body_start):
            position = match.start()
            if any(start <= position < end for start, end in fenced):
                continue

            headings.append(
                Heading(
                    level=len(match.group(1)),
                    text=match.group(2).strip(),
                    char_position=position,
                )
            )

        return headings

    def get_heading_context(self, headings: List[Heading], char_position: int) -> str:
        """Get hierarchical heading context for a given character position.

        Args:
            headings: List of all headings in the document
            char_position: Character position to get context for

        Returns:
            Heading context string like "# Main > ## Sub > ### Detail"
        """
        context_stack: List[Heading] = []

        for heading in headings:
            if heading.char_position > char_position:
                break
            while context_stack and context_stack[-1].level >= heading.level:
                context_stack.pop()
            context_stack.append(heading)

        return " > ".join(f"{'#' * h.level} {h.text}" for h in context_stack)

    def get_metadata_for_chunk(
        self, doc: MarkdownDocument, chunk_start: int
    ) -> Dict[str, Any]:
        """Get scalar metadata for a chunk starting at ``chunk_start``."""
        metadata: Dict[str, Any] = {
            "heading_context": self.get_heading_context(doc.headings, chunk_start),
        }

        for name in FRONTMATTER_FIELDS:
            if name not in doc.frontmatter:
                continue

            value = doc.frontmatter[name]
            if isinstance(value, (list, tuple)):
                value = ", ".join(str(v) for v in value)
            elif hasattr(value, "isoformat"):
                value = value.isoformat()
            elif not isinstance(value, (str, int, float, bool)) and value is not None:
                value = str(value)
            metadata[name] = value

        return metadata
