"""Synthetic documents for an Iconify icon catalog.

One small document per icon (and per alias) lets the model look up valid
icon names without relying on full-text search over the markdown docs.
"""
import json
from pathlib import Path
from typing import Any, Dict, List

import structlog

from uicopilot.rag.documents import Document, make_document_id

logger = structlog.get_logger()


def load_icon_catalog(path: Path) -> Dict[str, Any]:
    """Read an Iconify JSON icon set.

    Raises:
        FileNotFoundError: If the catalog file doesn't exist
        ValueError: If the file isn't a valid icon set
    """
    with open(path, "r", encoding="utf-8") as f:
        catalog = json.load(f)

    if not isinstance(catalog, dict) or not isinstance(catalog.get("icons"), dict):
        raise ValueError(f"Not an Iconify icon set (missing 'icons'): {path}")

    if not catalog.get("prefix"):
        raise ValueError(f"Icon set has no prefix: {path}")

    return catalog


def describe_icon(collection: str, prefix: str, name: str) -> str:
    """Canonical text for one icon."""
    return (
        f"#{collection} name: '{name}'\n"
        f"Usage: <UIcon name=\"i-{prefix}-{name}\" />"
    )


def build_icon_documents(catalog: Dict[str, Any], source: str) -> List[Document]:
    """Create one document per icon and alias, in catalog order.

    Args:
        catalog: Parsed Iconify icon set
        source: Value of the ``source`` metadata field

    Returns:
        List of Document objects
    """
    prefix = catalog["prefix"]
    info = catalog.get("info") or {}
    collection = str(info.get("name") or prefix)
    license_info = info.get("license") or {}
    license_title = license_info.get("title") if isinstance(license_info, dict) else None

    base_metadata = {
        "source": source,
        "kind": "icon",
        "catalog": prefix,
        "collection": collection,
        "license": license_title,
    }

    entries = [(name, None) for name in catalog["icons"]]
    entries += [
        (name, (alias or {}).get("parent"))
        for name, alias in (catalog.get("aliases") or {}).items()
    ]

    documents = []
    for name, parent in entries:
        metadata = dict(base_metadata, icon=name)
        if parent:
            metadata["alias_of"] = parent

        documents.append(
            Document(
                id=make_document_id(source, prefix, name),
                content=describe_icon(collection, prefix, name),
                metadata=metadata,
            )
        )

    logger.info(
        "icon_documents_built",
        catalog=prefix,
        icons=len(catalog["icons"]),
        total=len(documents),
    )

    return documents
