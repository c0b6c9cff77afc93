"""SQLite helpers for the FAISS-backed vector store.

One database file per collection, holding:
- Record content and metadata keyed by FAISS vector position
- Metadata about ingestion runs
"""
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import structlog

from uicopilot.rag.documents import IndexRecord

logger = structlog.get_logger()


def get_connection(db_path: Path) -> sqlite3.Connection:
    """Get a connection to the SQLite database.

    Returns:
        sqlite3.Connection with row_factory set to sqlite3.Row
    """
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_database(db_path: Path) -> None:
    """Initialize the database schema.

    Creates tables if they don't exist:
    - records: content and metadata for each vector position
    - ingest_runs: tracks ingestion runs and configuration
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    cursor = conn.cursor()

    try:
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS records (
                vector_id INTEGER PRIMARY KEY,
                record_id TEXT NOT NULL,
                content TEXT NOT NULL,
                metadata_json TEXT,
                created_at TEXT NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS ingest_runs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                indexed_at TEXT NOT NULL,
                embedding_model TEXT,
                embedding_dimension INTEGER,
                total_documents INTEGER NOT NULL,
                metadata_json TEXT
            )
        """)

        conn.commit()
        logger.debug("database_initialized", db_path=str(db_path))

    except Exception as e:
        conn.rollback()
        logger.error("database_init_failed", error=str(e), db_path=str(db_path))
        raise
    finally:
        conn.close()


def insert_records(
    db_path: Path, records: Sequence[IndexRecord], first_vector_id: int
) -> None:
    """Insert records in one transaction, numbering them from ``first_vector_id``."""
    conn = get_connection(db_path)
    now = datetime.now(timezone.utc).isoformat()

    try:
        conn.executemany(
            """
            INSERT INTO records (vector_id, record_id, content, metadata_json, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            [
                (
                    first_vector_id + offset,
                    record.id,
                    record.content,
                    json.dumps(record.metadata) if record.metadata else None,
                    now,
                )
                for offset, record in enumerate(records)
            ],
        )
        conn.commit()

    except Exception as e:
        conn.rollback()
        logger.error("records_insert_failed", error=str(e), count=len(records))
        raise
    finally:
        conn.close()


def get_records_by_vector_ids(db_path: Path, vector_ids: List[int]) -> Dict[int, Dict[str, Any]]:
    """Retrieve records by their FAISS vector positions.

    Returns:
        Mapping of vector_id to row dict with parsed ``metadata``
    """
    if not vector_ids:
        return {}

    conn = get_connection(db_path)

    try:
        placeholders = ",".join("?" * len(vector_ids))
        rows = conn.execute(
            f"""
            SELECT vector_id, record_id, content, metadata_json
            FROM records
            WHERE vector_id IN ({placeholders})
            """,
            vector_ids,
        ).fetchall()

        records = {}
        for row in rows:
            record = dict(row)
            record["metadata"] = json.loads(record["metadata_json"]) if record["metadata_json"] else {}
            records[record["vector_id"]] = record

        return records

    except Exception as e:
        logger.error("records_retrieval_failed", error=str(e))
        raise
    finally:
        conn.close()


def clear_records(db_path: Path) -> int:
    """Delete all records.

    Returns:
        Number of records deleted
    """
    conn = get_connection(db_path)

    try:
        count = conn.execute("SELECT COUNT(*) FROM records").fetchone()[0]
        conn.execute("DELETE FROM records")
        conn.commit()

        logger.info("records_cleared", count=count)
        return count

    except Exception as e:
        conn.rollback()
        logger.error("records_clear_failed", error=str(e))
        raise
    finally:
        conn.close()


def get_record_count(db_path: Path) -> int:
    """Get the total number of records in the database."""
    conn = get_connection(db_path)

    try:
        return conn.execute("SELECT COUNT(*) FROM records").fetchone()[0]
    except Exception as e:
        logger.error("record_count_failed", error=str(e))
        raise
    finally:
        conn.close()


def insert_ingest_run(
    db_path: Path,
    embedding_model: Optional[str],
    embedding_dimension: Optional[int],
    total_documents: int,
    metadata: Optional[Dict[str, Any]] = None,
) -> int:
    """Record a completed ingestion run.

    Returns:
        ID of the inserted row
    """
    conn = get_connection(db_path)

    try:
        cursor = conn.execute(
            """
            INSERT INTO ingest_runs (
                indexed_at, embedding_model, embedding_dimension,
                total_documents, metadata_json
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                datetime.now(timezone.utc).isoformat(),
                embedding_model,
                embedding_dimension,
                total_documents,
                json.dumps(metadata) if metadata else None,
            ),
        )
        conn.commit()
        row_id = cursor.lastrowid
        logger.info("ingest_run_recorded", id=row_id, total_documents=total_documents)
        return row_id

    except Exception as e:
        conn.rollback()
        logger.error("ingest_run_insert_failed", error=str(e))
        raise
    finally:
        conn.close()


def get_latest_ingest_run(db_path: Path) -> Optional[Dict[str, Any]]:
    """Get the most recent ingestion run, or None if there was none."""
    conn = get_connection(db_path)

    try:
        row = conn.execute(
            "SELECT * FROM ingest_runs ORDER BY id DESC LIMIT 1"
        ).fetchone()

        if row is None:
            return None

        run = dict(row)
        run["metadata"] = json.loads(run["metadata_json"]) if run["metadata_json"] else {}
        return run

    except Exception as e:
        logger.error("ingest_run_retrieval_failed", error=str(e))
        raise
    finally:
        conn.close()
