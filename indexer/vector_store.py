"""SQLite vector store for docsift.

Append-only storage of page embeddings with brute-force cosine ranking.
"""

import logging
import math
import sqlite3
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from pipelines.models import SearchHit

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS embedding (
    id TEXT PRIMARY KEY,
    source TEXT NOT NULL,
    content TEXT NOT NULL,
    vector BLOB NOT NULL,
    dimensions INTEGER NOT NULL,
    timestamp INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_embedding_source ON embedding(source);
"""


class VectorStoreError(Exception):
    """Raised when the vector store rejects an operation."""
    pass


class DimensionMismatchError(VectorStoreError):
    """Raised when a vector's length differs from the stored dimensionality."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Vector dimension mismatch: expected {expected}, got {actual}")


def similarity_from_distance(distance: float) -> int:
    """Convert a cosine distance to an integer percentage, rounding halves up."""
    return int(math.floor((1.0 - distance) * 100 + 0.5))


class VectorStore:
    """Append-only embedding table with nearest-neighbour search."""

    def __init__(self, db_path: str = "docsift.db"):
        self.db_path = db_path
        self.conn: Optional[sqlite3.Connection] = None
        self._dimensions: Optional[int] = None

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def initialize(self):
        """Open the database and ensure the schema exists."""
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.executescript(SCHEMA_SQL)
            self.conn.commit()

            row = self.conn.execute("SELECT dimensions FROM embedding LIMIT 1").fetchone()
            self._dimensions = row['dimensions'] if row else None

            logger.info(f"Vector store initialized: {self.db_path}")
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize vector store: {e}")
            raise VectorStoreError(f"Failed to open vector store {self.db_path}: {e}") from e

    async def close(self):
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("Vector store connection closed")

    def _require_conn(self) -> sqlite3.Connection:
        if self.conn is None:
            raise VectorStoreError("Vector store not initialized. Call initialize() first.")
        return self.conn

    def _check_dimensions(self, size: int):
        if size == 0:
            raise VectorStoreError("Vector cannot be empty")
        if self._dimensions is not None and size != self._dimensions:
            raise DimensionMismatchError(self._dimensions, size)

    @property
    def dimensions(self) -> Optional[int]:
        return self._dimensions

    async def insert(self, id: str, vector: Sequence[float], source: str,
                     content: str, timestamp: int):
        """Append one embedding record.

        Raises:
            DimensionMismatchError: If the vector length differs from stored rows
            VectorStoreError: If the id already exists or the write fails
        """
        conn = self._require_conn()
        array = np.asarray(vector, dtype=np.float32).ravel()
        self._check_dimensions(array.size)

        try:
            conn.execute(
                """
                INSERT INTO embedding (id, source, content, vector, dimensions, timestamp)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (id, source, content, array.tobytes(), int(array.size), int(timestamp))
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise VectorStoreError(f"Embedding id already exists: {id}") from e
        except sqlite3.Error as e:
            conn.rollback()
            raise VectorStoreError(f"Failed to insert embedding {id}: {e}") from e

        if self._dimensions is None:
            self._dimensions = int(array.size)

    async def search(self, query_vector: Sequence[float], k: int = 10) -> List[SearchHit]:
        """Return the ``k`` stored entries closest to ``query_vector``.

        Results are ordered by ascending cosine distance. Zero-length vectors
        on either side are treated as orthogonal (distance 1).

        Raises:
            DimensionMismatchError: If the query length differs from stored rows
        """
        conn = self._require_conn()
        query = np.asarray(query_vector, dtype=np.float32).ravel()
        self._check_dimensions(query.size)
        if k <= 0 or self._dimensions is None:
            return []

        rows = conn.execute(
            "SELECT id, source, content, vector, timestamp FROM embedding"
        ).fetchall()
        if not rows:
            return []

        matrix = np.vstack([np.frombuffer(row['vector'], dtype=np.float32) for row in rows])
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        cosine = np.divide(dots, norms, out=np.zeros_like(dots), where=norms != 0)
        distances = 1.0 - cosine.astype(np.float64)

        order = np.argsort(distances, kind='stable')[:k]
        hits = []
        for index in order:
            row = rows[index]
            distance = float(distances[index])
            hits.append(SearchHit(
                id=row['id'],
                source=row['source'],
                content=row['content'],
                timestamp=row['timestamp'],
                distance=distance,
                similarity=similarity_from_distance(distance),
            ))
        return hits

    async def count(self) -> int:
        """Number of stored embeddings."""
        conn = self._require_conn()
        return conn.execute("SELECT COUNT(*) FROM embedding").fetchone()[0]
