"""Shared data types for the docsift crawl and ingest pipelines."""

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional


class CrawlState(str, Enum):
    """Lifecycle of a single crawl run."""
    IDLE = "idle"
    RUNNING = "running"
    DRAINING = "draining"
    DONE = "done"


@dataclass(frozen=True)
class FrontierItem:
    """A discovered URL together with the depth it was discovered at."""
    url: str
    depth: int = 0

    def __post_init__(self):
        if self.depth < 0:
            raise ValueError("Depth must be non-negative")


@dataclass
class PageResult:
    """Raw content of one successfully fetched page."""
    url: str
    content: str


@dataclass(frozen=True)
class StoredEmbedding:
    """An embedding record as persisted in the vector store."""
    id: str
    source: str
    content: str
    vector: List[float]
    timestamp: int


@dataclass
class SearchHit:
    """A single ranked result from a similarity search."""
    id: str
    source: str
    content: str
    timestamp: int
    distance: float
    similarity: int


@dataclass
class EmbeddingResult:
    """Output of an encoder extraction call."""
    vectors: List[List[float]]
    dimensions: int
    count: int


@dataclass
class CrawlStats:
    """Statistics for a crawl run."""
    seed_url: str = ""
    fetched: int = 0
    failed: int = 0
    links_enqueued: int = 0
    evicted: int = 0
    stored: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def __post_init__(self):
        if self.start_time is None:
            self.start_time = datetime.utcnow()

    @property
    def duration(self) -> Optional[timedelta]:
        if self.end_time and self.start_time:
            return self.end_time - self.start_time
        return None

    def finish(self):
        """Mark crawl as finished."""
        self.end_time = datetime.utcnow()


def generate_id() -> str:
    """Return a fresh random identifier for a stored embedding."""
    return uuid.uuid4().hex


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)
