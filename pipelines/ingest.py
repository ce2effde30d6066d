"""Batch ingest pipeline: parse, embed and store crawled pages."""

import asyncio
import gc
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .models import PageResult, StoredEmbedding, generate_id, now_ms

logger = logging.getLogger(__name__)

Transform = Callable[[str], Optional[str]]


@dataclass
class IngestStats:
    """Counters accumulated across every batch a pipeline processes."""
    received: int = 0
    parsed_empty: int = 0
    transform_failed: int = 0
    embed_failed: int = 0
    store_failed: int = 0
    stored: int = 0


class BatchIngestPipeline:
    """Turns PageResults into StoredEmbeddings, one batch at a time.

    Every item in a batch runs concurrently and fails alone: a page whose
    transform raises, whose embedding fails, or whose insert is rejected is
    logged and skipped while its siblings carry on.
    """

    def __init__(self, transform: Transform, encoder, store,
                 id_factory: Callable[[], str] = generate_id,
                 clock: Callable[[], int] = now_ms,
                 reclaim_memory: bool = True):
        """
        Args:
            transform: Maps raw page content to normalized text, or None
            encoder: Object with ``async extract(texts) -> EmbeddingResult``
            store: Object with ``async insert(id, vector, source, content, timestamp)``
            id_factory: Produces a unique id per record
            clock: Returns the record timestamp in epoch milliseconds
            reclaim_memory: Run a garbage collection pass after each batch
        """
        self.transform = transform
        self.encoder = encoder
        self.store = store
        self.id_factory = id_factory
        self.clock = clock
        self.reclaim_memory = reclaim_memory
        self.stats = IngestStats()

    async def _process(self, result: PageResult) -> Optional[StoredEmbedding]:
        try:
            text = self.transform(result.content)
        except Exception as e:
            self.stats.transform_failed += 1
            logger.warning(f"Transform failed for {result.url}: {e}")
            return None

        if not text:
            self.stats.parsed_empty += 1
            logger.debug(f"No content extracted from {result.url}")
            return None

        try:
            embedding = await self.encoder.extract([text])
            vector = embedding.vectors[0]
        except Exception as e:
            self.stats.embed_failed += 1
            logger.warning(f"Embedding failed for {result.url}: {e}")
            return None

        record = StoredEmbedding(
            id=self.id_factory(),
            source=result.url,
            content=text,
            vector=list(vector),
            timestamp=self.clock(),
        )
        try:
            await self.store.insert(record.id, record.vector, record.source,
                                    record.content, record.timestamp)
        except Exception as e:
            self.stats.store_failed += 1
            logger.error(f"Failed to store embedding for {result.url}: {e}")
            return None

        self.stats.stored += 1
        logger.info(f"{record.source} stored successfully")
        return record

    async def ingest(self, results: List[PageResult]) -> List[StoredEmbedding]:
        """Process one batch and return the records that were stored."""
        if not results:
            return []
        self.stats.received += len(results)

        outcomes = await asyncio.gather(*(self._process(r) for r in results),
                                        return_exceptions=True)

        stored = []
        for result, outcome in zip(results, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"Unexpected error ingesting {result.url}: {outcome}")
            elif outcome is not None:
                stored.append(outcome)

        logger.info(f"Ingested batch: {len(stored)}/{len(results)} pages stored")
        if self.reclaim_memory:
            gc.collect()
        return stored
