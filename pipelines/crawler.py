"""Web crawler pipeline for docsift.

Breadth-first crawl of a single documentation site under a fixed fetch
concurrency, feeding pages to the batch ingest pipeline as they accumulate.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, List, Optional

from .fetcher import Fetcher, FetchError
from .frontier import DEFAULT_MAX_PENDING, Frontier
from .ingest import BatchIngestPipeline, Transform
from .links import extract_links
from .models import CrawlState, CrawlStats, FrontierItem, PageResult, StoredEmbedding

logger = logging.getLogger(__name__)


class Crawler:
    """Depth-bounded, concurrency-capped site crawler.

    Each call to ``crawl``/``iter_pages``/``run`` builds a fresh ``Frontier``,
    so visited state never leaks between runs. One instance drives one run at
    a time.
    """

    def __init__(self,
                 fetcher,
                 max_depth: int = 3,
                 concurrency: int = 10,
                 batch_size: int = 100,
                 max_pending: int = DEFAULT_MAX_PENDING,
                 on_evict: Optional[Callable[[List[str]], None]] = None):
        """Initialize crawler.

        Args:
            fetcher: Object with ``async fetch(url) -> str`` raising FetchError
            max_depth: Pages discovered at this depth or deeper are fetched
                       but their links are not followed
            concurrency: Maximum fetches in flight per round
            batch_size: Page results buffered before an ingest batch runs
            max_pending: Frontier ceiling applied after every round
            on_evict: Called with URLs dropped by frontier trimming
        """
        if max_depth < 0:
            raise ValueError("max_depth must be non-negative")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.fetcher = fetcher
        self.max_depth = max_depth
        self.concurrency = concurrency
        self.batch_size = batch_size
        self.max_pending = max_pending
        self.on_evict = on_evict

        self.state = CrawlState.IDLE
        self.frontier: Optional[Frontier] = None
        self.stats = CrawlStats()

    async def _visit(self, item: FrontierItem, seed_url: str,
                     frontier: Frontier) -> Optional[PageResult]:
        """Fetch one URL and enqueue its eligible links."""
        try:
            content = await self.fetcher.fetch(item.url)
        except FetchError as e:
            self.stats.failed += 1
            logger.error(f"Abandoning {item.url}: {e}")
            return None

        self.stats.fetched += 1
        if item.depth < self.max_depth:
            try:
                links = extract_links(content, item.url, seed_url)
            except Exception as e:
                logger.warning(f"Failed to extract links from {item.url}: {e}")
                links = []

            added = sum(1 for link in links if frontier.enqueue(link, item.depth + 1))
            self.stats.links_enqueued += added
            logger.debug(f"Found {len(links)} links ({added} new) from {item.url} "
                         f"(depth: {item.depth + 1})")

        return PageResult(url=item.url, content=content)

    async def _rounds(self, seed_url: str) -> AsyncIterator[List[PageResult]]:
        """Yield the successful pages of each fetch round until the frontier empties."""
        if self.state in (CrawlState.RUNNING, CrawlState.DRAINING):
            raise RuntimeError("Crawler is already running")

        frontier = Frontier(max_pending=self.max_pending, on_evict=self.on_evict)
        frontier.enqueue(seed_url, 0)
        self.frontier = frontier
        self.stats = CrawlStats(seed_url=seed_url)
        self.state = CrawlState.IDLE

        logger.info(f"Starting crawl of {seed_url} (max_depth={self.max_depth}, "
                    f"concurrency={self.concurrency}, batch_size={self.batch_size})")

        exhausted = False
        try:
            while frontier.size() > 0:
                self.state = CrawlState.RUNNING
                batch = frontier.dequeue_batch(self.concurrency)

                outcomes = await asyncio.gather(
                    *(self._visit(item, seed_url, frontier) for item in batch),
                    return_exceptions=True
                )

                pages = []
                for item, outcome in zip(batch, outcomes):
                    if isinstance(outcome, BaseException):
                        self.stats.failed += 1
                        logger.error(f"Unexpected error crawling {item.url}: {outcome}")
                    elif outcome is not None:
                        pages.append(outcome)

                yield pages
                frontier.trim()
            exhausted = True
        finally:
            self.stats.evicted = frontier.evicted_count
            if not exhausted:
                self._stop(frontier)

        self.state = CrawlState.DRAINING

    def _stop(self, frontier: Frontier):
        """Release the crawler after its stream was closed or cancelled mid-crawl."""
        self.state = CrawlState.DONE
        self.stats.finish()
        logger.warning(f"Crawl of {self.stats.seed_url} stopped early with "
                       f"{frontier.size()} URLs still pending")

    def _finish(self):
        self.state = CrawlState.DONE
        self.stats.finish()
        logger.info(f"Crawl of {self.stats.seed_url} completed: {self.stats.fetched} fetched, "
                    f"{self.stats.failed} failed, {self.stats.stored} stored, "
                    f"{self.stats.evicted} evicted from frontier")

    async def iter_pages(self, seed_url: str) -> AsyncIterator[PageResult]:
        """Lazily stream every successfully fetched page without ingesting.

        A consumer that stops early should ``aclose()`` the stream so the
        crawler can be run again.
        """
        rounds = self._rounds(seed_url)
        try:
            async for pages in rounds:
                for page in pages:
                    yield page
        finally:
            await rounds.aclose()
        self._finish()

    async def crawl(self, seed_url: str,
                    pipeline: BatchIngestPipeline) -> AsyncIterator[StoredEmbedding]:
        """Crawl from ``seed_url`` and stream the records the pipeline stores."""
        buffer: List[PageResult] = []

        rounds = self._rounds(seed_url)
        try:
            async for pages in rounds:
                buffer.extend(pages)
                while len(buffer) >= self.batch_size:
                    batch = buffer[:self.batch_size]
                    del buffer[:self.batch_size]
                    for record in await pipeline.ingest(batch):
                        self.stats.stored += 1
                        yield record
        finally:
            await rounds.aclose()

        try:
            if buffer:
                batch, buffer = buffer, []
                for record in await pipeline.ingest(batch):
                    self.stats.stored += 1
                    yield record
        finally:
            self._finish()

    async def run(self, seed_url: str,
                  pipeline: Optional[BatchIngestPipeline] = None) -> CrawlStats:
        """Drive a crawl to completion and return its statistics."""
        if pipeline is None:
            async for _ in self.iter_pages(seed_url):
                pass
        else:
            async for _ in self.crawl(seed_url, pipeline):
                pass
        return self.stats


async def crawl_site(seed_url: str,
                     transform: Transform,
                     encoder,
                     store,
                     max_depth: int = 3,
                     concurrency: int = 10,
                     batch_size: int = 100,
                     max_pending: int = DEFAULT_MAX_PENDING,
                     **fetcher_options) -> CrawlStats:
    """Convenience function to crawl and ingest one site.

    Args:
        seed_url: Root URL of the crawl, depth 0
        transform: Per-site parse function
        encoder: Initialized encoder
        store: Initialized vector store
        max_depth: Maximum link depth to follow
        concurrency: Maximum concurrent fetches
        batch_size: Pages per ingest batch
        max_pending: Frontier ceiling
        **fetcher_options: Passed through to ``Fetcher``

    Returns:
        Crawl statistics
    """
    async with Fetcher(**fetcher_options) as fetcher:
        crawler = Crawler(fetcher, max_depth=max_depth, concurrency=concurrency,
                          batch_size=batch_size, max_pending=max_pending)
        pipeline = BatchIngestPipeline(transform, encoder, store)
        return await crawler.run(seed_url, pipeline)
