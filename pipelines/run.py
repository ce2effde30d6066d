"""Crawl every enabled documentation source and ingest it into the vector store.

Usage: python -m pipelines.run [source ...]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from config.settings import CrawlerSettings
from indexer.embeddings import Encoder, EncoderError
from indexer.vector_store import VectorStore, VectorStoreError
from observability.logging import setup_logging
from sources.loader import SourceLoader

from .crawler import Crawler
from .fetcher import Fetcher
from .ingest import BatchIngestPipeline
from .models import CrawlStats
from .schemas import SchemaRegistry

logger = logging.getLogger(__name__)


async def run_sources(settings: CrawlerSettings,
                      names: Optional[List[str]] = None) -> List[CrawlStats]:
    """Crawl the selected sources one after another.

    Raises:
        EncoderError: If the embedding model cannot be loaded
        VectorStoreError: If the database cannot be opened
        ValueError: If a requested source does not exist
    """
    loader = SourceLoader(Path(settings.sources_dir) if settings.sources_dir else None)
    sources = loader.get_enabled_sources()
    if names:
        missing = [name for name in names if name not in sources]
        if missing:
            raise ValueError(f"Unknown or disabled sources: {', '.join(missing)}")
        sources = {name: sources[name] for name in names}
    registry = SchemaRegistry.from_sources(sources)

    encoder = Encoder()
    encoder.initialize(settings.model_name)

    all_stats = []
    async with VectorStore(settings.db_path) as store:
        async with Fetcher(request_timeout=settings.request_timeout,
                           max_retries=settings.max_retries,
                           user_agent=settings.user_agent) as fetcher:
            for schema in registry.schemas():
                pipeline = BatchIngestPipeline(schema.parse, encoder, store)
                crawler = Crawler(
                    fetcher,
                    max_depth=min(schema.depth, settings.max_depth),
                    concurrency=sources[schema.name].concurrency or settings.concurrency,
                    batch_size=settings.batch_size,
                    max_pending=settings.max_pending,
                )
                for url in schema.urls:
                    all_stats.append(await crawler.run(url, pipeline))

    return all_stats


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Crawl documentation sources into the vector store")
    parser.add_argument("sources", nargs="*", help="Source names (default: all enabled)")
    parser.add_argument("--db", help="Database path")
    parser.add_argument("--depth", type=int, help="Maximum crawl depth")
    parser.add_argument("--concurrency", type=int, help="Concurrent fetches per round")
    args = parser.parse_args(argv)

    try:
        settings = CrawlerSettings.from_env()
        overrides = {k: v for k, v in {
            'db_path': args.db,
            'max_depth': args.depth,
            'concurrency': args.concurrency,
        }.items() if v is not None}
        if overrides:
            settings = CrawlerSettings(**{**settings.dict(), **overrides})
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(level=settings.log_level, log_file=settings.log_file,
                  use_json=settings.log_json)

    try:
        stats = asyncio.run(run_sources(settings, args.sources))
    except (EncoderError, VectorStoreError, ValueError) as e:
        logger.error(f"Initialization failed: {e}")
        return 1

    total_stored = sum(s.stored for s in stats)
    total_failed = sum(s.failed for s in stats)
    logger.info(f"Done. {len(stats)} seeds crawled, {total_stored} pages stored, "
                f"{total_failed} fetches abandoned")
    return 0


if __name__ == "__main__":
    sys.exit(main())
