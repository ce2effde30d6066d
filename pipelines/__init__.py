"""Pipelines package for docsift.

Provides crawling, link discovery, frontier management and batch ingestion.
"""

from .crawler import Crawler, crawl_site
from .fetcher import Fetcher, FetchError, FetchErrorKind
from .frontier import Frontier
from .ingest import BatchIngestPipeline, IngestStats
from .links import extract_links, is_crawlable, is_same_host
from .models import (
    CrawlState,
    CrawlStats,
    EmbeddingResult,
    FrontierItem,
    PageResult,
    SearchHit,
    StoredEmbedding,
    generate_id
)

__all__ = [
    # Crawler
    'Crawler',
    'crawl_site',
    'CrawlState',
    'CrawlStats',

    # Fetcher
    'Fetcher',
    'FetchError',
    'FetchErrorKind',

    # Frontier and links
    'Frontier',
    'FrontierItem',
    'extract_links',
    'is_crawlable',
    'is_same_host',

    # Ingest
    'BatchIngestPipeline',
    'IngestStats',
    'PageResult',
    'StoredEmbedding',
    'EmbeddingResult',
    'SearchHit',
    'generate_id'
]
