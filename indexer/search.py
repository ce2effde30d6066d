# docsift Semantic Search
# Embeds a text query and ranks stored pages by cosine similarity

import asyncio
import logging
import sys
from typing import List

from pipelines.models import SearchHit
from .embeddings import Encoder, EncoderError
from .vector_store import VectorStore, VectorStoreError

logger = logging.getLogger(__name__)


class SemanticSearch:
    """Text query front end over an encoder and a vector store"""

    def __init__(self, encoder: Encoder, store: VectorStore):
        self.encoder = encoder
        self.store = store

    async def query(self, text: str, limit: int = 10) -> List[SearchHit]:
        """Find the stored pages most similar to ``text``.

        Raises:
            ValueError: If the query is empty
            EncoderError: If no query vector could be produced
        """
        if not text or not text.strip():
            raise ValueError("Query cannot be empty")

        result = await self.encoder.extract([text.strip()])
        if not result.vectors or not result.vectors[0]:
            raise EncoderError("Failed to generate query vector")

        return await self.store.search(result.vectors[0], limit)


async def _run_query(db_path: str, model_name: str, text: str, limit: int) -> List[SearchHit]:
    encoder = Encoder()
    encoder.initialize(model_name)
    async with VectorStore(db_path) as store:
        return await SemanticSearch(encoder, store).query(text, limit)


def main():
    """CLI for semantic search"""
    import argparse

    from config.settings import CrawlerSettings
    from observability.logging import setup_logging

    settings = CrawlerSettings.from_env()

    parser = argparse.ArgumentParser(description="docsift semantic search")
    parser.add_argument("query", help="Search text")
    parser.add_argument("--db", default=settings.db_path, help="Database path")
    parser.add_argument("--model", default=settings.model_name, help="Embedding model name")
    parser.add_argument("--limit", type=int, default=5, help="Search result limit")
    args = parser.parse_args()

    setup_logging(level=settings.log_level, use_json=settings.log_json)

    try:
        hits = asyncio.run(_run_query(args.db, args.model, args.query, args.limit))
    except (EncoderError, VectorStoreError, ValueError) as e:
        logger.error(f"Error: {e}")
        sys.exit(1)

    if not hits:
        print("No results found.")
        return

    print(f"\nFound {len(hits)} results:\n")
    for i, hit in enumerate(hits, 1):
        print(f"{i}. {hit.source} (similarity: {hit.similarity})")
        print(f"   {hit.content[:200]}...")
        print()


if __name__ == "__main__":
    main()
