"""Runtime settings for docsift.

Values come from environment variables, falling back to the defaults below.
"""

import os
import logging
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {'1', 'true', 'yes', 'on'}


class CrawlerSettings(BaseModel):
    """Crawl, embedding, storage and logging configuration."""
    db_path: str = Field(default="docsift.db", description="SQLite vector store path")
    model_name: str = Field(default="all-MiniLM-L6-v2", description="Sentence transformer model")

    max_depth: int = Field(default=3, ge=0, description="Maximum link depth followed")
    concurrency: int = Field(default=20, ge=1, description="Concurrent fetches per round")
    batch_size: int = Field(default=100, ge=1, description="Pages per ingest batch")
    max_pending: int = Field(default=10000, ge=1, description="Frontier ceiling")

    request_timeout: float = Field(default=10.0, gt=0, description="Per-attempt timeout in seconds")
    max_retries: int = Field(default=3, ge=0, description="Fetch retries after the first attempt")
    user_agent: str = Field(default="DocSift-Scraper/1.0.0", description="HTTP user agent")

    sources_dir: Optional[str] = Field(default=None, description="Directory of source YAML files")

    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool = Field(default=False, description="Emit JSON log lines")
    log_file: Optional[str] = Field(default=None, description="Optional JSON log file")

    @classmethod
    def from_env(cls) -> 'CrawlerSettings':
        """Create settings from environment variables."""
        return cls(
            db_path=os.getenv('DOCSIFT_DB_PATH', 'docsift.db'),
            model_name=os.getenv('DOCSIFT_MODEL', 'all-MiniLM-L6-v2'),
            max_depth=int(os.getenv('DOCSIFT_MAX_DEPTH', '3')),
            concurrency=int(os.getenv('DOCSIFT_CONCURRENCY', '20')),
            batch_size=int(os.getenv('DOCSIFT_BATCH_SIZE', '100')),
            max_pending=int(os.getenv('DOCSIFT_MAX_PENDING', '10000')),
            request_timeout=float(os.getenv('DOCSIFT_REQUEST_TIMEOUT', '10')),
            max_retries=int(os.getenv('DOCSIFT_MAX_RETRIES', '3')),
            user_agent=os.getenv('DOCSIFT_USER_AGENT', 'DocSift-Scraper/1.0.0'),
            sources_dir=os.getenv('DOCSIFT_SOURCES_DIR'),
            log_level=os.getenv('DOCSIFT_LOG_LEVEL', 'INFO'),
            log_json=_env_bool('DOCSIFT_LOG_JSON', False),
            log_file=os.getenv('DOCSIFT_LOG_FILE'),
        )
