"""Per-site content extraction strategies.

Each documentation site names the CSS selector of its main content container.
A ``ScrapeSchema`` pairs the site's seed URLs with a parse function that turns
raw page HTML into Markdown, or ``None`` when the page has no such container
(navigation and index pages, typically).
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from trafilatura import extract

from sources.loader import SourceConfig

logger = logging.getLogger(__name__)

ParseFunction = Callable[[str], Optional[str]]

# Below this many characters trafilatura output is treated as a miss
MIN_MARKDOWN_CHARS = 40


def selector_parser(selector: str) -> ParseFunction:
    """Build a parse function that converts the first ``selector`` match to Markdown."""

    def parse(content: str) -> Optional[str]:
        soup = BeautifulSoup(content, "html.parser")
        container = soup.select_one(selector)
        if container is None:
            return None

        md = extract(str(container), output_format="markdown", include_links=True,
                     include_tables=True, favor_recall=True)
        if not md or len(md.strip()) < MIN_MARKDOWN_CHARS:
            md = container.get_text("\n")
        md = md.strip()
        return md or None

    return parse


@dataclass
class ScrapeSchema:
    """Seed URLs of one site and the parser for its pages."""
    name: str
    urls: List[str]
    parse: ParseFunction
    depth: int = 3

    @classmethod
    def from_source(cls, source: SourceConfig) -> 'ScrapeSchema':
        return cls(
            name=source.name,
            urls=list(source.base_urls),
            parse=selector_parser(source.selector),
            depth=source.depth,
        )


def url_scope(url: str) -> str:
    """Directory portion of a URL: ``https://h/3/contents.html`` -> ``https://h/3/``."""
    parsed = urlparse(url)
    directory = parsed.path.rsplit("/", 1)[0] + "/"
    return f"{parsed.scheme}://{parsed.netloc}{directory}"


class SchemaRegistry:
    """Parse strategies keyed by the URL scope of their seeds.

    Several schemas may share a scope; every registered schema is kept.
    Lookups pick the longest scope that prefixes the URL and, within it, the
    schema registered first.
    """

    def __init__(self):
        self._schemas: List[ScrapeSchema] = []
        self._by_prefix: Dict[str, List[ScrapeSchema]] = {}

    def __len__(self) -> int:
        return len(self._schemas)

    def register(self, schema: ScrapeSchema):
        if any(schema is s for s in self._schemas):
            return
        self._schemas.append(schema)
        for prefix in {url_scope(url) for url in schema.urls}:
            shared = self._by_prefix.setdefault(prefix, [])
            if shared:
                logger.debug(f"{schema.name} shares scope {prefix} with "
                             f"{', '.join(s.name for s in shared)}")
            shared.append(schema)

    def schemas(self) -> List[ScrapeSchema]:
        return list(self._schemas)

    def for_url(self, url: str) -> Optional[ScrapeSchema]:
        matches = [prefix for prefix in self._by_prefix if url.startswith(prefix)]
        if not matches:
            return None
        return self._by_prefix[max(matches, key=len)][0]

    @classmethod
    def from_sources(cls, sources: Dict[str, SourceConfig]) -> 'SchemaRegistry':
        registry = cls()
        for source in sources.values():
            registry.register(ScrapeSchema.from_source(source))
        return registry
