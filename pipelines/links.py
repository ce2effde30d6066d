"""Link discovery and crawl eligibility rules."""

import logging
import posixpath
from typing import List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = {'http', 'https'}
ALLOWED_EXTENSIONS = {'', '.html', '.htm'}


def _hostname(url: str) -> Optional[str]:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def is_crawlable(url: str) -> bool:
    """Check that a URL has no fragment and points at an HTML-like path.

    Paths whose last segment has no extension, or a ``.html``/``.htm`` one,
    are crawlable. Anything carrying a fragment is not, even an empty one.
    """
    if '#' in url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        return False
    last_segment = parsed.path.rsplit('/', 1)[-1]
    _, ext = posixpath.splitext(last_segment)
    return ext.lower() in ALLOWED_EXTENSIONS


def is_same_host(url: str, seed_url: str) -> bool:
    """Exact hostname match; subdomains do not count."""
    host = _hostname(url)
    return host is not None and host == _hostname(seed_url)


def extract_links(html: str, base_url: str, seed_url: Optional[str] = None) -> List[str]:
    """Extract eligible absolute links from a page.

    Args:
        html: Raw page HTML
        base_url: URL of the page, used to resolve relative hrefs
        seed_url: Seed URL of the crawl; links must share its hostname.
                  Defaults to ``base_url``.

    Returns:
        Eligible URLs in document order, without duplicates
    """
    seed_url = seed_url or base_url
    soup = BeautifulSoup(html, 'html.parser')

    links = []
    seen = set()
    for anchor in soup.find_all('a', href=True):
        href = anchor['href'].strip()
        if not href:
            continue
        try:
            absolute_url = urljoin(base_url, href)
        except ValueError:
            continue
        if absolute_url in seen:
            continue
        if is_same_host(absolute_url, seed_url) and is_crawlable(absolute_url):
            seen.add(absolute_url)
            links.append(absolute_url)

    return links
