import asyncio
from typing import Dict, Iterable, List, Optional

import pytest

from pipelines.fetcher import FetchError, FetchErrorKind
from pipelines.models import EmbeddingResult


class FakeFetcher:
    """In-memory fetcher serving canned pages and recording every call."""

    def __init__(self, pages: Dict[str, str], timeouts: Iterable[str] = ()):
        self.pages = pages
        self.timeouts = set(timeouts)
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return False

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if url in self.timeouts:
                raise FetchError(FetchErrorKind.TIMEOUT, url, attempts=4)
            if url not in self.pages:
                raise FetchError(FetchErrorKind.HTTP_STATUS, url, status=404)
            return self.pages[url]
        finally:
            self.in_flight -= 1


class FakeEncoder:
    """Deterministic 3-dimensional encoder."""

    def __init__(self, fail_on: Optional[str] = None):
        self.fail_on = fail_on
        self.calls: List[List[str]] = []

    def initialize(self, model_name: str = "fake"):
        pass

    def is_initialized(self) -> bool:
        return True

    async def extract(self, texts: List[str]) -> EmbeddingResult:
        self.calls.append(list(texts))
        if self.fail_on is not None and any(self.fail_on in t for t in texts):
            raise RuntimeError("model exploded")
        vectors = [[float(len(t)), 1.0, 0.5] for t in texts]
        return EmbeddingResult(vectors=vectors, dimensions=3, count=len(vectors))


def link_page(*hrefs: str, body: str = "") -> str:
    anchors = "".join(f'<a href="{href}">{href}</a>' for href in hrefs)
    return f"<html><body><nav>{anchors}</nav>{body}</body></html>"


@pytest.fixture
def fake_encoder():
    return FakeEncoder()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "vectors.db")
