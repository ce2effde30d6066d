"""Crawl frontier: visited set plus a bounded, insertion-ordered pending queue."""

import logging
from collections import OrderedDict
from typing import Callable, FrozenSet, List, Optional

from .models import FrontierItem

logger = logging.getLogger(__name__)

DEFAULT_MAX_PENDING = 10000


class Frontier:
    """Pending/visited state for one crawl run.

    A URL leaves ``pending`` and enters ``visited`` in the same synchronous
    call (``dequeue_batch``), so overlapping rounds can never claim it twice.

    When ``trim`` finds more than ``max_pending`` URLs waiting, the oldest
    discoveries are dropped and only the newest ``max_pending`` survive. This
    loses coverage on sites with very wide link fan-out; every dropped URL is
    counted in ``evicted_count``, logged, and handed to ``on_evict`` when set.
    """

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING,
                 on_evict: Optional[Callable[[List[str]], None]] = None):
        if max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        self.max_pending = max_pending
        self.on_evict = on_evict
        self.evicted_count = 0
        self._pending: "OrderedDict[str, int]" = OrderedDict()
        self._visited = set()

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, url: str) -> bool:
        return url in self._pending

    def size(self) -> int:
        """Number of URLs waiting to be fetched."""
        return len(self._pending)

    @property
    def visited(self) -> FrozenSet[str]:
        return frozenset(self._visited)

    def is_visited(self, url: str) -> bool:
        return url in self._visited

    def enqueue(self, url: str, depth: int = 0) -> bool:
        """Add a URL unless it is already visited or pending.

        Returns:
            True if the URL was added
        """
        if url in self._visited or url in self._pending:
            return False
        if depth < 0:
            raise ValueError("Depth must be non-negative")
        self._pending[url] = depth
        return True

    def dequeue_batch(self, n: int) -> List[FrontierItem]:
        """Remove up to ``n`` pending URLs, oldest first, marking each visited."""
        batch = []
        while self._pending and len(batch) < n:
            url, depth = self._pending.popitem(last=False)
            self._visited.add(url)
            batch.append(FrontierItem(url=url, depth=depth))
        return batch

    def trim(self, max_pending: Optional[int] = None) -> List[str]:
        """Evict the oldest pending URLs beyond the ceiling.

        Returns:
            The evicted URLs, oldest first
        """
        limit = self.max_pending if max_pending is None else max_pending
        overflow = len(self._pending) - limit
        if overflow <= 0:
            return []

        evicted = [self._pending.popitem(last=False)[0] for _ in range(overflow)]
        self.evicted_count += len(evicted)
        logger.warning(f"Frontier over capacity: evicted {len(evicted)} oldest pending URLs "
                       f"(kept {len(self._pending)}, {self.evicted_count} evicted this run)")
        if self.on_evict is not None:
            self.on_evict(evicted)
        return evicted
