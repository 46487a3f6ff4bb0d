"""Estimate the size of a paginated collection that reports no total.

The auction house only answers "page N" queries. To find out how many
listings exist we probe a coarse ladder of pages in parallel, binary
search the gap between the last full and first empty probe one request at
a time, then sweep the remaining window in steps of ten.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from donut_stats.client import ApiClient
from donut_stats.models import SizeEstimate
from donut_stats.pagination import ITEMS_PER_PAGE_OFFSET, fetch_page

logger = logging.getLogger(__name__)

COARSE_PROBE_PAGES = (100, 500, 1000, 1500, 2000, 2500)
SAFETY_BOUND = 5000
NARROW_GAP = 50
FINE_SPAN = 60
FINE_STEP = 10

PageCounter = Callable[[int], Awaitable[int]]


class CollectionSizeEstimator:
    def __init__(
        self,
        count_page: PageCounter,
        items_per_page: int = ITEMS_PER_PAGE_OFFSET,
        probe_pages: tuple[int, ...] = COARSE_PROBE_PAGES,
        safety_bound: int = SAFETY_BOUND,
    ):
        self.count_page = count_page
        self.items_per_page = items_per_page
        self.probe_pages = tuple(sorted(probe_pages))
        self.safety_bound = safety_bound
        self.probes: list[int] = []
        self._valid: set[int] = set()

    async def probe(self, page: int) -> int:
        """Item count on ``page``; any error counts as an empty page."""
        self.probes.append(page)
        try:
            count = await self.count_page(page)
        except Exception as e:
            logger.debug("Probe of page %d failed, treating as empty: %s", page, e)
            count = 0
        if count > 0:
            self._valid.add(page)
        return count

    async def coarse_probe(self) -> tuple[int, int]:
        """Probe the fixed ladder concurrently and return (low, high)."""
        counts = await asyncio.gather(*(self.probe(p) for p in self.probe_pages))
        results = dict(zip(self.probe_pages, counts))

        valid = [p for p, c in results.items() if c > 0]
        low = max(valid) if valid else 1
        invalid_above = [p for p, c in results.items() if c == 0 and p > low]
        high = min(invalid_above) if invalid_above else max(self.safety_bound, low)
        logger.debug("Coarse probe: low=%d high=%d", low, high)
        return low, high

    async def narrow(self, low: int, high: int) -> tuple[int, int]:
        """Binary search until the gap is at most NARROW_GAP pages."""
        while high - low > NARROW_GAP:
            mid = (low + high) // 2
            if await self.probe(mid) > 0:
                low = mid
            else:
                high = mid
        logger.debug("Narrowed to low=%d high=%d", low, high)
        return low, high

    async def confirm(self, low: int) -> SizeEstimate:
        """Sweep [low, low + FINE_SPAN] concurrently for the last non-empty page."""
        pages = list(range(low, low + FINE_SPAN + 1, FINE_STEP))
        counts = await asyncio.gather(*(self.probe(p) for p in pages))

        last_page = low
        last_count = self.items_per_page if low in self._valid else 0
        for page, count in zip(pages, counts):
            if count > 0:
                last_page = page
                last_count = count
        return SizeEstimate(
            last_valid_page=last_page,
            last_page_item_count=last_count,
            items_per_page=self.items_per_page,
        )

    async def estimate(self) -> SizeEstimate:
        self.probes = []
        self._valid = set()
        low, high = await self.coarse_probe()
        low, _ = await self.narrow(low, high)
        result = await self.confirm(low)
        logger.info(
            "Estimated %d items (last page %d with %d items, %d probes)",
            result.total, result.last_valid_page, result.last_page_item_count, len(self.probes),
        )
        return result


async def estimate_auction_count(client: ApiClient) -> SizeEstimate:
    async def count_page(page: int) -> int:
        return len(await fetch_page(client, "auction", page))

    return await CollectionSizeEstimator(count_page).estimate()
