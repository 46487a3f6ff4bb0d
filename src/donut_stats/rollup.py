"""Client-side rollups over fetched pages.

Nothing here is an exact server-side figure. Leaderboard totals are a
first-page sum scaled by a hand-tuned factor, and transaction totals
scale one sample page the same way; treat both as order-of-magnitude
indicators.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field, replace

import pandas as pd

from donut_stats.client import ApiClient
from donut_stats.history import HistoryStore
from donut_stats.models import PriceAggregate, PriceMeta, Transaction
from donut_stats.pagination import fetch_page

logger = logging.getLogger(__name__)

LEADERBOARD_CATEGORIES = (
    "money", "shards", "kills", "deaths",
    "playtime", "placedblocks", "brokenblocks", "mobskilled",
)
# Heuristic: roughly how many first pages' worth of value the server holds
EXTRAPOLATION_FACTOR = 50
TRANSACTION_SAMPLE_FACTOR = 100
DAY_MS = 24 * 60 * 60 * 1000

SORT_KEYS = ("name", "avg_low", "avg_high", "listings")
PRICES_PER_PAGE = 30


async def leaderboard_totals(
    client: ApiClient,
    categories: tuple[str, ...] = LEADERBOARD_CATEGORIES,
    factor: float = EXTRAPOLATION_FACTOR,
) -> dict[str, float]:
    """Projected server-wide total per category from each first page."""

    async def category_total(category: str) -> float:
        try:
            page = await fetch_page(client, "leaderboard", 1, category=category)
        except Exception as e:
            logger.warning("Leaderboard %s unavailable, counting as zero: %s", category, e)
            return 0.0
        return sum(entry.numeric_value for entry in page.items) * factor

    totals = await asyncio.gather(*(category_total(c) for c in categories))
    return dict(zip(categories, totals))


async def find_player_rankings(
    client: ApiClient,
    username: str,
    categories: tuple[str, ...] = ("money", "kills", "playtime", "placedblocks"),
) -> dict[str, tuple[int, object]]:
    """Rank and value of a player on each category's first page, where listed."""
    target = username.lower()

    async def lookup(category: str):
        try:
            page = await fetch_page(client, "leaderboard", 1, category=category)
        except Exception as e:
            logger.warning("Failed to fetch %s leaderboard: %s", category, e)
            return None
        for i, entry in enumerate(page.items):
            if entry.username.lower() == target:
                return i + 1, entry.value
        return None

    found = await asyncio.gather(*(lookup(c) for c in categories))
    return {c: r for c, r in zip(categories, found) if r is not None}


class RollupSet:
    """Price aggregates accumulated across every page fetched this session."""

    def __init__(self):
        self._items: dict[str, PriceAggregate] = {}

    def __len__(self) -> int:
        return len(self._items)

    def add(self, aggregates: list[PriceAggregate]) -> None:
        for agg in aggregates:
            seen = self._items.get(agg.id)
            self._items[agg.id] = agg if seen is None else merge_aggregates(seen, agg)

    def items(self) -> list[PriceAggregate]:
        """Snapshot in insertion order; callers may reorder it freely."""
        return list(self._items.values())


def merge_aggregates(a: PriceAggregate, b: PriceAggregate) -> PriceAggregate:
    """Combine two observations of the same item."""
    best = b if b.listing_count > a.listing_count else a
    return replace(
        best,
        min_price=min(a.min_price, b.min_price),
        max_price=max(a.max_price, b.max_price),
    )


@dataclass
class PriceLoadResult:
    meta: PriceMeta | None
    total_pages: int
    failed_pages: list[int] = field(default_factory=list)


async def load_prices(client: ApiClient, rollup: RollupSet) -> PriceLoadResult:
    """Load page 1, then every remaining page concurrently into ``rollup``.

    Page 1 failures propagate; later pages that fail are skipped and
    reported in ``failed_pages``.
    """
    first = await fetch_page(client, "prices", 1)
    rollup.add(first.items)
    total_pages = first.total_pages or 1

    async def load(page: int):
        try:
            return page, (await fetch_page(client, "prices", page)).items
        except Exception as e:
            logger.warning("Prices page %d failed: %s", page, e)
            return page, None

    results = await asyncio.gather(*(load(p) for p in range(2, total_pages + 1)))
    failed = []
    # Merge in page order regardless of completion order
    for page, items in sorted(results, key=lambda r: r[0]):
        if items is None:
            failed.append(page)
        else:
            rollup.add(items)
    return PriceLoadResult(meta=first.meta, total_pages=total_pages, failed_pages=failed)


def filter_prices(items: list[PriceAggregate], query: str) -> list[PriceAggregate]:
    """Case-insensitive substring match on name or id."""
    query = (query or "").strip().lower()
    if not query:
        return list(items)
    return [i for i in items if query in i.name.lower() or query in i.id.lower()]


def sort_prices(items: list[PriceAggregate], sort_by: str = "name") -> list[PriceAggregate]:
    if sort_by == "avg_high":
        return sorted(items, key=lambda i: i.avg_price, reverse=True)
    elif sort_by == "avg_low":
        return sorted(items, key=lambda i: i.avg_price)
    elif sort_by == "listings":
        return sorted(items, key=lambda i: i.listing_count, reverse=True)
    return sorted(items, key=lambda i: i.name.lower())


def paginate(items: list, page: int, per_page: int = PRICES_PER_PAGE) -> tuple[list, int]:
    """Return (items on page, total pages)."""
    total_pages = math.ceil(len(items) / per_page) if items else 0
    start = (max(page, 1) - 1) * per_page
    return items[start:start + per_page], total_pages


class PriceListController:
    """Owns the price list state for one viewing session."""

    def __init__(self, per_page: int = PRICES_PER_PAGE):
        self.rollup = RollupSet()
        self.per_page = per_page
        self.query = ""
        self.sort_by = "name"
        self.page = 1

    def set_query(self, query: str) -> None:
        self.query = query or ""
        self.page = 1

    def set_sort(self, sort_by: str) -> None:
        if sort_by not in SORT_KEYS:
            raise ValueError(f"Unknown sort key: {sort_by}")
        self.sort_by = sort_by
        self.page = 1

    def view(self) -> list[PriceAggregate]:
        return sort_prices(filter_prices(self.rollup.items(), self.query), self.sort_by)

    @property
    def total_pages(self) -> int:
        return paginate(self.view(), 1, self.per_page)[1]

    def go_to(self, page: int) -> int:
        self.page = max(1, min(page, self.total_pages or 1))
        return self.page

    def page_items(self) -> list[PriceAggregate]:
        return paginate(self.view(), self.page, self.per_page)[0]


def record_price_history(store: HistoryStore, aggregates: list[PriceAggregate], now: int | None = None) -> None:
    for agg in aggregates:
        store.record(agg.id.replace("minecraft:", ""), agg.median_price, now)


def summarize_prices(aggregates: list[PriceAggregate]) -> dict:
    """Market overview across the accumulated set."""
    if not aggregates:
        return {"items": 0, "listings": 0, "median_of_medians": None, "highest_avg": None}

    df = pd.DataFrame([{
        "id": a.id, "median": a.median_price, "avg": a.avg_price, "listings": a.listing_count,
    } for a in aggregates])
    return {
        "items": len(df),
        "listings": int(df["listings"].sum()),
        "median_of_medians": float(df["median"].median()),
        "highest_avg": str(df.loc[df["avg"].idxmax(), "id"]),
    }


def transaction_stats(
    transactions: list[Transaction],
    now: int,
    factor: int = TRANSACTION_SAMPLE_FACTOR,
) -> dict:
    """Volume figures from one sample page of transactions."""
    volume = sum(t.price for t in transactions)
    recent = [t for t in transactions if t.sold_at > now - DAY_MS]
    return {
        "sample_count": len(transactions),
        "sample_volume": volume,
        "estimated_count": len(transactions) * factor,
        "estimated_volume": volume * factor,
        "daily_count": len(recent),
        "daily_volume": sum(t.price for t in recent),
    }
