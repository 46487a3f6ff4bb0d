"""Page fetching for the API's list resources.

Rank-ordered resources (leaderboards) repeat one entry at every page
boundary: the last entry of page N is the first entry of page N+1. Pages
are 45 entries long, so every page after the first contributes 44 new
entries once the repeated one is dropped.
"""

import logging

from donut_stats.client import ApiClient, validate_page
from donut_stats.models import LeaderboardEntry, ListPage, RankedEntry

logger = logging.getLogger(__name__)

ITEMS_PER_PAGE = 45
ITEMS_PER_PAGE_OFFSET = ITEMS_PER_PAGE - 1

RESOURCES = ("leaderboard", "auction", "transactions", "prices")


async def fetch_page(client: ApiClient, resource: str, page: int = 1, **params) -> ListPage:
    """Fetch one raw page of a list resource.

    ``params`` carries resource specific arguments: ``category`` for
    leaderboards, ``search``/``sort`` for the auction house. Errors from
    the client propagate unchanged.
    """
    page = validate_page(page)

    if resource == "leaderboard":
        items = await client.fetch_leaderboard(params["category"], page)
        return ListPage(items=items, page_number=page)
    if resource == "auction":
        items = await client.fetch_auction(page, params.get("search", ""), params.get("sort", ""))
        return ListPage(items=items, page_number=page)
    if resource == "transactions":
        items = await client.fetch_transactions(page)
        return ListPage(items=items, page_number=page)
    if resource == "prices":
        items, meta, total_pages = await client.fetch_prices(page)
        return ListPage(items=items, page_number=page, meta=meta, total_pages=total_pages)

    raise ValueError(f"Unknown resource: {resource}")


def dedupe_page(page: ListPage) -> ListPage:
    """Drop the entry repeated from the previous page (no-op on page 1)."""
    if page.page_number <= 1 or not page.items:
        return page
    return ListPage(
        items=page.items[1:],
        page_number=page.page_number,
        meta=page.meta,
        total_pages=page.total_pages,
    )


def rank_for(page_number: int, index: int) -> int:
    """Global rank of the entry at ``index`` of a de-duplicated page."""
    if page_number <= 1:
        return index + 1
    # Page N's raw entries start at rank (N-1)*44 + 1 and the first one is dropped
    return (page_number - 1) * ITEMS_PER_PAGE_OFFSET + index + 2


def rank_page(page: ListPage[LeaderboardEntry]) -> list[RankedEntry]:
    """De-duplicate a raw leaderboard page and attach global ranks."""
    clean = dedupe_page(page)
    return [
        RankedEntry(rank=rank_for(clean.page_number, i), entry=entry)
        for i, entry in enumerate(clean.items)
    ]


def has_next_page(page: ListPage) -> bool:
    """A full raw page means the resource probably continues."""
    return len(page.items) >= ITEMS_PER_PAGE


async def fetch_ranked(client: ApiClient, category: str, page: int = 1) -> list[RankedEntry]:
    raw = await fetch_page(client, "leaderboard", page, category=category)
    logger.debug("Leaderboard %s page %d: %d raw entries", category, raw.page_number, len(raw))
    return rank_page(raw)
