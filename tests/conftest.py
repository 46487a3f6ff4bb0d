"""Shared fixtures: an in-memory fake of the stats API."""

import json
import re

import httpx
import pytest


def leaderboard_rows(total: int) -> list[dict]:
    """Full ranked list; row i is the player at rank i + 1."""
    return [{"username": f"player{i + 1}", "value": str(1000 - i)} for i in range(total)]


def leaderboard_page(rows: list[dict], page: int) -> list[dict]:
    """Slice like the real API: 45 rows per page, one row of overlap."""
    start = (page - 1) * 44
    return rows[start:start + 45]


class FakeApi:
    """Routes requests to canned JSON; records every path requested."""

    def __init__(self):
        self.requests: list[str] = []
        self.leaderboards: dict[str, list[dict]] = {}
        self.auction_pages: dict[int, list[dict]] = {}
        self.transactions: list[dict] = []
        self.price_pages: dict[int, list[dict]] = {}
        self.stats: dict[str, dict] = {}
        self.online: dict[str, str] = {}
        self.failing: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.split("/v1/", 1)[-1]
        self.requests.append(path)
        if path in self.failing:
            return httpx.Response(500, json={"status": 500, "message": "boom"})

        if m := re.fullmatch(r"leaderboards/(\w+)/(\d+)", path):
            rows = self.leaderboards.get(m.group(1), [])
            return self._ok(leaderboard_page(rows, int(m.group(2))))
        if m := re.fullmatch(r"auction/list/(\d+)", path):
            return self._ok(self.auction_pages.get(int(m.group(1)), []))
        if m := re.fullmatch(r"auction/transactions/(\d+)", path):
            return self._ok(self.transactions if m.group(1) == "1" else [])
        if m := re.fullmatch(r"prices/(\d+)", path):
            page = int(m.group(1))
            return httpx.Response(200, json={
                "status": 200,
                "result": self.price_pages.get(page, []),
                "meta": {"unique_items": sum(len(p) for p in self.price_pages.values()),
                         "total_listings_scanned": 1234},
                "pagination": {"total_pages": len(self.price_pages)},
            })
        if m := re.fullmatch(r"stats/(\w+)", path):
            if m.group(1) not in self.stats:
                return httpx.Response(404, json={"status": 404, "message": "Player not found"})
            return self._ok(self.stats[m.group(1)])
        if m := re.fullmatch(r"lookup/(\w+)", path):
            name = m.group(1)
            if name not in self.online:
                return self._ok(None)
            return self._ok({"username": name, "location": self.online[name]})
        return httpx.Response(404, content=json.dumps({"message": "Not found"}))

    @staticmethod
    def _ok(result) -> httpx.Response:
        return httpx.Response(200, json={"status": 200, "result": result})

    def client(self):
        from donut_stats.client import ApiClient

        return ApiClient(
            "https://api.example.test/v1",
            api_key="secret",
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def fake_api():
    return FakeApi()


def price_row(item_id: str, name: str, median: float, avg: float, listings: int,
              low: float | None = None, high: float | None = None) -> dict:
    return {
        "id": item_id,
        "name": name,
        "min_price": low if low is not None else median / 2,
        "max_price": high if high is not None else median * 2,
        "median_price": median,
        "avg_price": avg,
        "listings": listings,
    }
