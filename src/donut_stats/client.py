"""Async client for the DonutSMP statistics API."""

import json
import logging
import re

import httpx

from donut_stats.config import Config
from donut_stats.models import (
    AuctionEntry,
    LeaderboardEntry,
    PlayerLocation,
    PlayerStats,
    PriceAggregate,
    PriceMeta,
    Transaction,
)

logger = logging.getLogger(__name__)

USER_AGENT = "donut-stats/0.1"

ENDPOINTS = {
    "stats": "stats/{username}",
    "lookup": "lookup/{username}",
    "leaderboard": "leaderboards/{category}/{page}",
    "auction": "auction/list/{page}",
    "transactions": "auction/transactions/{page}",
    "prices": "prices/{page}",
}

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{1,16}$")


class ApiError(Exception):
    """Raised when an upstream request fails."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status


class TransportError(ApiError):
    """Network failure or timeout reaching the API."""


class RateLimitError(ApiError):
    """The API answered 429 Too Many Requests."""


class AuthError(ApiError):
    """The API rejected our credentials."""


class MalformedResponseError(ApiError):
    """The response body is not the JSON structure we expect."""


def sanitize_input(value) -> str:
    """Strip tags and whitespace, cap at 100 chars."""
    if not isinstance(value, str):
        return ""
    return re.sub(r"<[^>]*>", "", value.strip())[:100]


def is_valid_username(username: str) -> bool:
    return bool(USERNAME_PATTERN.match(username or ""))


def validate_page(page, minimum: int = 1, maximum: int = 0) -> int:
    """Clamp a page number into [minimum, maximum] (no upper bound when maximum is 0)."""
    try:
        num = int(page)
    except (TypeError, ValueError):
        num = minimum
    if num < minimum:
        return minimum
    if maximum > 0 and num > maximum:
        return maximum
    return num


class ApiClient:
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: Config, transport: httpx.AsyncBaseTransport | None = None) -> "ApiClient":
        return cls(config.api_base, config.api_key, config.timeout, transport=transport)

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def request(self, path: str, body: dict | None = None) -> dict:
        """GET an endpoint and return the decoded JSON object."""
        try:
            if body:
                response = await self._client.request("GET", path, json=body)
            else:
                response = await self._client.get(path)
        except httpx.TimeoutException as e:
            raise TransportError("Request timeout") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitError("Rate limit exceeded. Please wait a moment and try again.", 429)
        if response.status_code == 401:
            raise AuthError("API key is invalid. Contact support.", 401)

        text = response.text
        if not text or not text.strip():
            raise MalformedResponseError("Empty response from server", response.status_code)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.debug("Unparseable response from %s: %s", path, text[:500])
            raise MalformedResponseError(f"Invalid server response: {text[:100]}", response.status_code) from e
        if not isinstance(data, dict):
            raise MalformedResponseError("Expected a JSON object", response.status_code)

        if response.is_error:
            raise ApiError(data.get("message") or f"HTTP {response.status_code}", response.status_code)
        return data

    async def _result_list(self, path: str, body: dict | None = None) -> tuple[list, dict]:
        data = await self.request(path, body)
        result = data.get("result")
        if result is None:
            return [], data
        if not isinstance(result, list):
            raise MalformedResponseError(f"Expected a list result from {path}")
        if not all(isinstance(row, dict) for row in result):
            raise MalformedResponseError(f"Expected list of objects from {path}")
        return result, data

    @staticmethod
    def _parse(path: str, convert, *args):
        """Run a model conversion, reporting bad field shapes as malformed."""
        try:
            return convert(*args)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(f"Unexpected data from {path}: {e}") from e

    async def fetch_player_stats(self, username: str) -> PlayerStats:
        path = ENDPOINTS["stats"].format(username=username)
        data = await self.request(path)
        result = data.get("result")
        if not isinstance(result, dict):
            raise MalformedResponseError("Missing stats result")
        return self._parse(path, PlayerStats.from_api, result)

    async def fetch_player_lookup(self, username: str) -> PlayerLocation | None:
        """Return where the player is, or None when they are offline."""
        path = ENDPOINTS["lookup"].format(username=username)
        data = await self.request(path)
        result = data.get("result")
        if not result:
            return None
        if not isinstance(result, dict):
            raise MalformedResponseError(f"Expected an object result from {path}")
        return PlayerLocation(
            username=str(result.get("username") or username),
            location=result.get("location"),
        )

    async def fetch_leaderboard(self, category: str, page: int = 1) -> list[LeaderboardEntry]:
        path = ENDPOINTS["leaderboard"].format(category=category, page=validate_page(page))
        result, _ = await self._result_list(path)
        return self._parse(path, lambda: [LeaderboardEntry.from_api(r) for r in result])

    async def fetch_auction(self, page: int = 1, search: str = "", sort: str = "") -> list[AuctionEntry]:
        body = {}
        if search:
            body["search"] = sanitize_input(search)
        if sort:
            body["sort"] = sort
        path = ENDPOINTS["auction"].format(page=validate_page(page))
        result, _ = await self._result_list(path, body or None)
        return self._parse(path, lambda: [AuctionEntry.from_api(r) for r in result])

    async def fetch_transactions(self, page: int = 1) -> list[Transaction]:
        path = ENDPOINTS["transactions"].format(page=validate_page(page))
        result, _ = await self._result_list(path)
        return self._parse(path, lambda: [Transaction.from_api(r) for r in result])

    async def fetch_prices(self, page: int = 1) -> tuple[list[PriceAggregate], PriceMeta, int]:
        """Return (aggregates, meta, total_pages) for one prices page."""
        path = ENDPOINTS["prices"].format(page=validate_page(page))
        result, data = await self._result_list(path)
        pagination = data.get("pagination") or {}
        if not isinstance(pagination, dict):
            raise MalformedResponseError(f"Expected pagination object from {path}")

        def convert():
            total_pages = int(pagination.get("total_pages") or 1)
            aggregates = [PriceAggregate.from_api(r) for r in result]
            return aggregates, PriceMeta.from_api(data.get("meta")), total_pages

        return self._parse(path, convert)
