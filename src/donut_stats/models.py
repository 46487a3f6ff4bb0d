import math
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


def to_number(value: Any) -> float:
    """Coerce an upstream numeric field (possibly "1,234" or "$5") to float."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = str(value).replace(",", "").replace("$", "").strip()
        try:
            number = float(cleaned)
        except ValueError:
            return 0.0
    return number if math.isfinite(number) else 0.0


@dataclass(frozen=True)
class PricePoint:
    timestamp: int
    price: float

    def to_dict(self) -> dict:
        return {"time": self.timestamp, "price": self.price}

    @classmethod
    def from_dict(cls, data: dict) -> "PricePoint":
        return cls(timestamp=int(data["time"]), price=float(data["price"]))


@dataclass
class ListPage(Generic[T]):
    items: list[T]
    page_number: int
    meta: "PriceMeta | None" = None
    total_pages: int | None = None

    def __len__(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items


@dataclass(frozen=True)
class SizeEstimate:
    last_valid_page: int
    last_page_item_count: int
    items_per_page: int

    @property
    def total(self) -> int:
        return (self.last_valid_page - 1) * self.items_per_page + self.last_page_item_count


@dataclass
class PriceAggregate:
    id: str
    name: str
    min_price: float
    max_price: float
    median_price: float
    avg_price: float
    listing_count: int

    @classmethod
    def from_api(cls, data: dict) -> "PriceAggregate":
        item_id = str(data.get("id", ""))
        return cls(
            id=item_id,
            name=data.get("name") or item_id,
            min_price=to_number(data.get("min_price")),
            max_price=to_number(data.get("max_price")),
            median_price=to_number(data.get("median_price")),
            avg_price=to_number(data.get("avg_price")),
            listing_count=int(to_number(data.get("listings"))),
        )


@dataclass
class PriceMeta:
    unique_items: int | None
    total_listings_scanned: int | None

    @classmethod
    def from_api(cls, data: dict | None) -> "PriceMeta":
        data = data or {}
        unique = data.get("unique_items")
        scanned = data.get("total_listings_scanned")
        return cls(
            unique_items=int(unique) if unique is not None else None,
            total_listings_scanned=int(scanned) if scanned is not None else None,
        )


@dataclass
class PlayerStats:
    money: float
    shards: float
    playtime: int
    kills: int
    deaths: int
    placed_blocks: int
    broken_blocks: int
    mobs_killed: int

    @classmethod
    def from_api(cls, data: dict) -> "PlayerStats":
        return cls(
            money=to_number(data.get("money")),
            shards=to_number(data.get("shards")),
            playtime=int(to_number(data.get("playtime"))),
            kills=int(to_number(data.get("kills"))),
            deaths=int(to_number(data.get("deaths"))),
            placed_blocks=int(to_number(data.get("placed_blocks"))),
            broken_blocks=int(to_number(data.get("broken_blocks"))),
            mobs_killed=int(to_number(data.get("mobs_killed"))),
        )

    @property
    def kd_ratio(self) -> float:
        if self.deaths == 0:
            return float(self.kills)
        return round(self.kills / self.deaths, 2)


@dataclass
class PlayerLocation:
    username: str
    location: str | None


@dataclass
class LeaderboardEntry:
    username: str
    value: Any

    @property
    def numeric_value(self) -> float:
        return to_number(self.value)

    @classmethod
    def from_api(cls, data: dict) -> "LeaderboardEntry":
        return cls(username=str(data.get("username", "")), value=data.get("value"))


@dataclass
class RankedEntry:
    rank: int
    entry: LeaderboardEntry


@dataclass
class Seller:
    name: str
    uuid: str | None = None

    @classmethod
    def from_api(cls, data: dict | None) -> "Seller":
        data = data or {}
        return cls(name=str(data.get("name", "")), uuid=data.get("uuid"))


@dataclass
class AuctionItem:
    id: str
    display_name: str | None
    count: int
    enchants: dict = field(default_factory=dict)
    lore: list[str] = field(default_factory=list)
    contents: list["AuctionItem"] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict | None) -> "AuctionItem":
        data = data or {}
        enchants = data.get("enchants") or {}
        return cls(
            id=str(data.get("id", "")),
            display_name=data.get("display_name"),
            count=int(to_number(data.get("count", 1))),
            enchants=enchants if isinstance(enchants, dict) else {},
            lore=list(data.get("lore") or []),
            contents=[cls.from_api(c) for c in data.get("contents") or []],
        )


@dataclass
class AuctionEntry:
    item: AuctionItem
    price: float
    seller: Seller
    time_left: int

    @classmethod
    def from_api(cls, data: dict) -> "AuctionEntry":
        return cls(
            item=AuctionItem.from_api(data.get("item")),
            price=to_number(data.get("price")),
            seller=Seller.from_api(data.get("seller")),
            time_left=int(to_number(data.get("time_left"))),
        )

    @property
    def unit_price(self) -> float:
        return self.price / self.item.count if self.item.count > 0 else self.price


@dataclass
class Transaction:
    item: AuctionItem
    price: float
    seller: Seller
    sold_at: int

    @classmethod
    def from_api(cls, data: dict) -> "Transaction":
        return cls(
            item=AuctionItem.from_api(data.get("item")),
            price=to_number(data.get("price")),
            seller=Seller.from_api(data.get("seller")),
            sold_at=int(to_number(data.get("unixMillisDateSold"))),
        )
