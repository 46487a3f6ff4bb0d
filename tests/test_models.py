def test_price_point_round_trips_storage_format():
    from donut_stats.models import PricePoint

    point = PricePoint.from_dict({"time": 1700000000000, "price": 12.5})

    assert point.timestamp == 1700000000000
    assert point.to_dict() == {"time": 1700000000000, "price": 12.5}


def test_size_estimate_total():
    from donut_stats.models import SizeEstimate

    estimate = SizeEstimate(last_valid_page=10, last_page_item_count=7, items_per_page=44)

    assert estimate.total == 9 * 44 + 7


def test_size_estimate_empty_collection():
    from donut_stats.models import SizeEstimate

    assert SizeEstimate(1, 0, 44).total == 0


def test_price_aggregate_from_api_coerces_strings():
    from donut_stats.models import PriceAggregate

    agg = PriceAggregate.from_api({
        "id": "minecraft:diamond",
        "name": "Diamond",
        "min_price": "1,000",
        "max_price": 5000,
        "median_price": "$2,500",
        "avg_price": 2600.5,
        "listings": "12",
    })

    assert agg.min_price == 1000.0
    assert agg.median_price == 2500.0
    assert agg.listing_count == 12


def test_auction_entry_from_api():
    from donut_stats.models import AuctionEntry

    entry = AuctionEntry.from_api({
        "item": {"id": "minecraft:elytra", "display_name": "Elytra", "count": 2},
        "price": 200000,
        "seller": {"name": "Steve", "uuid": "abc"},
        "time_left": 3600000,
    })

    assert entry.item.display_name == "Elytra"
    assert entry.seller.name == "Steve"
    assert entry.unit_price == 100000
    assert entry.time_left == 3600000


def test_player_stats_kd_ratio_with_no_deaths():
    from donut_stats.models import PlayerStats

    stats = PlayerStats.from_api({"kills": "10", "deaths": 0})

    assert stats.kd_ratio == 10.0
    assert stats.money == 0.0


def test_to_number_treats_non_finite_as_zero():
    from donut_stats.models import to_number

    assert to_number("NaN") == 0.0
    assert to_number("inf") == 0.0
    assert to_number(float("inf")) == 0.0
    assert to_number(float("nan")) == 0.0
    assert to_number("1,234") == 1234.0
