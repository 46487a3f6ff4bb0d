import asyncio

import httpx
import pytest


def make_client(handler):
    from donut_stats.client import ApiClient

    return ApiClient("https://api.example.test/v1", api_key="secret", transport=httpx.MockTransport(handler))


def run_request(handler, path="stats/Steve"):
    async def go():
        async with make_client(handler) as client:
            return await client.request(path)

    return asyncio.run(go())


def test_request_sends_bearer_token_and_returns_json():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("Authorization")
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"status": 200, "result": {"money": 5}})

    data = run_request(handler)

    assert data["result"] == {"money": 5}
    assert seen["auth"] == "Bearer secret"
    assert seen["url"] == "https://api.example.test/v1/stats/Steve"


def test_rate_limit_maps_to_rate_limit_error():
    from donut_stats.client import RateLimitError

    with pytest.raises(RateLimitError) as exc:
        run_request(lambda r: httpx.Response(429, text="slow down"))

    assert exc.value.status == 429


def test_unauthorized_maps_to_auth_error():
    from donut_stats.client import AuthError

    with pytest.raises(AuthError):
        run_request(lambda r: httpx.Response(401, json={"message": "bad key"}))


def test_non_json_body_is_malformed():
    from donut_stats.client import MalformedResponseError

    with pytest.raises(MalformedResponseError):
        run_request(lambda r: httpx.Response(200, text="<!DOCTYPE html><html></html>"))


def test_empty_body_is_malformed():
    from donut_stats.client import MalformedResponseError

    with pytest.raises(MalformedResponseError):
        run_request(lambda r: httpx.Response(200, text="  "))


def test_timeout_maps_to_transport_error():
    from donut_stats.client import TransportError

    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TransportError) as exc:
        run_request(handler)

    assert "timeout" in exc.value.message.lower()


def test_connection_failure_maps_to_transport_error():
    from donut_stats.client import TransportError

    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransportError):
        run_request(handler)


def test_error_status_uses_upstream_message():
    from donut_stats.client import ApiError

    with pytest.raises(ApiError) as exc:
        run_request(lambda r: httpx.Response(404, json={"message": "Player not found"}))

    assert exc.value.message == "Player not found"
    assert exc.value.status == 404


def test_fetch_auction_sends_search_body():
    seen = {}

    def handler(request):
        seen["body"] = request.content
        seen["path"] = request.url.path
        return httpx.Response(200, json={"status": 200, "result": []})

    async def go():
        async with make_client(handler) as client:
            return await client.fetch_auction(3, search="  <b>elytra</b> ", sort="lowest_price")

    assert asyncio.run(go()) == []
    assert seen["path"] == "/v1/auction/list/3"
    assert b'"search": "elytra"' in seen["body"] or b'"search":"elytra"' in seen["body"]


def test_fetch_player_lookup_offline_returns_none(fake_api):
    async def go():
        async with fake_api.client() as client:
            return await client.fetch_player_lookup("Steve")

    assert asyncio.run(go()) is None


def test_fetch_player_lookup_online(fake_api):
    fake_api.online["Steve"] = "spawn"

    async def go():
        async with fake_api.client() as client:
            return await client.fetch_player_lookup("Steve")

    location = asyncio.run(go())
    assert location.username == "Steve"
    assert location.location == "spawn"


def test_sanitize_input():
    from donut_stats.client import sanitize_input

    assert sanitize_input("  <script>x</script>diamond ") == "xdiamond"
    assert sanitize_input(None) == ""
    assert len(sanitize_input("a" * 500)) == 100


def test_is_valid_username():
    from donut_stats.client import is_valid_username

    assert is_valid_username("Steve_123")
    assert not is_valid_username("bad name")
    assert not is_valid_username("a" * 17)
    assert not is_valid_username("")


def test_validate_page():
    from donut_stats.client import validate_page

    assert validate_page("3") == 3
    assert validate_page(0) == 1
    assert validate_page("abc") == 1
    assert validate_page(50, maximum=10) == 10


def run_fetch(handler, fetch):
    async def go():
        async with make_client(handler) as client:
            return await fetch(client)

    return asyncio.run(go())


def test_prices_row_that_is_not_an_object_is_malformed():
    from donut_stats.client import MalformedResponseError

    def handler(request):
        return httpx.Response(200, json={"status": 200, "result": ["oops"]})

    with pytest.raises(MalformedResponseError):
        run_fetch(handler, lambda c: c.fetch_prices(1))


def test_prices_non_numeric_total_pages_is_malformed():
    from donut_stats.client import MalformedResponseError

    def handler(request):
        return httpx.Response(200, json={
            "status": 200,
            "result": [{"id": "minecraft:dirt", "median_price": 1}],
            "pagination": {"total_pages": "n/a"},
        })

    with pytest.raises(MalformedResponseError):
        run_fetch(handler, lambda c: c.fetch_prices(1))


@pytest.mark.parametrize("result", ["spawn", ["spawn"]])
def test_lookup_result_that_is_not_an_object_is_malformed(result):
    from donut_stats.client import MalformedResponseError

    def handler(request):
        return httpx.Response(200, json={"status": 200, "result": result})

    with pytest.raises(MalformedResponseError):
        run_fetch(handler, lambda c: c.fetch_player_lookup("Steve"))


def test_auction_row_with_bad_item_shape_is_malformed():
    from donut_stats.client import MalformedResponseError

    def handler(request):
        return httpx.Response(200, json={"status": 200, "result": [{"item": "x", "price": 5}]})

    with pytest.raises(MalformedResponseError):
        run_fetch(handler, lambda c: c.fetch_auction(1))
