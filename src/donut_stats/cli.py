import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from donut_stats.client import ApiClient, ApiError, is_valid_username
from donut_stats.config import get_config
from donut_stats.estimator import estimate_auction_count
from donut_stats.formatting import (
    format_abbreviated,
    format_item_name,
    format_money,
    format_number,
    format_playtime,
    format_price_value,
    format_time_ago,
    format_time_left,
)
from donut_stats.history import THEMES, HistoryStore, now_ms, summarize_history
from donut_stats.pagination import fetch_page, has_next_page, rank_page
from donut_stats.rollup import (
    LEADERBOARD_CATEGORIES,
    SORT_KEYS,
    PriceListController,
    find_player_rankings,
    leaderboard_totals,
    load_prices,
    record_price_history,
    summarize_prices,
    transaction_stats,
)
from donut_stats.trend import calculate_trend, generate_sparkline

app = typer.Typer(
    name="donut-stats",
    help="Browse DonutSMP player stats, leaderboards, auctions and prices",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_client() -> ApiClient:
    """Build an API client from the environment."""
    return ApiClient.from_config(get_config())


def get_store() -> HistoryStore:
    store = HistoryStore(get_config().db_path)
    store.init()
    return store


def run(coro):
    """Run a coroutine, turning API failures into an error line and exit code 1."""
    try:
        return asyncio.run(coro)
    except ApiError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)


async def lookup_or_offline(client: ApiClient, username: str):
    """The API answers the lookup with an error when the player is offline."""
    try:
        return await client.fetch_player_lookup(username)
    except ApiError as e:
        logging.getLogger(__name__).debug("Lookup for %s failed, showing offline: %s", username, e)
        return None


@app.command()
def stats(
    username: str = typer.Argument(..., help="Minecraft username"),
):
    """Show a player's stats and whether they are online."""
    if not is_valid_username(username):
        console.print(f"[red]Invalid username: {username}[/red]")
        raise typer.Exit(1)

    async def load():
        async with get_client() as client:
            return await asyncio.gather(
                client.fetch_player_stats(username),
                lookup_or_offline(client, username),
            )

    player, location = run(load())

    console.print()
    console.print(f"[bold cyan]{username}[/bold cyan]", end="  ")
    if location:
        console.print(f"[green]Online[/green] ({location.location or 'unknown'})")
    else:
        console.print("[dim]Offline[/dim]")
    console.print()

    table = Table(show_header=False)
    table.add_column("Stat", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Money", format_money(player.money))
    table.add_row("Shards", format_abbreviated(player.shards))
    table.add_row("Playtime", format_playtime(player.playtime))
    table.add_row("Kills", format_number(player.kills))
    table.add_row("Deaths", format_number(player.deaths))
    table.add_row("K/D", f"{player.kd_ratio:.2f}")
    table.add_row("Blocks Placed", format_number(player.placed_blocks))
    table.add_row("Blocks Broken", format_number(player.broken_blocks))
    table.add_row("Mobs Killed", format_number(player.mobs_killed))
    console.print(table)


@app.command()
def rankings(
    username: str = typer.Argument(..., help="Minecraft username"),
):
    """Show where a player appears on the top leaderboards."""
    async def load():
        async with get_client() as client:
            return await find_player_rankings(client, username)

    found = run(load())
    if not found:
        console.print("[dim]No leaderboard rankings found for this player.[/dim]")
        return

    for category, (rank, value) in found.items():
        console.print(f"[cyan]{category}[/cyan]: #{rank} ({_format_value(value, category)})")


def _format_value(value, category: str) -> str:
    if category == "money":
        return format_money(value)
    if category == "playtime":
        return format_playtime(value)
    return format_number(value)


@app.command()
def leaderboard(
    category: str = typer.Argument("money", help=f"One of: {', '.join(LEADERBOARD_CATEGORIES)}"),
    page: int = typer.Option(1, "--page", "-p", min=1, help="Leaderboard page"),
):
    """Show one page of a leaderboard with global ranks."""
    async def load():
        async with get_client() as client:
            return await fetch_page(client, "leaderboard", page, category=category)

    raw = run(load())
    ranked = rank_page(raw)
    if not ranked:
        console.print("[dim]No leaderboard data available for this category.[/dim]")
        return

    table = Table(title=f"{category.capitalize()} leaderboard - page {raw.page_number}")
    table.add_column("Rank", justify="right", style="bold")
    table.add_column("Player", style="cyan")
    table.add_column("Value", justify="right")
    for r in ranked:
        table.add_row(str(r.rank), r.entry.username, _format_value(r.entry.value, category))
    console.print(table)
    if has_next_page(raw):
        console.print(f"[dim]More on page {raw.page_number + 1}[/dim]")


@app.command()
def auction(
    page: int = typer.Option(1, "--page", "-p", min=1, help="Auction page"),
    search: str = typer.Option("", "--search", "-s", help="Item search term"),
    sort: str = typer.Option("", "--sort", help="Upstream sort key"),
):
    """List active auction house listings."""
    async def load():
        async with get_client() as client:
            return await fetch_page(client, "auction", page, search=search, sort=sort)

    listings = run(load()).items
    if not listings:
        console.print("[dim]No auctions found.[/dim]")
        return

    table = Table(title=f"Auction house - page {page}")
    table.add_column("Item", style="cyan")
    table.add_column("Qty", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Seller", style="dim")
    table.add_column("Time Left", justify="right")
    for entry in listings:
        table.add_row(
            entry.item.display_name or format_item_name(entry.item.id),
            str(entry.item.count),
            format_money(entry.price),
            entry.seller.name,
            format_time_left(entry.time_left),
        )
    console.print(table)


@app.command("auction-count")
def auction_count():
    """Estimate how many auctions are active."""
    async def load():
        async with get_client() as client:
            return await estimate_auction_count(client)

    estimate = run(load())
    console.print(
        f"[bold]Active auctions:[/bold] ~{format_abbreviated(estimate.total)} "
        f"[dim]({estimate.last_valid_page} pages)[/dim]"
    )


@app.command()
def transactions(
    page: int = typer.Option(1, "--page", "-p", min=1, help="Transactions page"),
):
    """List recent auction sales."""
    async def load():
        async with get_client() as client:
            return await fetch_page(client, "transactions", page)

    sales = run(load()).items
    if not sales:
        console.print("[dim]No transactions found.[/dim]")
        return

    now = now_ms()
    table = Table(title=f"Recent sales - page {page}")
    table.add_column("Item", style="cyan")
    table.add_column("Price", justify="right")
    table.add_column("Seller", style="dim")
    table.add_column("Sold", justify="right")
    for sale in sales:
        table.add_row(
            sale.item.display_name or format_item_name(sale.item.id),
            format_money(sale.price),
            sale.seller.name,
            format_time_ago(sale.sold_at, now),
        )
    console.print(table)

    summary = transaction_stats(sales, now)
    console.print(
        f"[bold]Last 24h:[/bold] {summary['daily_count']} sales, {format_money(summary['daily_volume'])}  |  "
        f"[bold]Est. total:[/bold] {format_number(summary['estimated_count'])}+ sales, "
        f"{format_money(summary['estimated_volume'])}"
    )


@app.command()
def prices(
    search: str = typer.Option("", "--search", "-s", help="Filter by item name or id"),
    sort: str = typer.Option("name", "--sort", help=f"One of: {', '.join(SORT_KEYS)}"),
    page: int = typer.Option(1, "--page", "-p", min=1, help="Result page"),
    per_page: int = typer.Option(30, "--per-page", min=1, help="Items per page"),
):
    """Show item price aggregates with locally tracked trends."""
    if sort not in SORT_KEYS:
        console.print(f"[red]Unknown sort key: {sort}[/red]")
        raise typer.Exit(1)

    controller = PriceListController(per_page=per_page)

    async def load():
        async with get_client() as client:
            return await load_prices(client, controller.rollup)

    result = run(load())
    controller.set_query(search)
    controller.set_sort(sort)
    controller.go_to(page)
    items = controller.page_items()

    if result.meta and result.meta.unique_items is not None:
        console.print(
            f"[bold]Items:[/bold] {format_number(result.meta.unique_items)}  |  "
            f"[bold]Listings scanned:[/bold] {format_number(result.meta.total_listings_scanned or 0)}"
        )
    if result.failed_pages:
        console.print(f"[yellow]Warning: {len(result.failed_pages)} price pages failed to load[/yellow]")

    if not items:
        console.print("[dim]No items found.[/dim]")
        return

    store = get_store()
    now = now_ms()
    record_price_history(store, items, now)

    table = Table(title=f"Prices - page {controller.page} of {controller.total_pages}")
    table.add_column("Item", style="cyan")
    table.add_column("Low", justify="right")
    table.add_column("Median", justify="right")
    table.add_column("High", justify="right")
    table.add_column("Listings", justify="right")
    table.add_column("Trend", justify="right")
    for item in items:
        history = store.read(item.id.replace("minecraft:", ""), now)
        spark = generate_sparkline(history)
        trend = calculate_trend(history)
        table.add_row(
            item.name or format_item_name(item.id),
            format_price_value(item.min_price),
            format_price_value(item.median_price),
            format_price_value(item.max_price),
            str(item.listing_count),
            f"{spark.glyph} {trend.label}" if trend else spark.glyph,
        )
    store.close()
    console.print(table)

    overview = summarize_prices(controller.view())
    console.print(f"[dim]{overview['items']} matching items, {format_number(overview['listings'])} listings[/dim]")


@app.command()
def history(
    item_id: str = typer.Argument(..., help="Item id, e.g. diamond"),
):
    """Show locally recorded price history for an item."""
    store = get_store()
    points = store.read(item_id.replace("minecraft:", ""))
    store.close()

    if not points:
        console.print(f"[dim]No price history recorded for {item_id}.[/dim]")
        return

    summary = summarize_history(points)
    spark = generate_sparkline(points)
    trend = calculate_trend(points)

    console.print(f"[bold cyan]{format_item_name(item_id)}[/bold cyan] ({summary['count']} observations)")
    console.print(
        f"[bold]Price:[/bold] {format_money(summary['median'])} median  |  "
        f"{format_money(summary['min'])}-{format_money(summary['max'])} range"
    )
    if trend:
        console.print(f"[bold]Trend:[/bold] {spark.glyph} {trend.label}")
    else:
        console.print(f"[bold]Trend:[/bold] {spark.glyph} [dim]not enough data[/dim]")


@app.command()
def totals():
    """Estimate server-wide totals from the leaderboards."""
    async def load():
        async with get_client() as client:
            return await leaderboard_totals(client)

    result = run(load())

    table = Table(title="Server totals (estimated)")
    table.add_column("Category", style="cyan")
    table.add_column("Total", justify="right")
    for category, total in result.items():
        if category == "money":
            value = format_money(total)
        elif category == "playtime":
            value = f"{format_number(int(total // (1000 * 60 * 60 * 24)))}d+"
        else:
            value = format_abbreviated(total)
        table.add_row(category, value)
    console.print(table)
    console.print("[dim]Extrapolated from first-page leaderboards; rough estimates only.[/dim]")


@app.command()
def theme(
    value: Optional[str] = typer.Argument(None, help=f"Set theme ({' or '.join(THEMES)})"),
):
    """Show or set the preferred theme."""
    store = get_store()
    if value is None:
        console.print(f"Theme: {store.get_theme()}")
        store.close()
        return
    if value not in THEMES:
        store.close()
        console.print(f"[red]Unknown theme: {value}[/red]")
        raise typer.Exit(1)
    store.set_theme(value)
    store.close()
    console.print(f"[green]Theme set to {value}[/green]")


@app.command()
def status():
    """Show API and local storage configuration."""
    config = get_config()

    console.print("[bold]Donut Stats Status[/bold]")
    console.print()
    console.print(f"[cyan]API:[/cyan] {config.api_base} (timeout {config.timeout:g}s)")
    if config.api_key:
        console.print("  Key: configured")
    else:
        console.print("  [yellow]Key: not configured[/yellow]")
        console.print("  [dim]Set DONUT_API_KEY in .env[/dim]")
    console.print()
    console.print(f"[cyan]History:[/cyan] {config.db_path}")
    if not config.db_path.exists():
        console.print("  [dim]Not initialized[/dim]")


if __name__ == "__main__":
    app()
