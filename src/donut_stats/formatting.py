"""Display helpers shared by the CLI tables."""

from donut_stats.models import to_number

ABBREVIATIONS = ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K"))


def format_number(value) -> str:
    num = to_number(value)
    if num == int(num):
        return f"{int(num):,}"
    return f"{num:,}"


def format_abbreviated(value) -> str:
    """1500 -> 1.5K, 3000000000 -> 3B."""
    num = to_number(value)
    sign = "-" if num < 0 else ""
    num = abs(num)
    for threshold, suffix in ABBREVIATIONS:
        if num >= threshold:
            text = f"{num / threshold:.1f}".removesuffix(".0")
            return f"{sign}{text}{suffix}"
    return f"{sign}{num:g}"


def format_money(value) -> str:
    return "$" + format_abbreviated(value)


def format_price_value(value) -> str:
    if value is None:
        return "N/A"
    return format_money(value)


def format_playtime(ms) -> str:
    ms = int(to_number(ms))
    if ms <= 0:
        return "0m"

    seconds = ms // 1000
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h" if hours % 24 else f"{days}d"
    if hours > 0:
        return f"{hours}h {minutes % 60}m" if minutes % 60 else f"{hours}h"
    if minutes > 0:
        return f"{minutes}m"
    return f"{seconds}s"


def format_time_left(ms) -> str:
    ms = int(to_number(ms))
    if ms <= 0:
        return "Expired"

    total = ms // 1000
    days, hours, minutes = total // 86400, (total % 86400) // 3600, (total % 3600) // 60
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m"
    return "Less than 1m"


def format_time_ago(unix_millis: int, now: int) -> str:
    seconds = max(0, (now - unix_millis) // 1000)
    if seconds < 60:
        return "Just now"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"


def format_item_name(item_id: str) -> str:
    """minecraft:diamond_sword -> Diamond Sword."""
    name = item_id.replace("minecraft:", "").replace("_", " ")
    return " ".join(word[:1].upper() + word[1:] for word in name.split(" "))
