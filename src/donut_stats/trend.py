from dataclasses import dataclass, field

import numpy as np

from donut_stats.models import PricePoint

GLYPHS = {"up": "↑", "down": "↓", "neutral": "→"}
COLORS = {"up": "#22c55e", "down": "#ef4444", "neutral": "#6b7280"}
INSUFFICIENT_GLYPH = "-"


@dataclass(frozen=True)
class Trend:
    direction: str
    change: float

    @property
    def percentage(self) -> str:
        return f"{self.change:.1f}"

    @property
    def label(self) -> str:
        sign = "+" if self.direction == "up" else ""
        return f"{sign}{self.percentage}%"


@dataclass(frozen=True)
class Sparkline:
    direction: str
    glyph: str
    points: list[tuple[float, float]] = field(default_factory=list)
    width: int = 60
    height: int = 20

    @property
    def has_data(self) -> bool:
        return bool(self.points)

    @property
    def polyline(self) -> str:
        return " ".join(f"{x:g},{y:g}" for x, y in self.points)

    def to_svg(self) -> str:
        if not self.has_data:
            return f'<span class="sparkline-neutral">{INSUFFICIENT_GLYPH}</span>'
        return (
            f'<svg class="sparkline" viewBox="0 0 {self.width} {self.height}" preserveAspectRatio="none">'
            f'<polyline fill="none" stroke="{COLORS[self.direction]}" stroke-width="1.5" '
            f'points="{self.polyline}"/></svg>'
        )


def direction_of(first: float, last: float) -> str:
    if last > first:
        return "up"
    elif last < first:
        return "down"
    return "neutral"


def calculate_trend(points: list[PricePoint]) -> Trend | None:
    """Compare the first and last observed price. None when there is no trend."""
    if len(points) < 2:
        return None

    first = points[0].price
    last = points[-1].price
    if first == 0:
        return None

    change = (last - first) / first * 100
    return Trend(direction=direction_of(first, last), change=change)


def generate_sparkline(points: list[PricePoint], width: int = 60, height: int = 20) -> Sparkline:
    """Map a series onto a width x height canvas, evenly spaced by index."""
    if len(points) < 2:
        return Sparkline(direction="neutral", glyph=INSUFFICIENT_GLYPH, width=width, height=height)

    prices = np.array([p.price for p in points], dtype=float)
    low = prices.min()
    span = prices.max() - low or 1.0

    xs = np.linspace(0, width, len(prices))
    # Higher price sits higher on the canvas, i.e. a smaller y
    ys = height - (prices - low) / span * height

    direction = direction_of(prices[0], prices[-1])
    return Sparkline(
        direction=direction,
        glyph=GLYPHS[direction],
        points=[(float(x), float(y)) for x, y in zip(xs, ys)],
        width=width,
        height=height,
    )
