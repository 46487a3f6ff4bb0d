import json
import logging
import sqlite3
import time
from pathlib import Path

import pandas as pd

from donut_stats.models import PricePoint

logger = logging.getLogger(__name__)

MAX_AGE_MS = 30 * 24 * 60 * 60 * 1000
MAX_POINTS = 100
KEY_PREFIX = "price_history_"
THEME_KEY = "theme"
THEMES = ("dark", "light")


def now_ms() -> int:
    return int(time.time() * 1000)


def history_key(item_id: str) -> str:
    return f"{KEY_PREFIX}{item_id}"


def prune(points: list[PricePoint], now: int) -> list[PricePoint]:
    """Drop points older than MAX_AGE_MS, then keep the newest MAX_POINTS."""
    fresh = [p for p in points if now - p.timestamp <= MAX_AGE_MS]
    return fresh[-MAX_POINTS:]


class HistoryStore:
    """Best-effort local store for observed prices and the theme preference.

    Every method swallows storage errors: losing history only flattens
    sparklines, it never breaks the current price display.
    """

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn: sqlite3.Connection | None = None

    def init(self) -> None:
        """Open the database and create the key/value table."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.db_path)
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key         TEXT PRIMARY KEY,
                    value       TEXT NOT NULL
                )
            """)
            self.conn.commit()
        except (OSError, sqlite3.Error) as e:
            logger.warning("Price history unavailable (%s): %s", self.db_path, e)
            self.conn = None

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    def _get(self, key: str) -> str | None:
        if self.conn is None:
            return None
        row = self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def _set(self, key: str, value: str) -> None:
        self.conn.execute(
            "INSERT INTO kv (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )

    def _load(self, item_id: str) -> list[PricePoint]:
        raw = self._get(history_key(item_id))
        if not raw:
            return []
        try:
            return [PricePoint.from_dict(p) for p in json.loads(raw)]
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding corrupt price history for %s", item_id)
            return []

    def record(self, item_id: str, price: float, now: int | None = None) -> None:
        """Append an observed price and apply the age/count bounds."""
        if self.conn is None:
            return
        now = now_ms() if now is None else now
        try:
            with self.conn:
                points = self._load(item_id)
                # Never step back in time, even if the clock did
                stamp = max(now, points[-1].timestamp) if points else now
                points.append(PricePoint(timestamp=stamp, price=float(price)))
                points = prune(points, now)
                self._set(history_key(item_id), json.dumps([p.to_dict() for p in points]))
        except sqlite3.Error as e:
            logger.warning("Could not record price for %s: %s", item_id, e)

    def read(self, item_id: str, now: int | None = None) -> list[PricePoint]:
        """Current series for an item, age-filtered on read."""
        now = now_ms() if now is None else now
        try:
            points = self._load(item_id)
        except sqlite3.Error as e:
            logger.warning("Could not read price history for %s: %s", item_id, e)
            return []
        return [p for p in points if now - p.timestamp <= MAX_AGE_MS]

    def get_theme(self) -> str:
        try:
            theme = self._get(THEME_KEY)
        except sqlite3.Error:
            theme = None
        return theme if theme in THEMES else "dark"

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme: {theme}")
        if self.conn is None:
            return
        try:
            with self.conn:
                self._set(THEME_KEY, theme)
        except sqlite3.Error as e:
            logger.warning("Could not save theme preference: %s", e)


def summarize_history(points: list[PricePoint]) -> dict:
    """Min/max/median/mean of an observed series."""
    if not points:
        return {"count": 0, "min": None, "max": None, "median": None, "mean": None}

    df = pd.DataFrame({"price": [p.price for p in points]})
    return {
        "count": len(points),
        "min": float(df["price"].min()),
        "max": float(df["price"].max()),
        "median": float(df["price"].median()),
        "mean": float(df["price"].mean()),
    }
