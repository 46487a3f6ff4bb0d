from dataclasses import dataclass
from pathlib import Path
import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_API_BASE = "https://api.donutsmp.net/v1"
DEFAULT_TIMEOUT = 30.0


@dataclass
class Config:
    api_base: str
    api_key: str | None
    db_path: Path
    timeout: float


def get_config() -> Config:
    return Config(
        api_base=os.environ.get("DONUT_API_BASE", DEFAULT_API_BASE).rstrip("/"),
        api_key=os.environ.get("DONUT_API_KEY"),
        db_path=Path(os.environ.get("DONUT_STATS_DB_PATH", "data/donut_stats.db")),
        timeout=float(os.environ.get("DONUT_API_TIMEOUT", DEFAULT_TIMEOUT)),
    )
