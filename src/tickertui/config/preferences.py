"""User preferences persisted between runs (watchlist, symbol, timeframe, zoom)."""

import json
import logging
from pathlib import Path
from typing import List

from pydantic import BaseModel, Field, ValidationError

from ..models import Timeframe

logger = logging.getLogger(__name__)

MIN_ZOOM = 1
MAX_ZOOM = 32


def default_watchlist() -> List[str]:
    return ["BTCUSDT", "ETHUSDT", "BNBUSDT", "SOLUSDT", "ADAUSDT"]


class Preferences(BaseModel):
    """Display state restored at startup."""
    watchlist: List[str] = Field(default_factory=default_watchlist)
    selected_symbol: int = 0
    symbol: str = "BTCUSDT"
    timeframe: str = Timeframe.ONE_MONTH.label
    zoom: int = 1

    def sanitized(self) -> "Preferences":
        watchlist = [s.upper() for s in self.watchlist] or default_watchlist()
        selected = min(max(self.selected_symbol, 0), len(watchlist) - 1)
        symbol = self.symbol.upper()
        if symbol not in watchlist:
            symbol = watchlist[selected]

        try:
            timeframe = Timeframe.from_label(self.timeframe).label
        except ValueError:
            timeframe = Timeframe.ONE_MONTH.label

        return Preferences(
            watchlist=watchlist,
            selected_symbol=selected,
            symbol=symbol,
            timeframe=timeframe,
            zoom=min(max(self.zoom, MIN_ZOOM), MAX_ZOOM),
        )

    @property
    def active_timeframe(self) -> Timeframe:
        return Timeframe.from_label(self.timeframe)


def load_preferences(path: Path) -> Preferences:
    """Load preferences, falling back to defaults when the file is missing or invalid."""
    try:
        contents = Path(path).read_text(encoding="utf-8")
    except OSError:
        return Preferences().sanitized()

    try:
        return Preferences(**json.loads(contents)).sanitized()
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning(f"Ignoring unreadable preferences at {path}: {e}")
        return Preferences().sanitized()


def save_preferences(path: Path, preferences: Preferences) -> None:
    payload = preferences.sanitized().model_dump()
    Path(path).write_text(json.dumps(payload, indent=2), encoding="utf-8")
    logger.debug(f"Preferences saved to {path}")
