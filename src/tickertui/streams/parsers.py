"""Binance payload parsing into domain records.

Every parser returns ``None`` for input it cannot interpret; feeds treat that
as a skipped message rather than a transport failure.
"""

import json
import logging
import time
from typing import Any, List, Optional, Union

from ..models import Candle, OrderBook, OrderBookLevel, Trade, WatchPrice

logger = logging.getLogger(__name__)

_PARSE_ERRORS = (KeyError, TypeError, ValueError, IndexError, AttributeError)


def _load(raw: Union[str, bytes, dict]) -> Optional[Any]:
    if isinstance(raw, dict):
        return raw
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.debug(f"Dropping non-JSON message: {e}")
        return None


def parse_kline_message(raw: Union[str, bytes, dict]) -> Optional[Candle]:
    """Parse a ``<symbol>@kline_<interval>`` event."""
    message = _load(raw)
    if not isinstance(message, dict) or 'k' not in message:
        return None

    k = message['k']
    try:
        return Candle(
            open_time=int(k['t']),
            open=float(k['o']),
            high=float(k['h']),
            low=float(k['l']),
            close=float(k['c']),
            volume=float(k['v']),
            close_time=int(k['T']),
            quote_volume=float(k['q']),
            trade_count=int(k['n']),
            taker_buy_base=float(k['V']),
            taker_buy_quote=float(k['Q']),
        )
    except _PARSE_ERRORS as e:
        logger.debug(f"Malformed kline event: {e}")
        return None


def _parse_levels(levels: Any) -> List[OrderBookLevel]:
    parsed = []
    for level in levels:
        try:
            parsed.append(OrderBookLevel(price=float(level[0]), quantity=float(level[1])))
        except _PARSE_ERRORS:
            continue
    return parsed


def parse_depth_message(raw: Union[str, bytes, dict]) -> Optional[OrderBook]:
    """Parse a partial book depth snapshot (``<symbol>@depth<levels>@100ms``)."""
    message = _load(raw)
    if not isinstance(message, dict):
        return None

    bids = message.get('bids')
    asks = message.get('asks')
    if not isinstance(bids, list) or not isinstance(asks, list):
        return None

    return OrderBook(
        bids=sorted(_parse_levels(bids), key=lambda lvl: lvl.price, reverse=True),
        asks=sorted(_parse_levels(asks), key=lambda lvl: lvl.price),
        last_update=int(time.time() * 1000),
    )


def parse_trade_message(raw: Union[str, bytes, dict]) -> Optional[Trade]:
    """Parse a ``<symbol>@trade`` event."""
    message = _load(raw)
    if not isinstance(message, dict):
        return None

    try:
        is_buyer_maker = message['m']
        if not isinstance(is_buyer_maker, bool):
            return None
        return Trade(
            price=float(message['p']),
            quantity=float(message['q']),
            is_buyer_maker=is_buyer_maker,
            timestamp=int(message['T']),
        )
    except _PARSE_ERRORS as e:
        logger.debug(f"Malformed trade event: {e}")
        return None


def parse_mini_ticker_message(raw: Union[str, bytes, dict]) -> Optional[WatchPrice]:
    """Parse a combined-stream ``<symbol>@miniTicker`` event."""
    message = _load(raw)
    if not isinstance(message, dict):
        return None

    data = message.get('data')
    if not isinstance(data, dict):
        return None

    try:
        close = float(data['c'])
        open_ = float(data['o'])
        symbol = str(data['s']).upper()
    except _PARSE_ERRORS as e:
        logger.debug(f"Malformed miniTicker event: {e}")
        return None

    change_pct = ((close - open_) / open_) * 100.0 if open_ > 0 else 0.0
    return WatchPrice(symbol=symbol, last_price=close, change_pct=change_pct)


def parse_kline_row(row: List[Any]) -> Optional[Candle]:
    """Parse one row of the REST ``/api/v3/klines`` response."""
    try:
        return Candle(
            open_time=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
            close_time=int(row[6]),
            quote_volume=float(row[7]),
            trade_count=int(row[8]),
            taker_buy_base=float(row[9]),
            taker_buy_quote=float(row[10]),
        )
    except _PARSE_ERRORS as e:
        logger.debug(f"Malformed kline row: {e}")
        return None
