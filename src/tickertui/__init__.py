"""
TickerTUI - Live market data terminal client.

This package keeps several streaming connections to Binance alive, maintains a
bounded in-memory view of recent candles, trades, order book and watchlist
prices, and publishes a connection health summary for the display layer.
"""

__version__ = "1.0.0"
__author__ = "TickerTUI Team"
