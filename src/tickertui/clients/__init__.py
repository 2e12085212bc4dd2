from .binance_rest import BinanceRESTClient, RateLimiter
