from .channel import ChannelClosed, FeedChannel
from .feeds import Feed, FeedFactory, KlineFeed, OrderBookFeed, TradeFeed, WatchlistFeed
