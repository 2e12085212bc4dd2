from .candle_buffer import CandleBuffer, BufferStats
from .health import FeedTracker, HealthAggregator, overall_mode, health_reason
from .market_view import MarketView, TradeTape
from .fetch import FetchError, FetchLifecycle
from .supervisor import Supervisor, should_restart_stream
